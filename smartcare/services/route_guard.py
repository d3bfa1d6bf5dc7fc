"""Role-gated navigation.

The guard only decides what the UI should show for a location. It is not a
security boundary; the API dependencies in ``smartcare.api.deps`` enforce
the same rules on every request.
"""
from typing import Iterable, Optional, Union

from ..core.roles import (
    PENDING_APPROVAL_ROUTE, SIGN_IN_ROUTE, role_default_route, roles_for_path
)
from ..core.security import ApprovalStatus, UserRole
from ..models.user import User
from ..schemas.navigation import GuardDecision, Session, SessionProfile, SessionUser

LOADING_MESSAGE = "Loading..."
LOADING_PROFILE_MESSAGE = "Loading profile..."


def authorize(
    session: Session,
    allowed_roles: Optional[Iterable[Union[UserRole, str]]] = None,
    require_approval: bool = True,
) -> GuardDecision:
    """Decide whether to render the requested view, keep waiting, or redirect."""
    if session.loading:
        return GuardDecision.loading(LOADING_MESSAGE)

    if session.user is None:
        return GuardDecision.redirect(SIGN_IN_ROUTE, from_location=session.location)

    profile = session.profile
    if profile is None:
        # Profile fetch may lag behind the auth state
        return GuardDecision.loading(LOADING_PROFILE_MESSAGE)

    if require_approval and profile.approval_status == ApprovalStatus.PENDING:
        return GuardDecision.redirect(PENDING_APPROVAL_ROUTE)

    if profile.approval_status == ApprovalStatus.REJECTED:
        return GuardDecision.redirect(SIGN_IN_ROUTE)

    if allowed_roles is not None:
        allowed = {_role_name(role) for role in allowed_roles}
        if _role_name(profile.role) not in allowed:
            return GuardDecision.redirect(role_default_route(profile.role))

    return GuardDecision.render()


def authorize_path(session: Session, path: Optional[str] = None) -> GuardDecision:
    """Run the guard for a location, using the role registry for allowed roles."""
    path = path or session.location
    if session.location != path:
        session = session.model_copy(update={"location": path})
    allowed_roles = roles_for_path(path)
    if allowed_roles is None:
        return GuardDecision.render()
    return authorize(session, allowed_roles)


def session_from_user(user: Optional[User], location: str = "/") -> Session:
    """Build the guard's session value from an authenticated API user."""
    if user is None:
        return Session(location=location)

    profile = None
    if user.profile is not None:
        profile = SessionProfile(
            id=user.profile.id,
            role=user.profile.role,
            approval_status=user.profile.approval_status,
        )
    return Session(
        user=SessionUser(id=user.id, email=user.email),
        profile=profile,
        location=location,
    )


def _role_name(role: Union[UserRole, str]) -> str:
    return role.value if isinstance(role, UserRole) else str(role)
