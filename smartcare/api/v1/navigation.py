from fastapi import APIRouter, Depends, Query
from typing import Optional

from ...api.deps import get_current_user_optional, get_current_profile
from ...core.roles import role_info
from ...services.route_guard import authorize_path, session_from_user
from ...schemas.navigation import GuardDecision, MenuResponse, NavItemResponse
from ...models.user import User, Profile

router = APIRouter(prefix="/navigation", tags=["Navigation"])

@router.get("/authorize", response_model=GuardDecision)
async def authorize_location(
    path: str = Query(..., min_length=1),
    current_user: Optional[User] = Depends(get_current_user_optional)
):
    """What the client should do for a requested location: render, wait or redirect."""
    session = session_from_user(current_user, location=path)
    return authorize_path(session)

@router.get("/menu", response_model=MenuResponse)
async def get_menu(
    profile: Profile = Depends(get_current_profile)
):
    """Dashboard navigation for the current user's role."""
    info = role_info(profile.role)
    return MenuResponse(
        role=profile.role,
        label=info.label,
        color=info.color,
        default_route=info.default_route,
        nav_items=[NavItemResponse(label=item.label, href=item.href) for item in info.nav_items]
    )
