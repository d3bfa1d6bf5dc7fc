from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Optional, List
import logging

from ..core.config import settings
from ..core.database import get_db, get_redis
from ..core.security import (
    security, verify_token, AuthenticationError, AuthorizationError,
    ApprovalPendingError, AccountRejectedError, UserRole, ApprovalStatus,
    TokenPayload
)
from ..models.user import User, Profile

logger = logging.getLogger(__name__)

async def get_current_user_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> TokenPayload:
    """Extract and verify JWT token from Authorization header."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    token_payload = verify_token(credentials.credentials)
    if not token_payload:
        raise AuthenticationError("Invalid or expired token")

    if token_payload.token_type != "access":
        raise AuthenticationError("Invalid token type")

    return token_payload

def _load_user(db: Session, token_payload: TokenPayload) -> Optional[User]:
    if not token_payload.sub or not token_payload.sub.isdigit():
        return None
    return db.query(User).filter(User.id == int(token_payload.sub)).first()

async def get_current_user(
    token_payload: TokenPayload = Depends(get_current_user_token),
    db: Session = Depends(get_db)
) -> User:
    """Get current authenticated user from database."""
    user = _load_user(db, token_payload)
    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is deactivated")

    return user

async def get_current_profile(
    current_user: User = Depends(get_current_user)
) -> Profile:
    """Profile of an approved account.

    Rejected accounts are treated as logged out, pending ones are held back.
    """
    profile = current_user.profile
    if profile is None:
        raise AuthorizationError("Profile not found")

    if profile.approval_status == ApprovalStatus.REJECTED:
        raise AccountRejectedError()

    if profile.approval_status == ApprovalStatus.PENDING:
        raise ApprovalPendingError()

    return profile

# Role-based access control dependencies
def require_role(allowed_roles: List[UserRole]):
    """Create a dependency that requires specific user roles."""
    async def role_checker(
        profile: Profile = Depends(get_current_profile)
    ) -> Profile:
        if profile.role not in allowed_roles:
            logger.warning(f"Profile {profile.id} ({profile.role.value}) denied; needs {[r.value for r in allowed_roles]}")
            raise AuthorizationError(
                f"Access denied. Required roles: {[role.value for role in allowed_roles]}"
            )
        return profile

    return role_checker

get_admin_profile = require_role([UserRole.ADMIN])
get_queue_operator = require_role([UserRole.DOCTOR, UserRole.RECEPTIONIST, UserRole.ADMIN])
get_appointment_manager = require_role([UserRole.DOCTOR, UserRole.RECEPTIONIST, UserRole.ADMIN])
get_front_desk = require_role([UserRole.RECEPTIONIST, UserRole.ADMIN])

def ensure_doctor_scope(profile: Profile, doctor_id: int) -> None:
    """Doctors may only act on their own queue and appointments."""
    if profile.role == UserRole.DOCTOR and profile.id != doctor_id:
        raise AuthorizationError("Doctors can only manage their own patients")

# Optional authentication (for navigation decisions made before login)
async def get_current_user_optional(
    request: Request,
    db: Session = Depends(get_db)
) -> Optional[User]:
    """Get current user if authenticated, None otherwise."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None

    token_payload = verify_token(auth_header.split(" ", 1)[1])
    if not token_payload or token_payload.token_type != "access":
        return None

    user = _load_user(db, token_payload)
    return user if user and user.is_active else None

# Rate limiting dependency
async def rate_limit_check(
    request: Request,
    redis_client = Depends(get_redis)
) -> None:
    """Basic rate limiting for authentication endpoints."""
    client_ip = request.client.host if request.client else "unknown"
    key = f"rate_limit:{client_ip}"

    current_requests = redis_client.get(key)
    if current_requests is None:
        redis_client.setex(key, 3600, 1)  # one hour window
    else:
        if int(current_requests) >= settings.AUTH_RATE_LIMIT:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests. Please try again later."
            )
        redis_client.incr(key)
