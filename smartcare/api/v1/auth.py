from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ...core.database import get_db
from ...api.deps import get_current_user, get_admin_profile, rate_limit_check
from ...services.auth_service import AuthService
from ...schemas.auth import (
    UserLogin, UserRegister, TokenResponse, UserResponse, ProfileResponse
)
from ...models.user import User, Profile

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", response_model=UserResponse)
async def register(
    user_data: UserRegister,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Register a new user. Staff accounts start pending approval."""
    auth_service = AuthService(db)
    user = auth_service.register_user(user_data)
    return UserResponse.model_validate(user)

@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: UserLogin,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit_check)
):
    """Authenticate user and return an access token."""
    auth_service = AuthService(db)
    return auth_service.authenticate_user(login_data)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """Get current user and profile, whatever the approval status."""
    return UserResponse.model_validate(current_user)

# Admin routes
@router.get("/pending-approvals", response_model=List[ProfileResponse])
async def list_pending_approvals(
    db: Session = Depends(get_db),
    _: Profile = Depends(get_admin_profile)
):
    """Staff accounts awaiting approval (admin only)."""
    auth_service = AuthService(db)
    return [ProfileResponse.model_validate(p) for p in auth_service.list_pending_approvals()]

@router.post("/users/{user_id}/approve", response_model=ProfileResponse)
async def approve_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: Profile = Depends(get_admin_profile)
):
    """Approve a staff account (admin only)."""
    auth_service = AuthService(db)
    return ProfileResponse.model_validate(auth_service.set_approval(user_id, approve=True))

@router.post("/users/{user_id}/reject", response_model=ProfileResponse)
async def reject_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: Profile = Depends(get_admin_profile)
):
    """Reject a staff account (admin only)."""
    auth_service = AuthService(db)
    return ProfileResponse.model_validate(auth_service.set_approval(user_id, approve=False))
