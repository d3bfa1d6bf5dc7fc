from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import List, Optional

from ...core.database import get_db
from ...core.security import ApprovalStatus, UserRole
from ...api.deps import get_admin_profile
from ...services.auth_service import AuthService
from ...schemas.auth import UserResponse
from ...models.user import Profile

router = APIRouter(prefix="/users", tags=["Users"])

@router.get("", response_model=List[UserResponse])
async def list_users(
    role: Optional[UserRole] = Query(None),
    approval_status: Optional[ApprovalStatus] = Query(None),
    db: Session = Depends(get_db),
    _: Profile = Depends(get_admin_profile)
):
    """All active accounts (admin only)."""
    auth_service = AuthService(db)
    return [UserResponse.model_validate(u) for u in auth_service.list_users(role, approval_status)]

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: Profile = Depends(get_admin_profile)
):
    return UserResponse.model_validate(AuthService(db).get_user(user_id))

@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: Profile = Depends(get_admin_profile)
):
    """Deactivate an account (admin only). Its appointments are kept."""
    AuthService(db).deactivate_user(user_id, acting_user_id=admin.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
