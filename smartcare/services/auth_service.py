from sqlalchemy.orm import Session
from fastapi import HTTPException, status
from datetime import datetime
from typing import List, Optional
import logging

from ..models.user import User, Profile
from ..core.security import (
    verify_password, get_password_hash, create_user_token,
    UserRole, ApprovalStatus
)
from ..core.roles import requires_approval
from ..schemas.auth import UserLogin, UserRegister, TokenResponse, UserResponse

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new user together with their profile."""
        existing_user = self.db.query(User).filter(
            User.email == user_data.email
        ).first()

        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        new_user = User(
            email=user_data.email,
            password_hash=get_password_hash(user_data.password),
            is_active=True,
        )
        new_user.profile = Profile(
            full_name=user_data.full_name,
            phone=user_data.phone,
            specialization=user_data.specialization,
            role=user_data.role,
            approval_status=(
                ApprovalStatus.PENDING if requires_approval(user_data.role)
                else ApprovalStatus.APPROVED
            ),
        )

        self.db.add(new_user)
        self.db.commit()
        self.db.refresh(new_user)

        logger.info(
            f"Registered user {new_user.id} as {user_data.role.value} "
            f"({new_user.profile.approval_status.value})"
        )
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return an access token."""
        user = self.db.query(User).filter(
            User.email == login_data.email
        ).first()

        if not user or not user.password_hash or not verify_password(
            login_data.password, user.password_hash
        ):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated"
            )

        user.last_login = datetime.utcnow()
        self.db.commit()

        role = user.profile.role if user.profile else None
        token = create_user_token(user.id, user.email, role)

        return TokenResponse(
            access_token=token.access_token,
            token_type=token.token_type,
            expires_in=token.expires_in,
            user=UserResponse.model_validate(user)
        )

    def list_pending_approvals(self) -> List[Profile]:
        """Staff profiles waiting for an administrator's decision."""
        return self.db.query(Profile).filter(
            Profile.approval_status == ApprovalStatus.PENDING,
            Profile.role != UserRole.PATIENT
        ).order_by(Profile.created_at, Profile.id).all()

    def set_approval(self, user_id: int, approve: bool) -> Profile:
        """Approve or reject a staff account."""
        profile = self.db.query(Profile).filter(Profile.user_id == user_id).first()
        if not profile:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )

        if profile.role == UserRole.PATIENT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Patients do not require approval"
            )

        profile.approval_status = ApprovalStatus.APPROVED if approve else ApprovalStatus.REJECTED
        self.db.commit()
        self.db.refresh(profile)

        logger.info(f"User {user_id} ({profile.role.value}) {profile.approval_status.value.lower()}")
        return profile

    def list_users(
        self,
        role: Optional[UserRole] = None,
        approval_status: Optional[ApprovalStatus] = None
    ) -> List[User]:
        """Active users, optionally filtered by role and approval status."""
        query = self.db.query(User).outerjoin(User.profile).filter(User.is_active.is_(True))

        if role is not None:
            query = query.filter(Profile.role == role)
        if approval_status is not None:
            query = query.filter(Profile.approval_status == approval_status)

        return query.order_by(User.id).all()

    def get_user(self, user_id: int) -> User:
        user = self.db.query(User).filter(
            User.id == user_id,
            User.is_active.is_(True)
        ).first()
        if not user:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="User not found"
            )
        return user

    def deactivate_user(self, user_id: int, acting_user_id: int) -> None:
        """Soft delete: the account stays for appointment history but can no longer sign in."""
        if user_id == acting_user_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Administrators cannot deactivate their own account"
            )

        user = self.get_user(user_id)
        user.is_active = False
        self.db.commit()

        logger.info(f"Deactivated user {user_id} (by user {acting_user_id})")
