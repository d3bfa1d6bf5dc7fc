from pydantic import BaseModel, ConfigDict
from typing import List, Optional, Union
from enum import Enum

from ..core.security import UserRole, ApprovalStatus

class SessionUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Union[int, str]
    email: Optional[str] = None

class SessionProfile(BaseModel):
    """Profile as supplied by the identity provider; role may be any string."""

    model_config = ConfigDict(frozen=True)

    id: Union[int, str]
    role: Union[UserRole, str]
    approval_status: ApprovalStatus

class Session(BaseModel):
    """Auth state handed to the route guard. Never mutated by the guard."""

    model_config = ConfigDict(frozen=True)

    loading: bool = False
    user: Optional[SessionUser] = None
    profile: Optional[SessionProfile] = None
    location: str = "/"

class GuardAction(str, Enum):
    RENDER = "render"
    REDIRECT = "redirect"
    LOADING = "loading"

class GuardDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: GuardAction
    location: Optional[str] = None
    from_location: Optional[str] = None
    message: Optional[str] = None
    replace: bool = True

    @classmethod
    def render(cls) -> "GuardDecision":
        return cls(action=GuardAction.RENDER, replace=False)

    @classmethod
    def loading(cls, message: str) -> "GuardDecision":
        return cls(action=GuardAction.LOADING, message=message, replace=False)

    @classmethod
    def redirect(cls, location: str, from_location: Optional[str] = None) -> "GuardDecision":
        return cls(action=GuardAction.REDIRECT, location=location, from_location=from_location)

class NavItemResponse(BaseModel):
    label: str
    href: str

class MenuResponse(BaseModel):
    role: UserRole
    label: str
    color: str
    default_route: str
    nav_items: List[NavItemResponse]
