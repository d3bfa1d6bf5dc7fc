"""Role registry: one lookup table per role for routes, labels and navigation."""
from typing import Dict, List, NamedTuple, Optional, Union

from .security import UserRole

PUBLIC_PATHS = ("/", "/auth", "/pending-approval")
SIGN_IN_ROUTE = "/auth"
PENDING_APPROVAL_ROUTE = "/pending-approval"
ROOT_ROUTE = "/"

class NavItem(NamedTuple):
    label: str
    href: str

class RoleInfo(NamedTuple):
    label: str
    default_route: str
    color: str
    nav_items: List[NavItem]

ROLE_REGISTRY: Dict[UserRole, RoleInfo] = {
    UserRole.PATIENT: RoleInfo(
        label="Patient",
        default_route="/PatientDashboard",
        color="bg-accent",
        nav_items=[
            NavItem("Dashboard", "/PatientDashboard"),
            NavItem("Appointments", "/PatientDashboard/appointments"),
            NavItem("Calendar", "/PatientDashboard/calendar"),
            NavItem("Medical History", "/PatientDashboard/history"),
            NavItem("Medical Timeline", "/PatientDashboard/timeline"),
            NavItem("Lab Reports", "/PatientDashboard/lab-reports"),
            NavItem("Documents", "/PatientDashboard/documents"),
            NavItem("Vaccinations", "/PatientDashboard/vaccinations"),
            NavItem("Emergency Info", "/PatientDashboard/emergency"),
            NavItem("Messages", "/PatientDashboard/messages"),
        ],
    ),
    UserRole.DOCTOR: RoleInfo(
        label="Doctor",
        default_route="/DoctorDashboard",
        color="bg-primary",
        nav_items=[
            NavItem("Dashboard", "/DoctorDashboard"),
            NavItem("Appointments", "/DoctorDashboard/appointments"),
            NavItem("Calendar", "/DoctorDashboard/calendar"),
            NavItem("Patient Queue", "/DoctorDashboard/queue"),
            NavItem("Patient Records", "/DoctorDashboard/records"),
            NavItem("Statistics", "/DoctorDashboard/stats"),
            NavItem("Documents", "/DoctorDashboard/documents"),
            NavItem("Reviews", "/DoctorDashboard/reviews"),
            NavItem("Lab Templates", "/DoctorDashboard/lab-templates"),
            NavItem("Prescription Templates", "/DoctorDashboard/prescription-templates"),
            NavItem("Vaccinations", "/DoctorDashboard/vaccinations"),
            NavItem("Messages", "/DoctorDashboard/messages"),
        ],
    ),
    UserRole.RECEPTIONIST: RoleInfo(
        label="Receptionist",
        default_route="/ReceptionistDashboard",
        color="bg-warning",
        nav_items=[
            NavItem("Dashboard", "/ReceptionistDashboard"),
            NavItem("Appointments", "/ReceptionistDashboard/appointments"),
            NavItem("Queue Management", "/ReceptionistDashboard/queue"),
            NavItem("Doctor Availability", "/ReceptionistDashboard/availability"),
            NavItem("Billing", "/ReceptionistDashboard/billing"),
            NavItem("Statistics", "/ReceptionistDashboard/stats"),
        ],
    ),
    UserRole.LAB_TECHNICIAN: RoleInfo(
        label="Lab Technician",
        default_route="/LabDashboard",
        color="bg-success",
        nav_items=[
            NavItem("Dashboard", "/LabDashboard"),
            NavItem("Lab Reports", "/LabDashboard/reports"),
            NavItem("Pending Requests", "/LabDashboard/requests"),
            NavItem("Lab Templates", "/LabDashboard/lab-templates"),
            NavItem("Billing", "/LabDashboard/billing"),
            NavItem("Statistics", "/LabDashboard/stats"),
        ],
    ),
    UserRole.ADMIN: RoleInfo(
        label="Administrator",
        default_route="/AdminDashboard",
        color="bg-destructive",
        nav_items=[
            NavItem("Dashboard", "/AdminDashboard"),
            NavItem("User Approvals", "/AdminDashboard/approvals"),
            NavItem("All Users", "/AdminDashboard/users"),
            NavItem("Duplicate Doctors", "/AdminDashboard/duplicates"),
            NavItem("All Appointments", "/AdminDashboard/appointments"),
            NavItem("All Records", "/AdminDashboard/records"),
            NavItem("Reports", "/AdminDashboard/reports"),
            NavItem("Statistics", "/AdminDashboard/stats"),
        ],
    ),
}

_missing = set(UserRole) - set(ROLE_REGISTRY)
if _missing:
    raise RuntimeError(f"Role registry has no entry for: {sorted(r.value for r in _missing)}")


def parse_role(role: Union[UserRole, str, None]) -> Optional[UserRole]:
    """Return the UserRole for a role name, or None if it is not recognized."""
    if isinstance(role, UserRole):
        return role
    try:
        return UserRole(role)
    except ValueError:
        return None


def role_info(role: Union[UserRole, str, None]) -> Optional[RoleInfo]:
    parsed = parse_role(role)
    return ROLE_REGISTRY[parsed] if parsed else None


def role_default_route(role: Union[UserRole, str, None]) -> str:
    """Default dashboard for a role; the root route for unknown roles."""
    info = role_info(role)
    return info.default_route if info else ROOT_ROUTE


def nav_items(role: Union[UserRole, str, None]) -> List[NavItem]:
    info = role_info(role)
    return list(info.nav_items) if info else []


def requires_approval(role: Union[UserRole, str, None]) -> bool:
    """Patients are implicitly approved; every other role needs sign-off."""
    return parse_role(role) != UserRole.PATIENT


def roles_for_path(path: str) -> Optional[List[UserRole]]:
    """Roles allowed to view a location, or None for public locations.

    Each dashboard subtree belongs to exactly one role. Unknown locations
    are treated as public and left to the not-found page.
    """
    # Route matching is case-insensitive
    path = "/" + path.split("?", 1)[0].split("#", 1)[0].strip("/").lower()
    if path in PUBLIC_PATHS:
        return None
    for role, info in ROLE_REGISTRY.items():
        prefix = info.default_route.lower()
        if path == prefix or path.startswith(prefix + "/"):
            return [role]
    return None
