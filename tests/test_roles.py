import pytest

from smartcare.core.roles import (
    ROLE_REGISTRY, nav_items, requires_approval, role_default_route, roles_for_path
)
from smartcare.core.security import UserRole


class TestRoleRegistry:

    def test_every_role_has_an_entry(self):
        assert set(ROLE_REGISTRY) == set(UserRole)

    @pytest.mark.parametrize("role,route", [
        (UserRole.PATIENT, "/PatientDashboard"),
        (UserRole.DOCTOR, "/DoctorDashboard"),
        (UserRole.RECEPTIONIST, "/ReceptionistDashboard"),
        (UserRole.LAB_TECHNICIAN, "/LabDashboard"),
        (UserRole.ADMIN, "/AdminDashboard"),
    ])
    def test_default_routes(self, role, route):
        assert role_default_route(role) == route
        assert role_default_route(role.value) == route

    @pytest.mark.parametrize("role", ["Nurse", "", None, "doctor"])
    def test_unknown_role_defaults_to_root(self, role):
        assert role_default_route(role) == "/"
        assert nav_items(role) == []

    def test_nav_items_stay_inside_the_role_dashboard(self):
        for role, info in ROLE_REGISTRY.items():
            assert info.nav_items[0].href == info.default_route
            for item in info.nav_items:
                assert item.href.startswith(info.default_route)

    def test_only_patients_skip_approval(self):
        assert requires_approval(UserRole.PATIENT) is False
        for role in UserRole:
            if role != UserRole.PATIENT:
                assert requires_approval(role) is True


class TestRolesForPath:

    @pytest.mark.parametrize("path,role", [
        ("/PatientDashboard", UserRole.PATIENT),
        ("/PatientDashboard/appointments/book", UserRole.PATIENT),
        ("/DoctorDashboard/queue", UserRole.DOCTOR),
        ("/ReceptionistDashboard/queue/", UserRole.RECEPTIONIST),
        ("/LabDashboard/reports?page=2", UserRole.LAB_TECHNICIAN),
        ("/AdminDashboard/approvals", UserRole.ADMIN),
        ("/admindashboard/approvals", UserRole.ADMIN),
        ("/DOCTORDASHBOARD", UserRole.DOCTOR),
    ])
    def test_dashboard_paths(self, path, role):
        assert roles_for_path(path) == [role]

    @pytest.mark.parametrize("path", ["/", "/auth", "/pending-approval", "/unknown", "/DoctorDashboardX"])
    def test_unguarded_paths(self, path):
        assert roles_for_path(path) is None
