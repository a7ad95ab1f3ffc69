"""
Tests for the route-access matrix.
"""
import pytest

from clinic_portal.auth.models import Role
from clinic_portal.config import settings
from clinic_portal.core.route_guard import ALLOW, RedirectTo, RouteAccessConfig, RouteGuard, path_matches
from clinic_portal.core.sessions import SessionInfo


@pytest.fixture
def guard():
    return RouteGuard(RouteAccessConfig.from_settings(settings))


def session(role):
    return SessionInfo(identity_id="abc123", role=role)


@pytest.mark.parametrize("path", ["/dashboard/staff", "/dashboard/cms/pages/4", "/dashboard/users"])
@pytest.mark.parametrize("role", [Role.DOCTOR, Role.STAFF])
def test_admin_only_paths_send_other_staff_to_dashboard(guard, path, role):
    assert guard.decide(path, session(role)) == RedirectTo("/dashboard")


@pytest.mark.parametrize("path", ["/dashboard/staff", "/dashboard/cms", "/dashboard/users/9"])
def test_admin_only_paths_reject_patients(guard, path):
    assert isinstance(guard.decide(path, session(Role.PATIENT)), RedirectTo)


@pytest.mark.parametrize("path", ["/dashboard/staff", "/dashboard/cms", "/dashboard/users"])
def test_admin_only_paths_allow_admin(guard, path):
    assert guard.decide(path, session(Role.ADMIN)) is ALLOW


@pytest.mark.parametrize("path", ["/dashboard", "/dashboard/patients", "/dashboard/users", "/patient-ehr/records"])
def test_anonymous_callers_go_to_login(guard, path):
    assert guard.decide(path, None) == RedirectTo(f"/login?redirect={path}")


def test_login_redirect_keeps_path_readable(guard):
    assert guard.decide("/dashboard/patients", None).location == "/login?redirect=/dashboard/patients"
    assert guard.decide("/dashboard/patients/a b", None).location == "/login?redirect=/dashboard/patients/a%20b"


@pytest.mark.parametrize("role", [Role.ADMIN, Role.DOCTOR, Role.STAFF])
def test_patient_pages_send_staff_to_dashboard(guard, role):
    assert guard.decide("/patient-ehr/records", session(role)) == RedirectTo("/dashboard")
    assert guard.decide("/patient-ehr", session(role)) == RedirectTo("/dashboard")


@pytest.mark.parametrize("path", ["/dashboard", "/dashboard/patients/7", "/dashboard/appointments", "/dashboard/messages"])
def test_staff_pages_send_patients_to_ehr(guard, path):
    assert guard.decide(path, session(Role.PATIENT)) == RedirectTo("/patient-ehr")


@pytest.mark.parametrize("role", [Role.ADMIN, Role.DOCTOR, Role.STAFF])
def test_staff_pages_allow_staff_roles(guard, role):
    assert guard.decide("/dashboard", session(role)) is ALLOW
    assert guard.decide("/dashboard/appointments/today", session(role)) is ALLOW


def test_patient_pages_allow_patients(guard):
    assert guard.decide("/patient-ehr", session(Role.PATIENT)) is ALLOW
    assert guard.decide("/patient-ehr/medications", session(Role.PATIENT)) is ALLOW


@pytest.mark.parametrize("path", ["/", "/login", "/about", "/api/auth/login", "/dashboardx", "/patient-ehrx"])
def test_unprotected_paths_bypass_the_guard(guard, path):
    assert not guard.is_protected(path)
    assert guard.decide(path, None) is ALLOW


def test_path_matching_is_segment_aware():
    assert path_matches("/dashboard", "/dashboard")
    assert path_matches("/dashboard/x", "/dashboard")
    assert not path_matches("/dashboardx", "/dashboard")


def test_config_normalizes_trailing_slashes():
    config = RouteAccessConfig(
        admin_prefixes=("/dashboard/staff/",),
        staff_prefixes=("/dashboard",),
        patient_prefixes=("/patient-ehr",),
    )
    assert config.admin_prefixes == ("/dashboard/staff",)


def test_config_is_immutable():
    config = RouteAccessConfig.from_settings(settings)
    with pytest.raises(AttributeError):
        config.login_path = "/elsewhere"


@pytest.mark.parametrize("kwargs", [
    {"admin_prefixes": ("/dashboard",), "staff_prefixes": ("/dashboard",), "patient_prefixes": ("/patient-ehr",)},
    {"admin_prefixes": ("dashboard/staff",), "staff_prefixes": ("/dashboard",), "patient_prefixes": ("/patient-ehr",)},
    {"admin_prefixes": ("/",), "staff_prefixes": ("/dashboard",), "patient_prefixes": ("/patient-ehr",)},
    {"admin_prefixes": ("/login",), "staff_prefixes": ("/dashboard",), "patient_prefixes": ("/patient-ehr",)},
])
def test_invalid_configs_are_rejected(kwargs):
    with pytest.raises(ValueError):
        RouteAccessConfig(**kwargs)
