"""
Tests for the route guard and request logging middleware.
"""
import pytest
from fastapi.testclient import TestClient

from clinic_portal.auth.models import Role
from clinic_portal.core.sessions import SessionInfo
from clinic_portal.main import create_app


class StaticSessionProvider:
    """Returns a fixed session and counts lookups."""

    def __init__(self, session=None):
        self.session = session
        self.calls = 0

    def get_session(self, headers):
        self.calls += 1
        return self.session


class BrokenSessionProvider:
    def get_session(self, headers):
        raise ConnectionError("session store unreachable")


def page_client(provider):
    app = create_app(session_provider=provider)

    @app.get("/dashboard/{page:path}")
    def dashboard_page(page: str):
        return {"page": page}

    @app.get("/dashboard")
    def dashboard_home():
        return {"page": "home"}

    @app.get("/patient-ehr")
    def patient_home():
        return {"page": "ehr"}

    return TestClient(app, follow_redirects=False)


def test_anonymous_request_redirects_to_login():
    client = page_client(StaticSessionProvider())
    response = client.get("/dashboard/patients")
    assert response.status_code == 302
    assert response.headers["location"] == "/login?redirect=/dashboard/patients"
    assert "page" not in response.text


def test_failing_session_provider_fails_closed():
    client = page_client(BrokenSessionProvider())
    response = client.get("/dashboard/users")
    assert response.status_code == 302
    assert response.headers["location"] == "/login?redirect=/dashboard/users"


@pytest.mark.parametrize("role", [Role.DOCTOR, Role.STAFF, Role.PATIENT])
def test_admin_pages_never_render_for_other_roles(role):
    client = page_client(StaticSessionProvider(SessionInfo("id-1", role)))
    response = client.get("/dashboard/users")
    assert response.status_code == 302
    assert response.content == b""


def test_admin_page_renders_for_admin():
    client = page_client(StaticSessionProvider(SessionInfo("id-1", Role.ADMIN)))
    response = client.get("/dashboard/users")
    assert response.status_code == 200
    assert response.json() == {"page": "users"}


def test_patient_on_staff_landing_goes_to_ehr():
    client = page_client(StaticSessionProvider(SessionInfo("id-2", Role.PATIENT)))
    response = client.get("/dashboard")
    assert response.status_code == 302
    assert response.headers["location"] == "/patient-ehr"


def test_doctor_on_patient_landing_goes_to_dashboard():
    client = page_client(StaticSessionProvider(SessionInfo("id-3", Role.DOCTOR)))
    response = client.get("/patient-ehr")
    assert response.status_code == 302
    assert response.headers["location"] == "/dashboard"


def test_public_paths_skip_session_lookup():
    provider = StaticSessionProvider()
    client = page_client(provider)
    response = client.get("/health")
    assert response.status_code == 200
    assert provider.calls == 0


def test_protected_paths_look_up_session_once():
    provider = StaticSessionProvider(SessionInfo("id-1", Role.STAFF))
    client = page_client(provider)
    client.get("/dashboard/appointments")
    assert provider.calls == 1


def test_responses_carry_request_id_and_timing():
    client = page_client(StaticSessionProvider())
    response = client.get("/")
    assert response.headers["X-Request-ID"]
    assert float(response.headers["X-Process-Time"]) >= 0
