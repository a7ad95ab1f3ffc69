"""
Tests for the login, registration and self-service endpoints.
"""
import pytest

from clinic_portal.auth.models import Role
from clinic_portal.config import settings
from clinic_portal.core.security import create_session_token

from conftest import TEMP_PASSWORD, login_as, make_identity


def test_staff_login_sets_session_cookie(client, admin):
    response = client.post("/api/auth/login", json={"email": "admin@healthclinic.org", "password": "Secret#1"})

    assert response.status_code == 200
    body = response.json()
    assert body["data"]["identity"]["identityId"] == admin.id
    assert body["data"]["redirectTo"] == "/dashboard"
    assert settings.session_cookie_name in response.cookies
    assert "httponly" in response.headers["set-cookie"].lower()

    role = client.get("/api/auth/role")
    assert role.status_code == 200
    assert role.json()["data"]["role"] == "admin"


def test_login_honours_safe_redirect(client, admin):
    response = client.post(
        "/api/auth/login",
        params={"redirect": "/dashboard/users?page=2"},
        json={"email": "admin@healthclinic.org", "password": "Secret#1"},
    )
    assert response.json()["data"]["redirectTo"] == "/dashboard/users?page=2"


@pytest.mark.parametrize("redirect", ["https://evil.example/", "//evil.example", "/patient-ehr"])
def test_login_ignores_foreign_or_forbidden_redirects(client, admin, redirect):
    response = client.post(
        "/api/auth/login",
        params={"redirect": redirect},
        json={"email": "admin@healthclinic.org", "password": "Secret#1"},
    )
    assert response.json()["data"]["redirectTo"] == "/dashboard"


def test_pending_change_wins_over_redirect(client, db, hasher):
    make_identity(db, hasher, Role.STAFF, "desk@healthclinic.org", must_change_password=True)
    response = client.post(
        "/api/auth/login",
        params={"redirect": "/dashboard/patients"},
        json={"email": "desk@healthclinic.org", "password": "Secret#1"},
    )
    assert response.json()["data"]["mustChangePassword"] is True
    assert response.json()["data"]["redirectTo"] == "/dashboard?changePassword=true"


def test_login_failures(client, db, hasher, admin):
    wrong = client.post("/api/auth/login", json={"email": "admin@healthclinic.org", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["code"] == "INVALID_CREDENTIALS"
    assert settings.session_cookie_name not in wrong.cookies

    make_identity(db, hasher, Role.PATIENT, "pat@example.com", national_id="29912345678901")
    patient = client.post("/api/auth/login", json={"email": "pat@example.com", "password": "Secret#1"})
    assert patient.status_code == 403
    assert patient.json()["code"] == "STAFF_LOGIN_ONLY"


def test_patient_login_by_national_id(client, db, hasher):
    make_identity(db, hasher, Role.PATIENT, "pat@example.com", national_id="29912345678901")

    response = client.post("/api/auth/patient-login", json={"nationalId": "29912345678901", "password": "Secret#1"})

    assert response.status_code == 200
    assert response.json()["data"]["redirectTo"] == "/patient-ehr"


def test_inactive_patient_cannot_log_in(client, db, hasher):
    make_identity(db, hasher, Role.PATIENT, "pat@example.com", national_id="29912345678901", status="inactive")
    response = client.post("/api/auth/patient-login", json={"nationalId": "29912345678901", "password": "Secret#1"})
    assert response.status_code == 403
    assert response.json()["code"] == "ACCOUNT_INACTIVE"


def test_register_then_login(client):
    register = client.post("/api/auth/register", json={
        "fullName": "Omar Said", "email": "omar@example.com", "password": "MyPass#1",
    })
    assert register.status_code == 201
    assert register.json()["data"]["mustChangePassword"] is False

    duplicate = client.post("/api/auth/register", json={
        "fullName": "Omar Again", "email": "OMAR@example.com", "password": "MyPass#1",
    })
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "EMAIL_EXISTS"

    login = client.post("/api/auth/login", json={"email": "omar@example.com", "password": "MyPass#1"})
    assert login.status_code == 200
    assert login.json()["data"]["redirectTo"] == "/patient-ehr"
    assert settings.session_cookie_name in login.cookies

    role = client.get("/api/auth/role").json()["data"]
    assert role["role"] == "patient"
    assert role["identityId"] == register.json()["data"]["identityId"]


def test_patient_login_refuses_staff_accounts(client, admin):
    response = client.post("/api/auth/patient-login", json={"nationalId": "admin@healthclinic.org", "password": "Secret#1"})
    assert response.status_code == 403
    assert response.json()["code"] == "PATIENT_LOGIN_ONLY"
    assert settings.session_cookie_name not in response.cookies


def test_change_password_flow(client, db, hasher):
    staff = make_identity(db, hasher, Role.STAFF, "desk@healthclinic.org", password="OldPass1", must_change_password=True)
    login_as(client, staff)

    changed = client.post("/api/auth/change-password", json={"currentPassword": "OldPass1", "newPassword": "NewPass1"})
    assert changed.status_code == 200
    assert changed.json()["data"]["mustChangePassword"] is False

    again = client.post("/api/auth/change-password", json={"currentPassword": "OldPass1", "newPassword": "NewPass2"})
    assert again.status_code == 400
    assert again.json()["code"] == "INVALID_CURRENT_PASSWORD"

    short = client.post("/api/auth/change-password", json={"currentPassword": "NewPass1", "newPassword": "abc"})
    assert short.json()["code"] == "PASSWORD_TOO_SHORT"


def test_provisioned_staff_can_log_in_and_change_password(client, admin):
    client.post("/api/auth/login", json={"email": "admin@healthclinic.org", "password": "Secret#1"})
    client.post("/api/admin/staff", json={"fullName": "Nurse Joy", "email": "joy@healthclinic.org", "role": "staff"})
    client.post("/api/auth/logout")

    login = client.post("/api/auth/login", json={"email": "joy@healthclinic.org", "password": TEMP_PASSWORD})
    assert login.json()["data"]["redirectTo"] == "/dashboard?changePassword=true"

    changed = client.post("/api/auth/change-password", json={"currentPassword": TEMP_PASSWORD, "newPassword": "Fresh#99"})
    assert changed.status_code == 200
    role = client.get("/api/auth/role").json()["data"]
    assert role["email"] == "joy@healthclinic.org"
    assert role["mustChangePassword"] is False


def test_change_password_requires_session(client):
    response = client.post("/api/auth/change-password", json={"currentPassword": "a", "newPassword": "abcdefg"})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_REQUIRED"


def test_logout_clears_cookie(client, admin):
    client.post("/api/auth/login", json={"email": "admin@healthclinic.org", "password": "Secret#1"})
    response = client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert client.get("/api/auth/role").status_code == 401


def test_malformed_session_cookie_is_rejected(client):
    client.cookies.set(settings.session_cookie_name, "not-a-token")
    response = client.get("/api/auth/role")
    assert response.status_code == 401


def test_session_for_unknown_identity_is_rejected(client):
    client.cookies.set(settings.session_cookie_name, create_session_token("ghost", Role.ADMIN.value))
    response = client.get("/api/admin/audit-logs")
    assert response.status_code == 401
