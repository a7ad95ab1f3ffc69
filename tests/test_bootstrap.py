"""
Tests for first admin creation at startup.
"""
from clinic_portal.auth.models import Identity, Role
from clinic_portal.config import settings
from clinic_portal.core.bootstrap import admin_exists, bootstrap_admin_if_needed


def configure(monkeypatch, email="Root@HealthClinic.org", password="Bootstrap#1"):
    monkeypatch.setattr(settings, "bootstrap_admin_email", email)
    monkeypatch.setattr(settings, "bootstrap_admin_password", password)


def test_bootstrap_creates_admin_once(db, hasher, monkeypatch):
    configure(monkeypatch)

    bootstrap_admin_if_needed(db, hasher)
    bootstrap_admin_if_needed(db, hasher)

    admins = db.query(Identity).filter(Identity.role == Role.ADMIN).all()
    assert len(admins) == 1
    admin = admins[0]
    assert admin.email == "root@healthclinic.org"
    assert admin.must_change_password is False
    assert admin.staff_profile.role == Role.ADMIN


def test_bootstrap_admin_can_log_in(client, monkeypatch, db, hasher):
    configure(monkeypatch)
    bootstrap_admin_if_needed(db, hasher)

    response = client.post("/api/auth/login", json={"email": "root@healthclinic.org", "password": "Bootstrap#1"})
    assert response.status_code == 200
    assert response.json()["data"]["redirectTo"] == "/dashboard"


def test_bootstrap_skipped_without_settings(db, hasher, monkeypatch):
    configure(monkeypatch, email=None, password=None)
    bootstrap_admin_if_needed(db, hasher)
    assert not admin_exists(db)


def test_bootstrap_skipped_when_admin_exists(db, hasher, admin, monkeypatch):
    configure(monkeypatch)
    bootstrap_admin_if_needed(db, hasher)
    assert db.query(Identity).filter(Identity.email == "root@healthclinic.org").count() == 0
