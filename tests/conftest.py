"""
Test configuration for the clinic portal.
"""
import os

# Settings are read at import time, so configure before importing the app
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("BOOTSTRAP_ADMIN_EMAIL", None)
os.environ.pop("BOOTSTRAP_ADMIN_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_portal.auth.dependencies import get_hasher, get_secret_generator
from clinic_portal.auth.models import PASSWORD_PROVIDER, Credential, Identity, Role
from clinic_portal.config import settings
from clinic_portal.core.security import BcryptHasher, create_session_token
from clinic_portal.database import Base, get_db
from clinic_portal.main import app
from clinic_portal.patients.models import Patient
from clinic_portal.staff.models import Staff

# Test database URL
TEST_DATABASE_URL = "sqlite://"

# Create test database engine
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEMP_PASSWORD = "Tmp#Pas1"


class FixedSecretGenerator:
    """Hands out the same temporary password every time."""

    def __init__(self, password: str = TEMP_PASSWORD):
        self.password = password
        self.calls = 0

    def generate_password(self, length: int = 8) -> str:
        self.calls += 1
        return self.password


@pytest.fixture(scope="session")
def hasher():
    return BcryptHasher(rounds=4)


@pytest.fixture
def generator():
    return FixedSecretGenerator()


@pytest.fixture(scope="function")
def db():
    """
    Create a fresh database for each test.
    """
    # Create tables
    Base.metadata.create_all(bind=engine)

    # Create session
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    # Drop tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db, hasher, generator):
    """
    Create a test client with a test database session.
    """
    def override_get_db():
        try:
            yield db
        finally:
            pass

    # Override the dependencies
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_hasher] = lambda: hasher
    app.dependency_overrides[get_secret_generator] = lambda: generator

    # Create test client
    with TestClient(app) as client:
        yield client

    # Remove dependency overrides
    app.dependency_overrides = {}


def make_identity(db, hasher, role, email, password="Secret#1", must_change_password=False,
                  status="active", national_id=None):
    """
    Insert an Identity with a password Credential and its domain profile.

    Staff roles get a Staff row; patients get a Patient row whose national id
    is also the login username.
    """
    identity = Identity(
        full_name=f"Test {role.value.title()}",
        email=email,
        role=role,
        must_change_password=must_change_password,
    )
    db.add(identity)
    db.flush()

    account_id = national_id if role == Role.PATIENT and national_id else email
    db.add(Credential(
        identity_id=identity.id,
        provider_kind=PASSWORD_PROVIDER,
        account_id=account_id,
        password_hash=hasher.hash(password),
    ))
    if role == Role.PATIENT:
        db.add(Patient(
            identity_id=identity.id,
            national_id=national_id or f"nid-{identity.id[:8]}",
            full_name=identity.full_name,
            email=email,
            status=status,
        ))
    else:
        db.add(Staff(identity_id=identity.id, full_name=identity.full_name, role=role, status=status))
    db.commit()
    db.refresh(identity)
    return identity


def login_as(client, identity):
    """Put a session cookie for the identity into the client's cookie jar."""
    client.cookies.set(settings.session_cookie_name, create_session_token(identity.id, identity.role.value))
    return client


@pytest.fixture
def admin(db, hasher):
    return make_identity(db, hasher, Role.ADMIN, "admin@healthclinic.org")


@pytest.fixture
def admin_client(client, admin):
    return login_as(client, admin)
