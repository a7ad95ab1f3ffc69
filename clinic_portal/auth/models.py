"""
Identity and Credential models - the authenticatable principals of the portal.

An Identity is one login-capable person; a Credential is one login method for
that Identity. Domain profiles (Staff, Patient) point back at an Identity.
"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
import uuid
from ..database import Base

PASSWORD_PROVIDER = "password"


class Role(str, enum.Enum):
    """
    Enumeration for roles in the clinic portal.

    Roles:
    - ADMIN: Clinic administrators, full dashboard access
    - DOCTOR: Practitioners, shared staff dashboard
    - STAFF: Front desk and assistants, shared staff dashboard
    - PATIENT: Patients, patient EHR pages only
    """
    ADMIN = "admin"
    DOCTOR = "doctor"
    STAFF = "staff"
    PATIENT = "patient"


STAFF_ROLES = (Role.DOCTOR, Role.STAFF, Role.ADMIN)


def new_identity_id() -> str:
    return uuid.uuid4().hex


class Identity(Base):
    """
    Identity Model - one row per authenticatable principal

    Fields:
    - id: Opaque identifier
    - full_name: Display name
    - email: Normalized (trimmed, lower-cased) unique email
    - role: Portal role
    - must_change_password: Set when the current password was issued by an admin
    - email_verified: Whether the email has been verified
    - created_at / updated_at: Timestamps

    Identities are never deleted; they are deactivated through the status of
    their linked domain profile.
    """
    __tablename__ = "identities"

    id = Column(String(32), primary_key=True, default=new_identity_id)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(Enum(Role, values_callable=lambda roles: [r.value for r in roles]), nullable=False)
    must_change_password = Column(Boolean, nullable=False, default=False)
    email_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    credentials = relationship("Credential", back_populates="identity")
    staff_profile = relationship("Staff", back_populates="identity", uselist=False)
    patient_profile = relationship("Patient", back_populates="identity", uselist=False)

    def __repr__(self):
        return f"<Identity(id={self.id}, role='{self.role.value if self.role else None}')>"

    @property
    def profile(self):
        """The linked domain profile, if any."""
        return self.staff_profile or self.patient_profile


class Credential(Base):
    """
    Credential Model - one login method for an Identity

    Fields:
    - identity_id: Owning identity
    - provider_kind: Login method, always "password" here
    - account_id: Username used with this login method (email, or national id for patients)
    - password_hash: Salted adaptive hash, never the plain password
    """
    __tablename__ = "credentials"
    __table_args__ = (
        UniqueConstraint("identity_id", "provider_kind", name="uq_credentials_identity_provider"),
        UniqueConstraint("provider_kind", "account_id", name="uq_credentials_provider_account"),
    )

    id = Column(Integer, primary_key=True, index=True)
    identity_id = Column(String(32), ForeignKey("identities.id", ondelete="CASCADE"), nullable=False)
    provider_kind = Column(String, nullable=False, default=PASSWORD_PROVIDER)
    account_id = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    identity = relationship("Identity", back_populates="credentials")

    def __repr__(self):
        return f"<Credential(id={self.id}, identity_id={self.identity_id}, provider='{self.provider_kind}')>"


class IdentityLinkError(ValueError):
    """Raised when code tries to relink a domain profile to another identity."""


def ensure_identity_link_immutable(profile, value):
    """
    Validator shared by domain profiles: identity_id may go from NULL to a
    value once, never change afterwards.
    """
    current = profile.identity_id
    if current is not None and value != current:
        raise IdentityLinkError(
            f"{type(profile).__name__} {profile.id} is already linked to identity {current}"
        )
    return value
