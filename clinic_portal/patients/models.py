"""
Patient Model - Stores patient-specific information.

Patients are registered by the clinic first; a login account is provisioned
later and linked through identity_id.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, func
from sqlalchemy.orm import relationship, validates
from ..database import Base
from ..auth.models import ensure_identity_link_immutable

SYNTHETIC_EMAIL_TEMPLATE = "patient_{national_id}@temp.local"

class Patient(Base):
    """
    Patient Model - Stores patient-specific information

    Fields:
    - id: Primary key for patient profile
    - identity_id: Linked Identity, NULL until an account is provisioned
    - national_id: National identifier, unique; also the patient's login username
    - full_name: Patient's name
    - phone: Contact number
    - email: Real email address, if the clinic has one
    - status: active, inactive or completed
    """
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    identity_id = Column(String(32), ForeignKey("identities.id"), unique=True, nullable=True)
    national_id = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    identity = relationship("Identity", back_populates="patient_profile")

    @validates("identity_id")
    def _validate_identity_id(self, key, value):
        return ensure_identity_link_immutable(self, value)

    def __repr__(self):
        """String representation of the Patient model"""
        return f"<Patient(id={self.id}, identity_id={self.identity_id})>"

    @property
    def has_account(self) -> bool:
        return self.identity_id is not None

    @property
    def is_active(self) -> bool:
        # "completed" patients keep read access to their records
        return self.status != "inactive"

    @property
    def login_email(self) -> str:
        """Email for the patient's Identity: the real one, else a synthetic one."""
        if self.email and self.email.strip():
            return self.email.strip().lower()
        return SYNTHETIC_EMAIL_TEMPLATE.format(national_id=self.national_id)
