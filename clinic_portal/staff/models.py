"""
Staff Model - Stores staff-specific information.

Staff records are created together with their Identity when an admin
provisions the account.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON, Enum, func
from sqlalchemy.orm import relationship, validates
from ..database import Base
from ..auth.models import Role, ensure_identity_link_immutable

class Staff(Base):
    """
    Staff Model - Stores staff-specific information

    Fields:
    - id: Primary key for staff profile
    - identity_id: Linked Identity (set once, never changed)
    - full_name: Staff member's name
    - role: doctor, staff or admin
    - phone: Contact number
    - permissions: Free-form list of permission labels shown in the dashboard
    - status: active or inactive; inactive staff cannot log in
    """
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, index=True)
    identity_id = Column(String(32), ForeignKey("identities.id"), unique=True, nullable=True)
    full_name = Column(String, nullable=False)
    role = Column(Enum(Role, values_callable=lambda roles: [r.value for r in roles]), nullable=False)
    phone = Column(String, nullable=True)
    permissions = Column(JSON, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    identity = relationship("Identity", back_populates="staff_profile")

    @validates("identity_id")
    def _validate_identity_id(self, key, value):
        return ensure_identity_link_immutable(self, value)

    def __repr__(self):
        """String representation of the Staff model"""
        return f"<Staff(id={self.id}, identity_id={self.identity_id}, role='{self.role}')>"

    @property
    def is_active(self) -> bool:
        return self.status == "active"
