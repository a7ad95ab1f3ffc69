"""
Auth Schemas - Pydantic models for request validation and response serialization.

Wire format uses camelCase keys; snake_case field names are accepted on input too.
"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import datetime
from .models import Role

class CamelModel(BaseModel):
    """Base schema: camelCase aliases on the wire, field names accepted on input."""

    class Config:
        populate_by_name = True
        from_attributes = True

# ============================================================================
# REQUESTS
# ============================================================================

class StaffAccountCreate(CamelModel):
    """
    Staff Account Creation Schema - Used when an admin provisions a staff account

    Fields:
    - full_name: Staff member's name
    - email: Login email, validated and normalized by the service
    - role: doctor, staff or admin (validated by the service)
    - phone: Contact number (optional)
    - permissions: Dashboard permission labels (optional)
    """
    full_name: str = Field(..., alias="fullName", min_length=1)
    email: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)
    phone: Optional[str] = None
    permissions: Optional[List[str]] = None

class PatientAccountCreate(CamelModel):
    """
    Patient Account Creation Schema - Admin provisions a login for an existing patient record
    """
    patient_id: int = Field(..., alias="patientId", ge=1)

class AdminPasswordReset(CamelModel):
    """
    Admin Password Reset Schema

    Fields:
    - new_password: Password to set. When omitted a temporary password is
      generated and returned once.
    """
    new_password: Optional[str] = Field(None, alias="newPassword")

class PasswordChange(CamelModel):
    """
    Password Change Schema - Used by an authenticated user to change their own password

    Fields:
    - current_password: The password in use now
    - new_password: New desired password
    """
    current_password: str = Field(..., alias="currentPassword", min_length=1)
    new_password: str = Field(..., alias="newPassword", min_length=1)

class PatientRegistration(CamelModel):
    """
    Patient Registration Schema - Used for patient self-registration
    """
    full_name: str = Field(..., alias="fullName", min_length=1)
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

class StaffLogin(CamelModel):
    """
    Email Login Schema - Email and password (staff and self-registered patients)
    """
    email: str
    password: str

class PatientLogin(CamelModel):
    """
    Patient Login Schema - National ID and password
    """
    national_id: str = Field(..., alias="nationalId", min_length=1)
    password: str

# ============================================================================
# RESPONSES
# ============================================================================

class IdentityResponse(CamelModel):
    """
    Identity Response Schema - Public view of an Identity (no secrets)
    """
    id: str = Field(..., serialization_alias="identityId")
    full_name: str = Field(..., alias="name")
    email: str
    role: Role
    must_change_password: bool = Field(..., alias="mustChangePassword")
    email_verified: bool = Field(..., alias="emailVerified")

class StaffResponse(CamelModel):
    """
    Staff Response Schema - Staff profile as returned after provisioning
    """
    id: int
    identity_id: Optional[str] = Field(None, alias="identityId")
    full_name: str = Field(..., alias="fullName")
    role: Role
    phone: Optional[str] = None
    permissions: Optional[List[str]] = None
    status: str
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

class IssuedCredentials(CamelModel):
    """
    Temporary login details, returned exactly once to the admin who asked for them.
    """
    username: str
    password: str

class AuditLogResponse(CamelModel):
    """
    Schema for returning Audit Log entries.

    Fields:
    - id: Audit Log ID
    - identity_id: Identity that performed the action (if applicable)
    - username: Email of that identity (if applicable)
    - action: Description of the action performed
    - details: Additional context
    - ip_address: IP address the action came from
    - timestamp: When the action occurred
    """
    id: int
    identity_id: Optional[str] = Field(None, alias="identityId")
    username: Optional[str] = None
    action: str
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = Field(None, alias="ipAddress")
    timestamp: Optional[datetime] = None
