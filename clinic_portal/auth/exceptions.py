"""
Authentication-specific errors, each with a stable code.
"""
from ..exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    ConflictError,
    InternalError,
    NotFound,
    ValidationError,
)

class InvalidEmailError(ValidationError):
    """Email is not syntactically valid."""
    code = "INVALID_EMAIL"
    message = "Invalid email format"

class InvalidRoleError(ValidationError):
    """Role is not one of the provisionable staff roles."""
    code = "INVALID_ROLE"
    message = "Invalid role. Must be one of: doctor, staff, admin"

class PasswordTooShortError(ValidationError):
    """New password is under the minimum length."""
    code = "PASSWORD_TOO_SHORT"

    def __init__(self, min_length: int):
        super().__init__(f"Password must be at least {min_length} characters long")

class InvalidCurrentPasswordError(ValidationError):
    """Current password does not match the stored hash."""
    code = "INVALID_CURRENT_PASSWORD"
    message = "Current password is incorrect"

class InvalidCredentialsError(AuthenticationRequired):
    """Login with an unknown account or a wrong password."""
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials"

class AccountInactiveError(AuthorizationDenied):
    """The linked staff or patient record is deactivated."""
    code = "ACCOUNT_INACTIVE"
    message = "Account has been deactivated"

class StaffLoginOnlyError(AuthorizationDenied):
    """A clinic-provisioned patient used the email login."""
    code = "STAFF_LOGIN_ONLY"
    message = "Patients registered by the clinic sign in with their national ID"

class PatientLoginOnlyError(AuthorizationDenied):
    """A staff or admin account used the patient login."""
    code = "PATIENT_LOGIN_ONLY"
    message = "This login is for patients only"

class RoleDeniedError(AuthorizationDenied):
    """Authenticated, but the role is not allowed on this endpoint."""
    def __init__(self, required_roles: list, user_role: str):
        super().__init__(f"Access denied. Required roles: {required_roles}. Your role: {user_role}")

class AccountNotFoundError(NotFound):
    """No password credential exists for the identity."""
    code = "ACCOUNT_NOT_FOUND"
    message = "Account not found"

class PatientNotFoundError(NotFound):
    code = "PATIENT_NOT_FOUND"
    message = "Patient not found"

class EmailAlreadyExistsError(ConflictError):
    code = "EMAIL_EXISTS"
    message = "Email already exists"

class AccountAlreadyExistsError(ConflictError):
    """The patient record is already linked to an identity."""
    code = "ACCOUNT_ALREADY_EXISTS"
    message = "Patient already has an account"

class StorageError(InternalError):
    """The transaction failed and was rolled back."""
    message = "Internal server error"
