"""
Application configuration settings loaded from environment variables.
Uses pydantic_settings for validation and type conversion.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    """
    Application settings class with environment variable validation.

    Attributes:
        database_url: SQLAlchemy connection string
        secret_key: Secret key for session token signing
        algorithm: Algorithm used for session token signing (typically HS256)
        session_expire_minutes: Session lifetime in minutes
        session_cookie_name: Name of the cookie carrying the session token
        session_cookie_secure: Whether the session cookie is HTTPS-only

        # Credential policy
        bcrypt_rounds: bcrypt work factor for password hashes
        temp_password_length: Length of generated temporary passwords
        min_password_length: Minimum length of user-chosen passwords

        # Route access matrix
        login_path: Page unauthenticated callers are sent to
        staff_landing_path: Default landing page for admin/doctor/staff
        patient_landing_path: Landing page for patients
        admin_route_prefixes: Page prefixes reserved for admins
        staff_route_prefixes: Page prefixes shared by admin/doctor/staff
        patient_route_prefixes: Page prefixes reserved for patients

        # Bootstrap admin settings (optional)
        bootstrap_admin_email: Optional admin email for first admin creation
        bootstrap_admin_password: Optional admin password for first admin creation
    """
    # Database settings
    database_url: str = "sqlite:///./clinic_portal.db"

    # Session settings
    secret_key: str = "change-this-secret-key-in-production"
    algorithm: str = "HS256"
    session_expire_minutes: int = 60 * 12
    session_cookie_name: str = "clinic_session"
    session_cookie_secure: bool = False

    # Credential policy
    bcrypt_rounds: int = 10
    temp_password_length: int = 8
    min_password_length: int = 6

    # Route access matrix
    login_path: str = "/login"
    staff_landing_path: str = "/dashboard"
    patient_landing_path: str = "/patient-ehr"
    admin_route_prefixes: List[str] = ["/dashboard/staff", "/dashboard/cms", "/dashboard/users"]
    staff_route_prefixes: List[str] = [
        "/dashboard",
        "/dashboard/patients",
        "/dashboard/appointments",
        "/dashboard/messages",
    ]
    patient_route_prefixes: List[str] = ["/patient-ehr"]

    # Frontend settings
    cors_origins: List[str] = ["http://localhost:3000"]

    # Bootstrap admin settings (optional - only used for first admin creation)
    bootstrap_admin_email: Optional[str] = None
    bootstrap_admin_password: Optional[str] = None

    class Config:
        """Configuration for environment variables loading"""
        env_file = ".env"
        case_sensitive = False

# Create settings instance
settings = Settings()
