"""
Authentication and account administration routes for the clinic portal.
"""
from fastapi import APIRouter, Depends, Request, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..config import settings
from ..database import get_db
from ..exceptions import ServiceResult
from ..core.audit_service import list_audit_logs
from ..core.permissions import is_patient
from ..core.route_guard import Allow
from ..core.security import CredentialHasher, SecretGenerator, create_session_token
from ..core.sessions import SessionInfo
from .models import Identity, Role
from .schemas import (
    StaffAccountCreate, PatientAccountCreate, AdminPasswordReset, PasswordChange,
    PatientRegistration, StaffLogin, PatientLogin, AuditLogResponse
)
from .dependencies import get_current_identity, get_hasher, get_secret_generator, require_admin
from .service import (
    provision_staff_account, provision_patient_account, admin_reset_password,
    change_own_password, register_patient, authenticate_by_email, authenticate_patient,
    identity_payload
)
from .utils import safe_redirect_target

# Set up logging
logger = logging.getLogger(__name__)

# Create API routers
router = APIRouter(prefix="/api/auth", tags=["Authentication"])
admin_router = APIRouter(prefix="/api/admin", tags=["Account Administration"])

# ============================================================================
# HELPERS
# ============================================================================

def post_login_redirect(request: Request, identity: dict, requested: Optional[str]) -> str:
    """
    Work out where the frontend should send a user after login.

    A pending password change wins, then the page the user originally asked
    for (if it is local and their role may see it), then the role landing.
    """
    guard = request.app.state.route_guard
    role = Role(identity["role"])
    landing = guard.config.patient_landing_path if is_patient(role) else guard.config.staff_landing_path

    if identity["mustChangePassword"]:
        return f"{landing}?changePassword=true"

    target = safe_redirect_target(requested)
    if target:
        session = SessionInfo(identity_id=identity["identityId"], role=role)
        if isinstance(guard.decide(target.split("?", 1)[0], session), Allow):
            return target
    return landing

def login_response(request: Request, result: ServiceResult, requested: Optional[str]) -> JSONResponse:
    """Attach redirectTo and the session cookie to a successful login result."""
    if not result.success:
        return result.to_response()

    identity = result.data["identity"]
    result.data["redirectTo"] = post_login_redirect(request, identity, requested)
    response = result.to_response()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=create_session_token(identity["identityId"], identity["role"]),
        max_age=settings.session_expire_minutes * 60,
        httponly=True,
        samesite="lax",
        secure=settings.session_cookie_secure,
    )
    return response

# ============================================================================
# ADMIN PROVISIONING ROUTES
# ============================================================================

@admin_router.post("/staff", status_code=status.HTTP_201_CREATED, summary="Provision Staff Account")
async def provision_staff_route(
    staff_data: StaffAccountCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_admin: Identity = Depends(require_admin),
    hasher: CredentialHasher = Depends(get_hasher),
    generator: SecretGenerator = Depends(get_secret_generator)
):
    """
    Create a staff login with a temporary password.

    The temporary password is in data.credentials and is shown only in this
    response. The new account must change it at first login.
    """
    result = await provision_staff_account(
        db=db,
        full_name=staff_data.full_name,
        email=staff_data.email,
        role=staff_data.role,
        phone=staff_data.phone,
        permissions=staff_data.permissions,
        hasher=hasher,
        generator=generator,
        actor_id=current_admin.id,
        request=request
    )
    return result.to_response()

@admin_router.post("/patients/create-account", status_code=status.HTTP_201_CREATED, summary="Provision Patient Account")
async def provision_patient_route(
    account_data: PatientAccountCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_admin: Identity = Depends(require_admin),
    hasher: CredentialHasher = Depends(get_hasher),
    generator: SecretGenerator = Depends(get_secret_generator)
):
    """
    Create a login for an existing patient record.

    The username is the patient's national id; the temporary password is
    returned once in data.credentials.
    """
    result = await provision_patient_account(
        db=db,
        patient_id=account_data.patient_id,
        hasher=hasher,
        generator=generator,
        actor_id=current_admin.id,
        request=request
    )
    return result.to_response()

@admin_router.put("/users/{identity_id}/password", summary="Reset User Password")
async def admin_reset_password_route(
    identity_id: str,
    reset_data: AdminPasswordReset,
    request: Request,
    db: Session = Depends(get_db),
    current_admin: Identity = Depends(require_admin),
    hasher: CredentialHasher = Depends(get_hasher),
    generator: SecretGenerator = Depends(get_secret_generator)
):
    """
    Set a new password for any account and force a change at next login.

    Omit newPassword to have a temporary one generated and returned.
    """
    result = await admin_reset_password(
        db=db,
        identity_id=identity_id,
        new_password=reset_data.new_password,
        hasher=hasher,
        generator=generator,
        actor_id=current_admin.id,
        request=request
    )
    return result.to_response()

@admin_router.get("/audit-logs", summary="List Audit Logs")
async def get_audit_logs_route(
    identity_id: Optional[str] = Query(None, alias="identityId"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    current_admin: Identity = Depends(require_admin)
):
    logs = list_audit_logs(db, identity_id=identity_id, limit=limit, offset=offset)
    items = [
        AuditLogResponse(
            id=log.id,
            identity_id=log.identity_id,
            username=log.identity.email if log.identity else None,
            action=log.action,
            details=log.details,
            ip_address=log.ip_address,
            timestamp=log.timestamp,
        ).model_dump(by_alias=True, mode="json")
        for log in logs
    ]
    return ServiceResult.ok(data={"items": items, "limit": limit, "offset": offset}).to_response()

# ============================================================================
# SELF-SERVICE ROUTES
# ============================================================================

@router.post("/change-password", summary="Change Own Password")
async def change_password_route(
    password_data: PasswordChange,
    request: Request,
    db: Session = Depends(get_db),
    current_identity: Identity = Depends(get_current_identity),
    hasher: CredentialHasher = Depends(get_hasher)
):
    """
    Change the caller's own password. Clears any pending forced change.
    """
    result = await change_own_password(
        db=db,
        identity=current_identity,
        current_password=password_data.current_password,
        new_password=password_data.new_password,
        hasher=hasher,
        request=request
    )
    return result.to_response()

@router.get("/role", summary="Current Identity and Role")
async def get_role_route(current_identity: Identity = Depends(get_current_identity)):
    return ServiceResult.ok(data=identity_payload(current_identity)).to_response()

# ============================================================================
# REGISTRATION AND LOGIN ROUTES
# ============================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Patient Self-Registration")
async def register_patient_route(
    patient_data: PatientRegistration,
    request: Request,
    db: Session = Depends(get_db),
    hasher: CredentialHasher = Depends(get_hasher)
):
    result = await register_patient(
        db=db,
        full_name=patient_data.full_name,
        email=patient_data.email,
        password=patient_data.password,
        hasher=hasher,
        request=request
    )
    return result.to_response()

@router.post("/login", summary="Email Login")
async def email_login_route(
    credentials: StaffLogin,
    request: Request,
    redirect: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    hasher: CredentialHasher = Depends(get_hasher)
):
    """
    Email/password login for admins, doctors, staff and self-registered patients.

    On success the session cookie is set and data.redirectTo tells the
    frontend where to go next.
    """
    result = await authenticate_by_email(db, credentials.email, credentials.password, hasher, request)
    return login_response(request, result, redirect)

@router.post("/patient-login", summary="Patient Login")
async def patient_login_route(
    credentials: PatientLogin,
    request: Request,
    redirect: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    hasher: CredentialHasher = Depends(get_hasher)
):
    """
    National-id/password login for patients.
    """
    result = await authenticate_patient(db, credentials.national_id, credentials.password, hasher, request)
    return login_response(request, result, redirect)

@router.post("/logout", summary="Logout")
async def logout_route():
    response = ServiceResult.ok(message="Logged out").to_response()
    response.delete_cookie(key=settings.session_cookie_name, httponly=True, samesite="lax")
    return response
