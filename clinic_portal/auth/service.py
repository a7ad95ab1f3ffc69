"""
Credential lifecycle service: provisioning, password rotation and login checks.

Every operation runs in one transaction and returns a ServiceResult. Expected
failures (bad input, conflicts, wrong passwords) come back as failed results
with a stable code; storage failures are rolled back, logged, and returned as
INTERNAL_ERROR.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from fastapi import Request, status

from ..config import settings
from ..core.audit_service import create_audit_log
from ..core.security import CredentialHasher, SecretGenerator
from ..exceptions import PortalError, ServiceResult
from ..patients.models import Patient
from ..staff.models import Staff
from .exceptions import (
    AccountAlreadyExistsError,
    AccountInactiveError,
    AccountNotFoundError,
    EmailAlreadyExistsError,
    InvalidCredentialsError,
    InvalidCurrentPasswordError,
    InvalidEmailError,
    InvalidRoleError,
    PasswordTooShortError,
    PatientLoginOnlyError,
    PatientNotFoundError,
    StaffLoginOnlyError,
    StorageError,
)
from .models import PASSWORD_PROVIDER, STAFF_ROLES, Credential, Identity, Role
from .schemas import IdentityResponse, IssuedCredentials, StaffResponse
from .utils import is_valid_email, normalize_email

# Set up logging
logger = logging.getLogger(__name__)

# ============================================================================
# HELPERS
# ============================================================================

def get_password_credential(db: Session, identity_id: str) -> Optional[Credential]:
    """Get the password credential of an identity, if it has one."""
    return (
        db.query(Credential)
        .filter(Credential.identity_id == identity_id, Credential.provider_kind == PASSWORD_PROVIDER)
        .first()
    )

def email_taken(db: Session, email: str) -> bool:
    return db.query(Identity.id).filter(Identity.email == email).first() is not None

def identity_payload(identity: Identity) -> Dict[str, Any]:
    return IdentityResponse.model_validate(identity).model_dump(by_alias=True, mode="json")

def issued_credentials(username: str, password: str) -> Dict[str, Any]:
    return IssuedCredentials(username=username, password=password).model_dump()

def _add_identity_with_credential(
    db: Session,
    full_name: str,
    email: str,
    role: Role,
    account_id: str,
    password_hash: str,
    must_change_password: bool,
    email_verified: bool = False
) -> Tuple[Identity, Credential]:
    """
    Stage an Identity and its password Credential in the open transaction.

    Nothing is committed; the caller commits together with its other writes.
    """
    identity = Identity(
        full_name=full_name,
        email=email,
        role=role,
        must_change_password=must_change_password,
        email_verified=email_verified,
    )
    db.add(identity)
    db.flush()

    credential = Credential(
        identity_id=identity.id,
        provider_kind=PASSWORD_PROVIDER,
        account_id=account_id,
        password_hash=password_hash,
    )
    db.add(credential)
    db.flush()
    return identity, credential

def _storage_failure(db: Session, operation: str, error: SQLAlchemyError) -> ServiceResult:
    db.rollback()
    logger.exception(f"{operation} failed and was rolled back: {error.__class__.__name__}")
    return ServiceResult.fail(StorageError())

def _too_short(password: Optional[str]) -> bool:
    return password is None or len(password) < settings.min_password_length

# ============================================================================
# ADMIN PROVISIONING
# ============================================================================

async def provision_staff_account(
    db: Session,
    full_name: str,
    email: str,
    role: str,
    hasher: CredentialHasher,
    generator: SecretGenerator,
    phone: Optional[str] = None,
    permissions: Optional[List[str]] = None,
    actor_id: Optional[str] = None,
    request: Optional[Request] = None
) -> ServiceResult:
    """
    Create a staff login: Identity, password Credential and Staff profile.

    Args:
        db: Database session
        full_name: Staff member's name
        email: Login email (validated and normalized here)
        role: doctor, staff or admin
        hasher: Password hasher
        generator: Temporary password generator
        phone: Contact number (optional)
        permissions: Dashboard permission labels (optional)
        actor_id: Identity id of the admin performing the action
        request: FastAPI request object for audit logging

    Returns:
        ServiceResult whose data holds the staff profile and, once only, the
        temporary credentials. Failure codes: INVALID_ROLE, INVALID_EMAIL,
        EMAIL_EXISTS, INTERNAL_ERROR.
    """
    try:
        staff_role = Role(role)
    except ValueError:
        staff_role = None
    if staff_role not in STAFF_ROLES:
        logger.warning(f"Staff provisioning rejected: invalid role {role!r}")
        return ServiceResult.fail(InvalidRoleError())

    normalized_email = normalize_email(email)
    if not is_valid_email(normalized_email):
        return ServiceResult.fail(InvalidEmailError())

    if email_taken(db, normalized_email):
        logger.warning(f"Staff provisioning failed: email {normalized_email} already registered")
        await create_audit_log(db, action="STAFF_PROVISIONING_FAILED_EMAIL_EXISTS", identity_id=actor_id, request=request, details={"email": normalized_email})
        return ServiceResult.fail(EmailAlreadyExistsError())

    temp_password = generator.generate_password(settings.temp_password_length)

    try:
        identity, _ = _add_identity_with_credential(
            db,
            full_name=full_name.strip(),
            email=normalized_email,
            role=staff_role,
            account_id=normalized_email,
            password_hash=hasher.hash(temp_password),
            must_change_password=True,
        )
        staff = Staff(
            identity_id=identity.id,
            full_name=full_name.strip(),
            role=staff_role,
            phone=phone.strip() if phone and phone.strip() else None,
            permissions=permissions,
            status="active",
        )
        db.add(staff)
        await create_audit_log(
            db,
            action="STAFF_ACCOUNT_PROVISIONED",
            identity_id=actor_id,
            request=request,
            details={"target_identity_id": identity.id, "email": normalized_email, "role": staff_role.value},
            commit=False
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(f"Staff provisioning lost a race for email {normalized_email}")
        return ServiceResult.fail(EmailAlreadyExistsError())
    except SQLAlchemyError as e:
        return _storage_failure(db, "Staff provisioning", e)

    db.refresh(staff)
    logger.info(f"Staff account provisioned: identity {identity.id} ({staff_role.value}) by {actor_id}")

    return ServiceResult.ok(
        data={
            "staff": StaffResponse.model_validate(staff).model_dump(by_alias=True, mode="json"),
            "identityId": identity.id,
            "email": normalized_email,
            "mustChangePassword": True,
            "credentials": issued_credentials(normalized_email, temp_password),
        },
        message="Staff account created successfully",
        status_code=status.HTTP_201_CREATED,
    )

async def provision_patient_account(
    db: Session,
    patient_id: int,
    hasher: CredentialHasher,
    generator: SecretGenerator,
    actor_id: Optional[str] = None,
    request: Optional[Request] = None
) -> ServiceResult:
    """
    Create a login for an existing patient record and link it permanently.

    The patient's username is their national id. Patients without an email get
    a synthetic one derived from the national id.

    Args:
        db: Database session
        patient_id: Patient record id
        hasher: Password hasher
        generator: Temporary password generator
        actor_id: Identity id of the admin performing the action
        request: FastAPI request object for audit logging

    Returns:
        ServiceResult with the temporary credentials. Failure codes:
        PATIENT_NOT_FOUND, ACCOUNT_ALREADY_EXISTS, EMAIL_EXISTS, INTERNAL_ERROR.
    """
    patient = db.get(Patient, patient_id)
    if patient is None:
        return ServiceResult.fail(PatientNotFoundError())

    if patient.has_account:
        logger.warning(f"Patient {patient_id} already linked to identity {patient.identity_id}")
        await create_audit_log(db, action="PATIENT_PROVISIONING_FAILED_ACCOUNT_EXISTS", identity_id=actor_id, request=request, details={"patient_id": patient_id})
        return ServiceResult.fail(AccountAlreadyExistsError())

    login_email = patient.login_email
    if email_taken(db, login_email):
        logger.warning(f"Patient provisioning failed: email {login_email} already registered")
        return ServiceResult.fail(EmailAlreadyExistsError())

    temp_password = generator.generate_password(settings.temp_password_length)

    try:
        identity, _ = _add_identity_with_credential(
            db,
            full_name=patient.full_name,
            email=login_email,
            role=Role.PATIENT,
            account_id=patient.national_id,
            password_hash=hasher.hash(temp_password),
            must_change_password=True,
        )
        # Link only if nobody else did in the meantime
        linked = db.execute(
            update(Patient)
            .where(Patient.id == patient_id, Patient.identity_id.is_(None))
            .values(identity_id=identity.id)
            .execution_options(synchronize_session=False)
        ).rowcount
        if linked != 1:
            db.rollback()
            logger.warning(f"Patient {patient_id} was linked by a concurrent request")
            return ServiceResult.fail(AccountAlreadyExistsError())

        await create_audit_log(
            db,
            action="PATIENT_ACCOUNT_PROVISIONED",
            identity_id=actor_id,
            request=request,
            details={"patient_id": patient_id, "target_identity_id": identity.id},
            commit=False
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        db.expire_all()
        if db.get(Patient, patient_id).has_account:
            return ServiceResult.fail(AccountAlreadyExistsError())
        return ServiceResult.fail(EmailAlreadyExistsError())
    except SQLAlchemyError as e:
        return _storage_failure(db, "Patient provisioning", e)

    db.refresh(patient)
    logger.info(f"Patient account provisioned: patient {patient_id} -> identity {identity.id} by {actor_id}")

    return ServiceResult.ok(
        data={
            "patientId": patient.id,
            "identityId": identity.id,
            "email": login_email,
            "mustChangePassword": True,
            "credentials": issued_credentials(patient.national_id, temp_password),
        },
        message="Patient account created successfully. Please save the credentials.",
        status_code=status.HTTP_201_CREATED,
    )

# ============================================================================
# PASSWORD ROTATION
# ============================================================================

async def admin_reset_password(
    db: Session,
    identity_id: str,
    hasher: CredentialHasher,
    generator: SecretGenerator,
    new_password: Optional[str] = None,
    actor_id: Optional[str] = None,
    request: Optional[Request] = None
) -> ServiceResult:
    """
    Replace an identity's password and force a change at next login.

    Args:
        db: Database session
        identity_id: Target identity
        hasher: Password hasher
        generator: Temporary password generator, used when new_password is None
        new_password: Admin-chosen password (optional)
        actor_id: Identity id of the admin performing the action
        request: FastAPI request object for audit logging

    Returns:
        ServiceResult; generated passwords are returned once in
        data.credentials. Failure codes: ACCOUNT_NOT_FOUND, PASSWORD_TOO_SHORT,
        INTERNAL_ERROR.
    """
    credential = get_password_credential(db, identity_id)
    if credential is None:
        logger.warning(f"Password reset failed: no credential for identity {identity_id}")
        return ServiceResult.fail(AccountNotFoundError())

    generated = new_password is None
    if generated:
        new_password = generator.generate_password(settings.temp_password_length)
    elif _too_short(new_password):
        return ServiceResult.fail(PasswordTooShortError(settings.min_password_length))

    identity = credential.identity
    try:
        credential.password_hash = hasher.hash(new_password)
        identity.must_change_password = True
        await create_audit_log(
            db,
            action="PASSWORD_RESET_BY_ADMIN",
            identity_id=actor_id,
            request=request,
            details={"target_identity_id": identity_id, "generated": generated},
            commit=False
        )
        db.commit()
    except SQLAlchemyError as e:
        return _storage_failure(db, "Admin password reset", e)

    logger.info(f"Password of identity {identity_id} reset by admin {actor_id}")

    data: Dict[str, Any] = {"identityId": identity_id, "mustChangePassword": True}
    if generated:
        data["credentials"] = issued_credentials(credential.account_id, new_password)
    return ServiceResult.ok(data=data, message="Password reset successfully")

async def change_own_password(
    db: Session,
    identity: Identity,
    current_password: str,
    new_password: str,
    hasher: CredentialHasher,
    request: Optional[Request] = None
) -> ServiceResult:
    """
    Allows an authenticated user to change their own password.

    This is the only operation that clears must_change_password.

    Args:
        db: Database session
        identity: The authenticated identity
        current_password: Password in use now
        new_password: New desired password
        hasher: Password hasher
        request: FastAPI request object for audit logging

    Returns:
        ServiceResult. Failure codes: PASSWORD_TOO_SHORT, ACCOUNT_NOT_FOUND,
        INVALID_CURRENT_PASSWORD, INTERNAL_ERROR.
    """
    if _too_short(new_password):
        return ServiceResult.fail(PasswordTooShortError(settings.min_password_length))

    credential = get_password_credential(db, identity.id)
    if credential is None:
        return ServiceResult.fail(AccountNotFoundError())

    if not hasher.verify(current_password, credential.password_hash):
        await create_audit_log(
            db,
            action="PASSWORD_CHANGE_FAILED_WRONG_CURRENT",
            identity_id=identity.id,
            request=request
        )
        return ServiceResult.fail(InvalidCurrentPasswordError())

    try:
        credential.password_hash = hasher.hash(new_password)
        identity.must_change_password = False
        await create_audit_log(db, action="PASSWORD_CHANGED", identity_id=identity.id, request=request, commit=False)
        db.commit()
    except SQLAlchemyError as e:
        return _storage_failure(db, "Password change", e)

    logger.info(f"Identity {identity.id} changed their password")
    return ServiceResult.ok(data={"mustChangePassword": False}, message="Password changed successfully")

# ============================================================================
# SELF-REGISTRATION AND LOGIN
# ============================================================================

async def register_patient(
    db: Session,
    full_name: str,
    email: str,
    password: str,
    hasher: CredentialHasher,
    request: Optional[Request] = None
) -> ServiceResult:
    """
    Patient self-registration. The password is chosen by the patient, so no
    change is forced.

    Returns:
        ServiceResult with the new identity. Failure codes: INVALID_EMAIL,
        PASSWORD_TOO_SHORT, EMAIL_EXISTS, INTERNAL_ERROR.
    """
    normalized_email = normalize_email(email)
    if not is_valid_email(normalized_email):
        return ServiceResult.fail(InvalidEmailError())
    if _too_short(password):
        return ServiceResult.fail(PasswordTooShortError(settings.min_password_length))
    if email_taken(db, normalized_email):
        logger.warning(f"Registration failed: email {normalized_email} already registered")
        return ServiceResult.fail(EmailAlreadyExistsError())

    try:
        identity, _ = _add_identity_with_credential(
            db,
            full_name=full_name.strip(),
            email=normalized_email,
            role=Role.PATIENT,
            account_id=normalized_email,
            password_hash=hasher.hash(password),
            must_change_password=False,
        )
        await create_audit_log(
            db,
            action="PATIENT_SELF_REGISTERED",
            identity_id=identity.id,
            request=request,
            details={"email": normalized_email},
            commit=False
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        return ServiceResult.fail(EmailAlreadyExistsError())
    except SQLAlchemyError as e:
        return _storage_failure(db, "Patient registration", e)

    logger.info(f"Patient self-registered: identity {identity.id}")
    return ServiceResult.ok(
        data=identity_payload(identity),
        message="Registered successfully",
        status_code=status.HTTP_201_CREATED,
    )

async def _authenticate(
    db: Session,
    credential: Optional[Credential],
    account_id: str,
    password: str,
    hasher: CredentialHasher,
    request: Optional[Request],
    check_login_kind: Callable[[Identity, Credential], Optional[PortalError]]
) -> ServiceResult:
    if credential is None:
        hasher.dummy_verify()
        await create_audit_log(db, action="LOGIN_FAILED_INVALID_CREDENTIALS", request=request, details={"account": account_id})
        return ServiceResult.fail(InvalidCredentialsError())

    identity = credential.identity
    if not hasher.verify(password, credential.password_hash):
        logger.warning(f"Login failed: invalid credentials for identity {identity.id}")
        await create_audit_log(db, action="LOGIN_FAILED_INVALID_CREDENTIALS", identity_id=identity.id, request=request, details={"account": account_id})
        return ServiceResult.fail(InvalidCredentialsError())

    profile = identity.profile
    if profile is not None and not profile.is_active:
        logger.warning(f"Login refused: identity {identity.id} is deactivated")
        return ServiceResult.fail(AccountInactiveError())

    refusal = check_login_kind(identity, credential)
    if refusal is not None:
        logger.warning(f"Login refused: identity {identity.id} ({identity.role.value}) used the wrong login ({refusal.code})")
        await create_audit_log(db, action=f"LOGIN_REFUSED_{refusal.code}", identity_id=identity.id, request=request)
        return ServiceResult.fail(refusal)

    await create_audit_log(db, action="LOGIN_SUCCESS", identity_id=identity.id, request=request)
    logger.info(f"Login successful: identity {identity.id}")
    return ServiceResult.ok(
        data={"identity": identity_payload(identity), "mustChangePassword": identity.must_change_password},
        message="Login successful",
    )

def _email_login_kind(identity: Identity, credential: Credential) -> Optional[PortalError]:
    # Clinic-provisioned patients sign in with their national id
    if identity.role == Role.PATIENT and credential.account_id != identity.email:
        return StaffLoginOnlyError()
    return None

def _patient_login_kind(identity: Identity, credential: Credential) -> Optional[PortalError]:
    if identity.role != Role.PATIENT:
        return PatientLoginOnlyError()
    return None

async def authenticate_by_email(
    db: Session,
    email: str,
    password: str,
    hasher: CredentialHasher,
    request: Optional[Request] = None
) -> ServiceResult:
    """
    Check an email/password login.

    Admins, doctors, staff and self-registered patients sign in here.
    Patients whose account was provisioned by the clinic log in with their
    national id and are turned away.

    Returns:
        ServiceResult with the identity. Failure codes: INVALID_CREDENTIALS,
        ACCOUNT_INACTIVE, STAFF_LOGIN_ONLY.
    """
    normalized_email = normalize_email(email)
    identity = db.query(Identity).filter(Identity.email == normalized_email).first()
    credential = get_password_credential(db, identity.id) if identity else None
    return await _authenticate(db, credential, normalized_email, password, hasher, request, _email_login_kind)

async def authenticate_patient(
    db: Session,
    national_id: str,
    password: str,
    hasher: CredentialHasher,
    request: Optional[Request] = None
) -> ServiceResult:
    """
    Check a national-id/password login. Only patients are let in.

    Returns:
        ServiceResult with the identity. Failure codes: INVALID_CREDENTIALS,
        ACCOUNT_INACTIVE, PATIENT_LOGIN_ONLY.
    """
    account_id = national_id.strip()
    credential = (
        db.query(Credential)
        .filter(Credential.provider_kind == PASSWORD_PROVIDER, Credential.account_id == account_id)
        .first()
    )
    return await _authenticate(db, credential, account_id, password, hasher, request, _patient_login_kind)
