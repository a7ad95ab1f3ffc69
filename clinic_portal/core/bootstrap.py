"""
Bootstrap utilities for first admin creation.
Handles automatic creation of the first admin account from environment variables.
"""
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.models import PASSWORD_PROVIDER, Credential, Identity, Role
from ..auth.utils import normalize_email
from ..config import settings
from ..staff.models import Staff
from .security import CredentialHasher

logger = logging.getLogger(__name__)

BOOTSTRAP_ADMIN_NAME = "System Administrator"

def admin_exists(db: Session) -> bool:
    """
    Check if any admin identity exists in the database.

    Args:
        db: Database session

    Returns:
        bool: True if at least one admin exists, False otherwise
    """
    return db.query(Identity.id).filter(Identity.role == Role.ADMIN).first() is not None

def create_bootstrap_admin(db: Session, hasher: CredentialHasher) -> bool:
    """
    Create the first admin (Identity, Credential and Staff profile) from settings.

    The bootstrap password is chosen by the operator, so no change is forced.

    Args:
        db: Database session
        hasher: Password hasher

    Returns:
        bool: True if admin was created successfully, False otherwise
    """
    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        logger.warning("Bootstrap admin credentials not provided in environment variables")
        return False

    email = normalize_email(settings.bootstrap_admin_email)
    if db.query(Identity.id).filter(Identity.email == email).first():
        logger.warning(f"Bootstrap failed: Email {email} already exists")
        return False

    try:
        admin = Identity(
            full_name=BOOTSTRAP_ADMIN_NAME,
            email=email,
            role=Role.ADMIN,
            must_change_password=False,
            email_verified=True,
        )
        db.add(admin)
        db.flush()
        db.add(Credential(
            identity_id=admin.id,
            provider_kind=PASSWORD_PROVIDER,
            account_id=email,
            password_hash=hasher.hash(settings.bootstrap_admin_password),
        ))
        db.add(Staff(identity_id=admin.id, full_name=BOOTSTRAP_ADMIN_NAME, role=Role.ADMIN, status="active"))
        db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to create bootstrap admin: {e.__class__.__name__}")
        db.rollback()
        return False

    logger.info(f"Bootstrap admin created successfully: {email} (ID: {admin.id})")
    return True

def bootstrap_admin_if_needed(db: Session, hasher: CredentialHasher) -> None:
    """
    Check if an admin exists and create the bootstrap admin if needed.
    This function should be called during application startup.

    Args:
        db: Database session
        hasher: Password hasher
    """
    if admin_exists(db):
        logger.info("Admin accounts found. Bootstrap not needed.")
        return

    logger.info("No admin accounts found. Attempting bootstrap admin creation...")
    if not create_bootstrap_admin(db, hasher):
        logger.warning("Bootstrap admin creation skipped.")
        logger.info("To create the first admin, set BOOTSTRAP_ADMIN_EMAIL and BOOTSTRAP_ADMIN_PASSWORD in your .env file.")
