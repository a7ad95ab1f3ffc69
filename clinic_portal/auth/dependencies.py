"""
FastAPI dependencies for authentication and authorization.

API routes are outside the route guard's page prefixes, so they resolve the
caller here and answer with 401/403 envelopes instead of redirects.
"""
from functools import lru_cache
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from typing import List
import logging

from ..config import settings
from ..database import get_db
from ..exceptions import AuthenticationRequired
from ..core.security import BcryptHasher, CredentialHasher, RandomSecretGenerator, SecretGenerator
from ..core.sessions import SessionProvider
from .exceptions import AccountInactiveError, RoleDeniedError
from .models import Identity, Role

# Set up logging
logger = logging.getLogger(__name__)

@lru_cache()
def get_hasher() -> CredentialHasher:
    """Password hasher dependency (bcrypt at the configured work factor)."""
    return BcryptHasher(rounds=settings.bcrypt_rounds)

@lru_cache()
def get_secret_generator() -> SecretGenerator:
    """Temporary password generator dependency."""
    return RandomSecretGenerator()

def get_session_provider(request: Request) -> SessionProvider:
    return request.app.state.session_provider

def get_current_identity(
    request: Request,
    db: Session = Depends(get_db),
    session_provider: SessionProvider = Depends(get_session_provider)
) -> Identity:
    """
    Get the Identity behind the request's session.

    Args:
        request: Incoming request
        db: Database session
        session_provider: Resolves the session from request headers

    Returns:
        Identity: Current authenticated identity

    Raises:
        AuthenticationRequired: No session, a failing provider, or an unknown identity
        AccountInactiveError: The linked staff/patient record is deactivated
    """
    try:
        session = session_provider.get_session(request.headers)
    except Exception as e:
        logger.warning(f"Session lookup failed, treating caller as anonymous: {e}")
        session = None

    if session is None:
        raise AuthenticationRequired()

    identity = db.get(Identity, session.identity_id)
    if identity is None:
        logger.warning(f"Session refers to unknown identity {session.identity_id}")
        raise AuthenticationRequired()

    profile = identity.profile
    if profile is not None and not profile.is_active:
        raise AccountInactiveError()

    return identity

def require_roles(allowed_roles: List[Role]):
    """
    Dependency factory to require specific roles.

    Args:
        allowed_roles: List of roles that are allowed access

    Returns:
        Function that checks if the identity has a required role
    """
    def role_checker(current_identity: Identity = Depends(get_current_identity)) -> Identity:
        if current_identity.role not in allowed_roles:
            raise RoleDeniedError([role.value for role in allowed_roles], current_identity.role.value)
        return current_identity
    return role_checker

# Convenience dependency for the admin endpoints
require_admin = require_roles([Role.ADMIN])
