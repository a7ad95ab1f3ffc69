"""
Core security utilities: password hashing, temporary password generation and
session token signing.

Hashing and secret generation sit behind small capability classes so request
handlers receive them through dependencies and tests can swap in fakes.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Protocol
from jose import jwt, JWTError
from passlib.context import CryptContext
import secrets
import string
import logging

from ..config import settings

# Set up logging
logger = logging.getLogger(__name__)

SYMBOLS = "!@#$%^&*"
TEMP_PASSWORD_ALPHABET = string.ascii_letters + string.digits + SYMBOLS


class CredentialHasher(Protocol):
    """Hashes and verifies passwords."""

    def hash(self, password: str) -> str:
        ...

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        ...

    def dummy_verify(self) -> None:
        ...


class SecretGenerator(Protocol):
    """Produces temporary passwords."""

    def generate_password(self, length: int) -> str:
        ...


class BcryptHasher:
    """
    bcrypt hasher backed by passlib.

    Verification uses passlib's constant-time comparison.
    """
    def __init__(self, rounds: int = 10):
        self.rounds = rounds
        self.pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    def hash(self, password: str) -> str:
        """
        Hash a password using bcrypt.

        Args:
            password: Plain text password

        Returns:
            str: Hashed password
        """
        return self.pwd_context.hash(password)

    def verify(self, plain_password: str, hashed_password: str) -> bool:
        """
        Verify a password against a hash.

        Args:
            plain_password: Plain text password
            hashed_password: Hashed password to compare against

        Returns:
            bool: True if password matches hash
        """
        try:
            return self.pwd_context.verify(plain_password, hashed_password)
        except ValueError:
            logger.warning("Stored password hash could not be parsed")
            return False

    def dummy_verify(self) -> None:
        """Spend the time of a real verification when there is no hash to check."""
        self.pwd_context.dummy_verify()


class RandomSecretGenerator:
    """Temporary passwords from the OS random source."""

    def generate_password(self, length: int = 8) -> str:
        """
        Generate a temporary password.

        The password has at least one lowercase letter, one uppercase letter,
        one digit and one symbol. Candidates are drawn uniformly and rejected
        until one qualifies.

        Args:
            length: Password length, at least 4

        Returns:
            str: The plain temporary password
        """
        if length < 4:
            raise ValueError("Temporary passwords need at least 4 characters")
        while True:
            candidate = "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))
            if meets_temp_password_policy(candidate):
                return candidate


def meets_temp_password_policy(password: str) -> bool:
    return (
        any(c.islower() for c in password)
        and any(c.isupper() for c in password)
        and any(c.isdigit() for c in password)
        and any(c in SYMBOLS for c in password)
    )


def create_session_token(identity_id: str, role: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed session token.

    Args:
        identity_id: Identity the session belongs to
        role: Role value at login time
        expires_delta: Token lifetime (default: settings.session_expire_minutes)

    Returns:
        str: Encoded JWT
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.session_expire_minutes)
    )
    to_encode = {"sub": identity_id, "role": role, "exp": expire}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_session_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify and decode a session token.

    Args:
        token: JWT token string

    Returns:
        Dict containing token payload if valid, None if invalid or expired
    """
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
