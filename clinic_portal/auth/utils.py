"""
Authentication utility functions for email handling and post-login redirects.
"""
from typing import Optional
from email_validator import validate_email, EmailNotValidError
import logging

# Set up logging
logger = logging.getLogger(__name__)

def normalize_email(email: str) -> str:
    """
    Normalize an email for storage and lookup.

    Args:
        email: Raw email as typed by the user

    Returns:
        The trimmed, lower-cased email
    """
    return email.strip().lower()

def is_valid_email(email: str) -> bool:
    """
    Check that an email is syntactically valid. No DNS lookups are made.

    Args:
        email: Normalized email

    Returns:
        bool: True if the address is well formed
    """
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        logger.info(f"Rejected email address: {e}")
        return False
    return True

def safe_redirect_target(target: Optional[str]) -> Optional[str]:
    """
    Accept only same-site relative paths as a post-login redirect.

    Args:
        target: Value of the ``redirect`` query parameter

    Returns:
        The path if it is local, otherwise None
    """
    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return None
    return target
