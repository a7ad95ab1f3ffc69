"""
Session resolution for incoming requests.

The route guard and the API dependencies only ever see a SessionInfo (or
None); where it comes from is up to the SessionProvider.
"""
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol
from starlette.requests import cookie_parser
import logging

from ..auth.models import Role
from ..config import settings
from .security import decode_session_token

# Set up logging
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionInfo:
    """Resolved session: who the caller is and the role they logged in with."""
    identity_id: str
    role: Role


class SessionProvider(Protocol):
    def get_session(self, headers: Mapping[str, str]) -> Optional[SessionInfo]:
        ...


class TokenSessionProvider:
    """
    Reads the session cookie and decodes the signed token inside it.

    Missing, malformed, expired or tampered tokens resolve to None.
    """
    def __init__(self, cookie_name: Optional[str] = None):
        self.cookie_name = cookie_name or settings.session_cookie_name

    def get_session(self, headers: Mapping[str, str]) -> Optional[SessionInfo]:
        token = self._read_cookie(headers.get("cookie"))
        if not token:
            return None

        payload = decode_session_token(token)
        if not payload:
            logger.info("Session cookie rejected: invalid or expired token")
            return None

        identity_id = payload.get("sub")
        try:
            role = Role(payload.get("role"))
        except ValueError:
            logger.warning(f"Session token for {identity_id} carries an unknown role")
            return None
        if not identity_id:
            return None
        return SessionInfo(identity_id=identity_id, role=role)

    def _read_cookie(self, raw_cookie: Optional[str]) -> Optional[str]:
        if not raw_cookie:
            return None
        return cookie_parser(raw_cookie).get(self.cookie_name) or None
