"""
Route guard: the static access matrix over page path prefixes.

The guard is pure. It gets a path and an already-resolved session and answers
Allow or RedirectTo; the middleware does the I/O around it.
"""
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union
from urllib.parse import quote

from .permissions import is_admin, is_patient
from .sessions import SessionInfo


def path_matches(path: str, prefix: str) -> bool:
    """Segment-aware prefix match: /dashboard matches /dashboard/x, not /dashboardx."""
    return path == prefix or path.startswith(prefix + "/")


def _normalize_prefixes(prefixes: Iterable[str]) -> Tuple[str, ...]:
    normalized = []
    for prefix in prefixes:
        if not prefix.startswith("/"):
            raise ValueError(f"Route prefix must start with '/': {prefix!r}")
        stripped = prefix.rstrip("/")
        if not stripped:
            raise ValueError("The site root cannot be a protected prefix")
        normalized.append(stripped)
    return tuple(normalized)


@dataclass(frozen=True)
class RouteAccessConfig:
    """
    Which page prefixes belong to which audience, and where callers land.

    Built once at startup and handed to the guard.
    """
    admin_prefixes: Tuple[str, ...]
    staff_prefixes: Tuple[str, ...]
    patient_prefixes: Tuple[str, ...]
    login_path: str = "/login"
    staff_landing_path: str = "/dashboard"
    patient_landing_path: str = "/patient-ehr"

    def __post_init__(self):
        admin = _normalize_prefixes(self.admin_prefixes)
        staff = _normalize_prefixes(self.staff_prefixes)
        patient = _normalize_prefixes(self.patient_prefixes)
        object.__setattr__(self, "admin_prefixes", admin)
        object.__setattr__(self, "staff_prefixes", staff)
        object.__setattr__(self, "patient_prefixes", patient)

        shared = (set(admin) & set(staff)) | (set(admin) & set(patient)) | (set(staff) & set(patient))
        if shared:
            raise ValueError(f"Route prefixes listed in more than one set: {sorted(shared)}")
        if any(path_matches(self.login_path, p) for p in admin + staff + patient):
            raise ValueError(f"Login path {self.login_path} cannot be protected")

    @property
    def protected_prefixes(self) -> Tuple[str, ...]:
        return self.admin_prefixes + self.staff_prefixes + self.patient_prefixes

    @classmethod
    def from_settings(cls, settings) -> "RouteAccessConfig":
        return cls(
            admin_prefixes=tuple(settings.admin_route_prefixes),
            staff_prefixes=tuple(settings.staff_route_prefixes),
            patient_prefixes=tuple(settings.patient_route_prefixes),
            login_path=settings.login_path,
            staff_landing_path=settings.staff_landing_path,
            patient_landing_path=settings.patient_landing_path,
        )


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class RedirectTo:
    location: str


Decision = Union[Allow, RedirectTo]
ALLOW = Allow()


class RouteGuard:
    """
    Evaluates the access matrix. First matching rule wins:

    1. no session on a protected path -> login, with ?redirect=<path>
    2. admin-only path, not admin -> staff landing
    3. patient-only path, not patient -> staff landing
    4. staff-shared path, patient -> patient landing
    5. exactly the staff landing, patient -> patient landing
    6. exactly the patient landing, not patient -> staff landing
    7. allow
    """
    def __init__(self, config: RouteAccessConfig):
        self.config = config

    def _under(self, path: str, prefixes: Tuple[str, ...]) -> bool:
        return any(path_matches(path, prefix) for prefix in prefixes)

    def is_protected(self, path: str) -> bool:
        return self._under(path, self.config.protected_prefixes)

    def login_redirect(self, path: str) -> RedirectTo:
        return RedirectTo(f"{self.config.login_path}?redirect={quote(path, safe='/')}")

    def decide(self, path: str, session: Optional[SessionInfo]) -> Decision:
        """
        Decide what happens to a request for a page path.

        Args:
            path: Request path (no query string)
            session: Resolved session, or None when unauthenticated

        Returns:
            Allow, or RedirectTo with the target location
        """
        config = self.config
        if not self.is_protected(path):
            return ALLOW

        if session is None:
            return self.login_redirect(path)

        role = session.role
        # Admin-only prefixes are nested under the staff ones, so they go first
        if self._under(path, config.admin_prefixes) and not is_admin(role):
            return RedirectTo(config.staff_landing_path)
        if self._under(path, config.patient_prefixes) and not is_patient(role):
            return RedirectTo(config.staff_landing_path)
        if self._under(path, config.staff_prefixes) and is_patient(role):
            return RedirectTo(config.patient_landing_path)
        if path == config.staff_landing_path and is_patient(role):
            return RedirectTo(config.patient_landing_path)
        if path == config.patient_landing_path and not is_patient(role):
            return RedirectTo(config.staff_landing_path)
        return ALLOW
