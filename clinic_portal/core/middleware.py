"""
Custom middleware for the FastAPI application.
"""
import time
import logging
from typing import Optional
from fastapi import Request
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import uuid

from .route_guard import RedirectTo, RouteGuard
from .sessions import SessionInfo, SessionProvider

# Set up logging
logger = logging.getLogger(__name__)

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging request and response information.
    """
    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        """
        Process the request and log information.

        Args:
            request: The incoming request
            call_next: The next middleware or endpoint handler

        Returns:
            Response: The response from the next handler
        """
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        # Log request details
        client_host = request.client.host if request.client else "unknown"
        logger.info(f"Request {request_id} started: {request.method} {request.url.path} from {client_host}")

        # Record request start time
        start_time = time.time()

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            response.headers["X-Process-Time"] = str(process_time)
            response.headers["X-Request-ID"] = request_id

            logger.info(
                f"Request {request_id} completed: {request.method} {request.url.path} "
                f"- Status: {response.status_code} - Duration: {process_time:.4f}s"
            )

            return response
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"Request {request_id} failed: {request.method} {request.url.path} "
                f"- Error: {str(e)} - Duration: {process_time:.4f}s"
            )
            raise


class RouteGuardMiddleware(BaseHTTPMiddleware):
    """
    Enforces the route-access matrix on page paths.

    Protected paths get exactly one session lookup. Anything the guard does
    not allow becomes a 302 redirect, so no page body ever reaches an
    anonymous or wrong-role caller.
    """
    def __init__(self, app: ASGIApp, guard: RouteGuard, session_provider: SessionProvider):
        super().__init__(app)
        self.guard = guard
        self.session_provider = session_provider

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not self.guard.is_protected(path):
            return await call_next(request)

        session = self._resolve_session(request)
        decision = self.guard.decide(path, session)
        if isinstance(decision, RedirectTo):
            logger.info(
                f"Route guard redirected {request.method} {path} -> {decision.location} "
                f"(identity: {session.identity_id if session else 'anonymous'})"
            )
            return RedirectResponse(url=decision.location, status_code=302)

        request.state.session = session
        return await call_next(request)

    def _resolve_session(self, request: Request) -> Optional[SessionInfo]:
        # An unreachable or failing provider means "not logged in", never "allowed"
        try:
            return self.session_provider.get_session(request.headers)
        except Exception as e:
            logger.warning(f"Session lookup failed for {request.url.path}, treating caller as anonymous: {e}")
            return None


def setup_middlewares(app, guard: RouteGuard, session_provider: SessionProvider):
    """
    Set up all custom middlewares for the application.

    The guard is added first so request logging wraps it and records redirects.

    Args:
        app: FastAPI application instance
        guard: Route guard built from the route-access configuration
        session_provider: Resolves sessions from request headers
    """
    app.add_middleware(RouteGuardMiddleware, guard=guard, session_provider=session_provider)
    app.add_middleware(RequestLoggingMiddleware)
