"""
Main FastAPI application entry point.
Configures the application, middleware, and includes routers.
"""
from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from typing import Optional
import logging

from .database import Base, SessionLocal, engine
from .config import settings
# Import all models here for creating tables
from .auth import models as auth_models  # noqa: F401
from .staff import models as staff_models  # noqa: F401
from .patients import models as patient_models  # noqa: F401
from .core import audit_models  # noqa: F401
from .auth.dependencies import get_hasher
from .auth.router import router as auth_router, admin_router
from .core.bootstrap import bootstrap_admin_if_needed
from .core.middleware import setup_middlewares
from .core.route_guard import RouteAccessConfig, RouteGuard
from .core.sessions import SessionProvider, TokenSessionProvider
from .exceptions import register_exception_handlers

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def run_bootstrap() -> None:
    """Create tables and seed the first admin. Failures are logged, never raised."""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        bootstrap_admin_if_needed(db, get_hasher())
    except Exception as e:
        logger.error(f"Bootstrap process failed: {str(e)}")
    finally:
        db.close()


def create_app(
    session_provider: Optional[SessionProvider] = None,
    route_config: Optional[RouteAccessConfig] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        session_provider: Resolves sessions from request headers
            (default: TokenSessionProvider over the session cookie)
        route_config: Route access matrix (default: built from settings)

    Returns:
        FastAPI: Configured application
    """
    session_provider = session_provider or TokenSessionProvider()
    guard = RouteGuard(route_config or RouteAccessConfig.from_settings(settings))

    app = FastAPI(
        title="Clinic Portal API",
        description="Identity and access control for the clinic portal",
        version="1.0.0"
    )
    app.state.session_provider = session_provider
    app.state.route_guard = guard

    # Register exception handlers
    register_exception_handlers(app)

    # Configure CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Setup custom middleware
    setup_middlewares(app, guard=guard, session_provider=session_provider)

    # Include routers
    app.include_router(auth_router)
    app.include_router(admin_router)

    # Root endpoint
    @app.get("/")
    def root():
        """
        Root endpoint for API health check.

        Returns:
            dict: Simple welcome message
        """
        return {"message": "Welcome to Clinic Portal API", "version": app.version}

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """
        Health check endpoint for monitoring.

        Returns:
            dict: Health status information
        """
        return {"status": "healthy", "database": "connected"}

    return app


logger.info("Starting Clinic Portal API...")
run_bootstrap()
app = create_app()
