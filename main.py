"""
Social Feed API - Main Application Entry Point.

This module builds and configures the FastAPI application for the Social Feed
API: account registration and login, user profiles, and a public post feed with
likes and comments.

Key Responsibilities:
- Build the immutable `Settings` and every component that depends on them
  (database, token manager, auth gate, media relay, services) in
  `create_app`, and attach them to `app.state` for dependency injection.
- Set up middleware for correlation, error handling, performance logging,
  security headers and request size limits.
- Mount the routers (health, auth, profile, posts).
- Manage the application's lifecycle: logging and table creation on startup,
  engine disposal on shutdown.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.auth_endpoints import router as auth_router
from api.endpoints import posts_router, profile_router
from api.health_router import health_router
from core.auth import AuthGate, JWTManager, PasswordManager
from core.config import Settings
from core.database import Database
from core.logging_config import get_logger, setup_logging
from core.middleware import (
    CorrelationMiddleware,
    ErrorHandlingMiddleware,
    PerformanceMiddleware,
    RequestValidationMiddleware,
    SecurityHeadersMiddleware,
    register_exception_handlers,
)
from providers.media_relay import CloudinaryMediaRelay, MediaRelay
from services.auth_service import CredentialService
from services.post_service import PostService
from services.profile_service import ProfileService


def create_app(
    settings: Optional[Settings] = None,
    media_relay: Optional[MediaRelay] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """Build the application from an explicit configuration object"""
    settings = settings or Settings.from_env()
    database = Database(settings.database_url)
    media_relay = media_relay or CloudinaryMediaRelay.from_settings(settings)

    jwt_manager = JWTManager.from_settings(settings)
    password_manager = PasswordManager(settings.bcrypt_rounds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if configure_logging:
            setup_logging(settings.environment, settings.log_level, settings.log_file)
        logger = get_logger("api.startup")

        await database.create_all()
        logger.info("Database initialized successfully")
        logger.info("Service startup completed")
        yield

        # Cleanup on shutdown
        logger.info("Shutting down Social Feed API")
        await database.dispose()
        logger.info("Cleanup completed")

    app = FastAPI(
        title="Social Feed API",
        description="Accounts, profiles and a post feed with likes and comments",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.database = database
    app.state.auth_gate = AuthGate(jwt_manager)
    app.state.credential_service = CredentialService(
        database,
        settings,
        media_relay,
        password_manager=password_manager,
        jwt_manager=jwt_manager,
    )
    app.state.profile_service = ProfileService(database, settings, media_relay)
    app.state.post_service = PostService(database, settings, media_relay)

    register_exception_handlers(app)

    # Last added runs first
    app.add_middleware(ErrorHandlingMiddleware)
    app.add_middleware(RequestValidationMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(PerformanceMiddleware)
    app.add_middleware(CorrelationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(profile_router)
    app.include_router(posts_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = app.state.settings
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level="info",
    )
