"""Auth service FastAPI application."""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from jobboard.api.v1 import api_router
from jobboard.config import Settings, settings as default_settings
from jobboard.core.error_handlers import register_exception_handlers
from jobboard.core.logging import init_error_tracking, setup_logging
from jobboard.core.middleware import security_headers_middleware
from jobboard.core.rate_limit import RateLimiter
from jobboard.core.security import TokenCodec
from jobboard.db.mongo import MongoDB
from jobboard.services.user_store import MongoUserStore, UserStore

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    user_store: Optional[UserStore] = None,
    token_codec: Optional[TokenCodec] = None,
) -> FastAPI:
    """
    Build the auth service.

    When ``user_store`` is given it is used as-is and no MongoDB connection
    is opened; otherwise the lifespan connects and owns the client.
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        mongo = None
        if app.state.user_store is None:
            mongo = MongoDB(settings)
            await mongo.connect()
            store = MongoUserStore(mongo.users, bcrypt_rounds=settings.BCRYPT_ROUNDS)
            await store.ensure_indexes()
            app.state.mongo = mongo
            app.state.user_store = store
        logger.info("auth_service_started", environment=settings.ENVIRONMENT)
        yield
        if mongo is not None:
            mongo.disconnect()
            app.state.user_store = None

    app = FastAPI(
        title=f"{settings.APP_NAME} - Auth Service",
        version=settings.APP_VERSION,
        description="Registration, login and session refresh for the job board",
        lifespan=lifespan,
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
        swagger_ui_parameters={
            "persistAuthorization": True,  # Persist authorization after page refresh
        },
    )

    app.state.settings = settings
    app.state.token_codec = token_codec or TokenCodec(settings)
    app.state.user_store = user_store
    app.state.auth_rate_limiter = (
        RateLimiter(settings.AUTH_RATE_LIMIT, settings.rate_limit_window)
        if settings.RATE_LIMIT_ENABLED
        else None
    )
    app.state.trust_forwarded_for = settings.TRUST_PROXY

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CLIENT_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(security_headers_middleware)

    register_exception_handlers(app, settings)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint with database status."""
        store: Optional[UserStore] = request.app.state.user_store
        connected = store is not None and await store.ping()
        return {
            "status": "ok",
            "service": "auth-service",
            "database": "connected" if connected else "disconnected",
        }

    return app


def run() -> None:
    """Console entry point: serve the auth service with uvicorn."""
    import uvicorn

    uvicorn.run(
        "jobboard.main:app",
        host=default_settings.HOST,
        port=default_settings.AUTH_SERVICE_PORT,
        reload=default_settings.DEBUG,
        log_config=None,
    )


# Setup logging
setup_logging(default_settings)
init_error_tracking(default_settings)

app = create_app()
