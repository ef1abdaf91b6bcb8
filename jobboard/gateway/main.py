"""API gateway FastAPI application."""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from jobboard.config import Settings, settings as default_settings
from jobboard.core.error_handlers import register_exception_handlers
from jobboard.core.logging import init_error_tracking, setup_logging
from jobboard.core.middleware import security_headers_middleware
from jobboard.core.rate_limit import RateLimiter, api_rate_limit
from jobboard.gateway.proxy import ServiceProxy

logger = structlog.get_logger(__name__)

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]


def create_gateway_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the gateway.

    ``transport`` replaces the network transport of the upstream client,
    which lets tests stand in for the backends.
    """
    settings = settings or default_settings

    client = httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(settings.GATEWAY_PROXY_TIMEOUT),
        follow_redirects=False,
    )
    proxy = ServiceProxy(client, settings.service_origins)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        logger.info("gateway_started", services=sorted(proxy.origins))
        yield
        await client.aclose()

    app = FastAPI(
        title=f"{settings.APP_NAME} - Gateway",
        version=settings.APP_VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.settings = settings
    app.state.proxy = proxy
    app.state.api_rate_limiter = (
        RateLimiter(settings.API_RATE_LIMIT, settings.rate_limit_window)
        if settings.RATE_LIMIT_ENABLED
        else None
    )
    # The gateway is the edge: its peer address is the client
    app.state.trust_forwarded_for = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CLIENT_URL],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(security_headers_middleware)

    register_exception_handlers(app, settings)

    @app.get("/health", tags=["Health"])
    async def gateway_health():
        """Gateway liveness."""
        return {
            "status": "ok",
            "service": "api-gateway",
            "services": sorted(proxy.origins),
        }

    @app.get("/api/v1/health", tags=["Health"])
    async def services_health():
        """Probe every backend's health endpoint."""
        names = sorted(proxy.origins)
        results = await asyncio.gather(
            *(proxy.probe(name, settings.GATEWAY_HEALTH_TIMEOUT) for name in names)
        )
        return {
            "status": "ok",
            "services": {
                name: "healthy" if healthy else "unhealthy"
                for name, healthy in zip(names, results)
            },
        }

    @app.api_route(
        "/api/v1/{service}",
        methods=PROXY_METHODS,
        dependencies=[Depends(api_rate_limit)],
        include_in_schema=False,
    )
    async def proxy_root(service: str, request: Request):
        return await request.app.state.proxy.forward(request, service)

    @app.api_route(
        "/api/v1/{service}/{path:path}",
        methods=PROXY_METHODS,
        dependencies=[Depends(api_rate_limit)],
        include_in_schema=False,
    )
    async def proxy_path(service: str, path: str, request: Request):
        return await request.app.state.proxy.forward(request, service, path)

    return app


def run() -> None:
    """Console entry point: serve the gateway with uvicorn."""
    import uvicorn

    uvicorn.run(
        "jobboard.gateway.main:app",
        host=default_settings.HOST,
        port=default_settings.GATEWAY_PORT,
        reload=default_settings.DEBUG,
        log_config=None,
    )


# Setup logging
setup_logging(default_settings)
init_error_tracking(default_settings)

app = create_gateway_app()
