"""
Reverse proxy from ``/api/v1/<service>`` to the owning backend.

The proxy does no authentication: each backend verifies access tokens
itself. Connection failures and timeouts surface as a uniform 502 without
upstream details.
"""

from typing import AsyncIterator, Dict

import httpx
import structlog
from fastapi import Request
from starlette.background import BackgroundTask
from starlette.responses import StreamingResponse

from jobboard.core.exceptions import ServiceNotFound, UpstreamUnavailable

logger = structlog.get_logger(__name__)

# Connection-scoped headers that must not be forwarded (RFC 9110 section 7.6.1)
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

# Recomputed by httpx for the upstream request
_REQUEST_EXCLUDED = HOP_BY_HOP_HEADERS | {"host", "content-length"}


class ServiceProxy:
    """Forwards requests to backend services by path prefix."""

    def __init__(self, client: httpx.AsyncClient, origins: Dict[str, str]):
        self.client = client
        self.origins = dict(origins)

    def resolve(self, service: str) -> str:
        origin = self.origins.get(service)
        if origin is None:
            raise ServiceNotFound(f"No service mounted at /api/v1/{service}")
        return origin

    def build_url(self, service: str, path: str, query: str) -> str:
        url = f"{self.resolve(service)}/api/v1/{service}"
        if path:
            url = f"{url}/{path}"
        if query:
            url = f"{url}?{query}"
        return url

    def _forward_headers(self, request: Request) -> list:
        headers = [
            (name, value)
            for name, value in request.headers.items()
            if name.lower() not in _REQUEST_EXCLUDED and name.lower() != "x-forwarded-for"
        ]
        client_host = request.client.host if request.client else None
        prior = request.headers.get("x-forwarded-for")
        forwarded_for = ", ".join(part for part in (prior, client_host) if part)
        if forwarded_for:
            headers.append(("x-forwarded-for", forwarded_for))
        return headers

    async def forward(self, request: Request, service: str, path: str = "") -> StreamingResponse:
        """Send ``request`` upstream and stream the reply back unchanged."""
        url = self.build_url(service, path, request.url.query)
        upstream_request = self.client.build_request(
            request.method,
            url,
            headers=self._forward_headers(request),
            content=await request.body(),
        )

        try:
            upstream = await self.client.send(upstream_request, stream=True)
        except httpx.TransportError as e:
            logger.error(
                "proxy_error",
                service=service,
                method=request.method,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise UpstreamUnavailable() from e

        response = StreamingResponse(
            self._relay(upstream, service),
            status_code=upstream.status_code,
            background=BackgroundTask(upstream.aclose),
        )
        for name, value in upstream.headers.multi_items():
            if name.lower() not in HOP_BY_HOP_HEADERS:
                response.headers.append(name, value)
        return response

    async def _relay(self, upstream: httpx.Response, service: str) -> AsyncIterator[bytes]:
        """Yield the upstream body; a failure after the headers went out can only be logged."""
        try:
            async for chunk in upstream.aiter_raw():
                yield chunk
        except httpx.TransportError as e:
            logger.error(
                "proxy_stream_error",
                service=service,
                status_code=upstream.status_code,
                error_type=type(e).__name__,
                error=str(e),
            )
            await upstream.aclose()
            raise

    async def probe(self, service: str, timeout: float) -> bool:
        """Check a backend's ``/health`` endpoint."""
        try:
            reply = await self.client.get(f"{self.resolve(service)}/health", timeout=timeout)
        except httpx.HTTPError as e:
            logger.warning("health_probe_failed", service=service, error=str(e))
            return False
        return reply.is_success
