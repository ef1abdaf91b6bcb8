import httpx
import pytest
from fastapi.testclient import TestClient

from jobboard.gateway.main import create_gateway_app
from jobboard.gateway.proxy import ServiceProxy

from .conftest import make_settings


class BodyStream(httpx.AsyncByteStream):
    """Unread upstream body, the way a real backend connection delivers it."""

    def __init__(self, *chunks, failure=None):
        self.chunks = chunks
        self.failure = failure

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.failure is not None:
            raise self.failure


class Upstreams:
    """Records proxied requests and answers with a canned response."""

    def __init__(self):
        self.requests = []
        self.failure = None
        self.unhealthy = set()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failure is not None:
            raise self.failure(f"{self.failure.__name__} to {request.url.host}", request=request)

        if request.url.path == "/health":
            port = request.url.port
            return httpx.Response(503 if port in self.unhealthy else 200, json={"status": "ok"})

        return httpx.Response(
            201,
            headers=[
                ("content-type", "application/json"),
                ("set-cookie", "refreshToken=abc; HttpOnly; Path=/"),
                ("set-cookie", "theme=dark; Path=/"),
                ("x-upstream", str(request.url.port)),
            ],
            stream=BodyStream(b'{"status":', b'"success"}'),
        )


@pytest.fixture
def upstreams():
    return Upstreams()


@pytest.fixture
def gateway(upstreams):
    app = create_gateway_app(settings=make_settings(), transport=httpx.MockTransport(upstreams))
    with TestClient(app) as client:
        yield client


def test_forwards_method_path_query_and_body(gateway, upstreams):
    response = gateway.post(
        "/api/v1/jobs/123/apply?draft=true",
        content=b'{"coverLetter":"hello"}',
        headers={"Authorization": "Bearer token-123", "Content-Type": "application/json"},
    )

    assert response.status_code == 201
    assert response.json() == {"status": "success"}

    sent = upstreams.requests[-1]
    assert sent.method == "POST"
    assert str(sent.url) == "http://localhost:5003/api/v1/jobs/123/apply?draft=true"
    assert sent.content == b'{"coverLetter":"hello"}'
    assert sent.headers["authorization"] == "Bearer token-123"
    assert sent.headers["content-type"] == "application/json"
    assert sent.headers["host"] == "localhost:5003"


def test_service_root_is_forwarded(gateway, upstreams):
    gateway.get("/api/v1/search")
    assert str(upstreams.requests[-1].url) == "http://localhost:5005/api/v1/search"


def test_each_service_has_its_own_origin(gateway):
    expected = {
        "auth": "5001",
        "users": "5002",
        "jobs": "5003",
        "applications": "5004",
        "search": "5005",
        "notifications": "5006",
        "admin": "5007",
    }
    for service, port in expected.items():
        assert gateway.get(f"/api/v1/{service}/x").headers["x-upstream"] == port


def test_response_headers_pass_through(gateway):
    response = gateway.post("/api/v1/auth/login", json={})
    assert response.headers.get_list("set-cookie") == [
        "refreshToken=abc; HttpOnly; Path=/",
        "theme=dark; Path=/",
    ]


def test_x_forwarded_for_is_appended(gateway, upstreams):
    gateway.get("/api/v1/jobs", headers={"X-Forwarded-For": "203.0.113.7"})
    assert upstreams.requests[-1].headers["x-forwarded-for"] == "203.0.113.7, testclient"


def test_hop_by_hop_headers_are_dropped(gateway, upstreams):
    gateway.get("/api/v1/jobs", headers={"Proxy-Authorization": "secret", "TE": "trailers"})
    sent = upstreams.requests[-1]
    assert "proxy-authorization" not in sent.headers
    assert "te" not in sent.headers


@pytest.mark.parametrize("failure", [httpx.ConnectError, httpx.ReadTimeout])
def test_upstream_failure_is_a_uniform_502(gateway, upstreams, failure):
    upstreams.failure = failure

    response = gateway.get("/api/v1/users/me")

    assert response.status_code == 502
    assert response.json() == {
        "status": "error",
        "code": "SERVICE_UNAVAILABLE",
        "message": "Service unavailable",
    }


def test_unknown_service(gateway, upstreams):
    response = gateway.get("/api/v1/payments/checkout")
    assert response.status_code == 404
    assert response.json()["code"] == "SERVICE_NOT_FOUND"
    assert upstreams.requests == []


def test_gateway_health(gateway):
    response = gateway.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["service"] == "api-gateway"
    assert body["services"] == sorted(
        ["auth", "users", "jobs", "applications", "search", "notifications", "admin"]
    )


def test_services_health(gateway, upstreams):
    upstreams.unhealthy = {5003}

    response = gateway.get("/api/v1/health")

    services = response.json()["services"]
    assert services["jobs"] == "unhealthy"
    assert services["auth"] == "healthy"
    assert len(services) == 7


def test_services_health_when_backends_are_down(gateway, upstreams):
    upstreams.failure = httpx.ConnectError
    services = gateway.get("/api/v1/health").json()["services"]
    assert set(services.values()) == {"unhealthy"}


def test_api_rate_limit(upstreams):
    settings = make_settings(RATE_LIMIT_ENABLED=True, API_RATE_LIMIT=2)
    app = create_gateway_app(settings=settings, transport=httpx.MockTransport(upstreams))
    with TestClient(app) as client:
        assert client.get("/api/v1/jobs").status_code == 201
        assert client.get("/api/v1/jobs").status_code == 201
        response = client.get("/api/v1/jobs")

    assert response.status_code == 429
    assert len(upstreams.requests) == 2


def test_rate_limit_ignores_client_supplied_forwarded_for(upstreams):
    settings = make_settings(RATE_LIMIT_ENABLED=True, API_RATE_LIMIT=2)
    app = create_gateway_app(settings=settings, transport=httpx.MockTransport(upstreams))
    with TestClient(app) as client:
        statuses = [
            client.get("/api/v1/jobs", headers={"X-Forwarded-For": f"10.0.0.{i}"}).status_code
            for i in range(5)
        ]

    assert statuses == [201, 201, 429, 429, 429]


async def test_read_error_mid_body_closes_upstream():
    proxy = ServiceProxy(httpx.AsyncClient(), {"jobs": "http://localhost:5003"})
    request = httpx.Request("GET", "http://localhost:5003/api/v1/jobs")
    upstream = httpx.Response(
        200,
        stream=BodyStream(b"partial", failure=httpx.ReadTimeout("read timed out", request=request)),
        request=request,
    )

    received = []
    with pytest.raises(httpx.ReadTimeout):
        async for chunk in proxy._relay(upstream, "jobs"):
            received.append(chunk)

    assert received == [b"partial"]
    assert upstream.is_closed
