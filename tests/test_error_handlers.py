import pytest
from bson.errors import InvalidId
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from jobboard.core.error_handlers import register_exception_handlers
from jobboard.core.exceptions import AccountLocked, AppError, UpstreamUnavailable, UserNotFound

from .conftest import make_settings


class Payload(BaseModel):
    count: int


def build_client(environment):
    app = FastAPI()
    register_exception_handlers(app, make_settings(ENVIRONMENT=environment))

    @app.get("/not-found")
    async def not_found():
        raise UserNotFound()

    @app.get("/duplicate")
    async def duplicate():
        raise DuplicateKeyError("E11000 duplicate key", 11000, {"keyValue": {"email": "ada@acme.io"}})

    @app.get("/bad-id")
    async def bad_id():
        raise InvalidId("'x' is not a valid ObjectId")

    @app.post("/validate")
    async def validate(payload: Payload):
        return payload

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database exploded")

    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def client():
    return build_client("development")


def test_app_error_status_split():
    assert UserNotFound().status == "fail"
    assert AccountLocked().status_code == 423
    assert UpstreamUnavailable().status == "error"
    assert AppError("custom").message == "custom"


def test_app_error_shape(client):
    response = client.get("/not-found")
    assert response.status_code == 404
    assert response.json() == {"status": "fail", "code": "USER_NOT_FOUND", "message": "User not found"}


def test_duplicate_key(client):
    response = client.get("/duplicate")
    assert response.status_code == 400
    assert response.json()["message"] == "Duplicate value for email. Please use another value."


def test_invalid_id(client):
    response = client.get("/bad-id")
    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ID"


def test_request_validation(client):
    response = client.post("/validate", json={"count": "many"})
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["message"].startswith("count: ")


def test_unknown_route(client):
    response = client.get("/missing")
    assert response.status_code == 404
    assert response.json() == {"status": "fail", "code": "NOT_FOUND", "message": "Not Found"}


def test_unexpected_error_in_development(client):
    response = client.get("/boom")
    assert response.status_code == 500
    body = response.json()
    assert body["status"] == "error"
    assert body["message"] == "database exploded"
    assert body["error"] == "RuntimeError"
    assert body["stack"]


def test_unexpected_error_in_production():
    response = build_client("production").get("/boom")
    assert response.status_code == 500
    assert response.json() == {
        "status": "error",
        "code": "INTERNAL_ERROR",
        "message": "Something went wrong!",
    }
