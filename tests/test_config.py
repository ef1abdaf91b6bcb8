from datetime import timedelta

import pytest
from pydantic import ValidationError

from jobboard.utils.helpers import generate_hash, normalize_email, parse_duration
from jobboard.utils.validators import validate_password_strength

from .conftest import make_settings


@pytest.mark.parametrize(
    "value, expected",
    [
        ("900", timedelta(seconds=900)),
        (900, timedelta(seconds=900)),
        ("30s", timedelta(seconds=30)),
        ("15m", timedelta(minutes=15)),
        ("2h", timedelta(hours=2)),
        ("7d", timedelta(days=7)),
        ("1w", timedelta(weeks=1)),
        ("500ms", timedelta(milliseconds=500)),
        ("1.5h", timedelta(minutes=90)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "soon", "15x", "0", "-5m"])
def test_parse_duration_rejects(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_settings_defaults():
    settings = make_settings()
    assert settings.access_token_ttl == timedelta(minutes=15)
    assert settings.refresh_token_ttl == timedelta(days=7)
    assert settings.lock_duration == timedelta(hours=2)
    assert settings.password_reset_ttl == timedelta(minutes=30)
    assert settings.LOGIN_MAX_ATTEMPTS == 5
    assert settings.REFRESH_COOKIE_NAME == "refreshToken"


def test_secrets_must_differ():
    with pytest.raises(ValidationError):
        make_settings(JWT_SECRET="same", JWT_REFRESH_SECRET="same")


def test_invalid_duration_setting():
    with pytest.raises(ValidationError):
        make_settings(JWT_EXPIRE="fifteen minutes")


def test_environment_is_normalized():
    settings = make_settings(ENVIRONMENT=" Production ")
    assert settings.is_production
    assert not settings.is_development


def test_service_origins():
    origins = make_settings(SERVICE_HOST="svc.internal", JOB_SERVICE_PORT=6003).service_origins
    assert origins["jobs"] == "http://svc.internal:6003"
    assert origins["auth"] == "http://svc.internal:5001"
    assert set(origins) == {"auth", "users", "jobs", "applications", "search", "notifications", "admin"}


def test_password_strength():
    assert validate_password_strength("Sup3rSecret") == (True, [])

    is_valid, errors = validate_password_strength("password")
    assert not is_valid
    assert "Password must contain at least one uppercase letter" in errors
    assert "Password must contain at least one digit" in errors

    is_valid, errors = validate_password_strength("Aa1" + "x" * 80)
    assert not is_valid
    assert errors == ["Password must be at most 72 bytes long"]


def test_helpers():
    assert normalize_email("  Ada@ACME.io ") == "ada@acme.io"
    assert generate_hash("token") == generate_hash("token") != generate_hash("other")
    assert len(generate_hash("token")) == 64
