"""
Test fixtures for workout-log-api.

Provides a signed-initData factory and an in-memory Supabase stand-in so the
routes and services run offline and deterministically.
"""

import base64
import hashlib
import hmac
import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import pytest
from fastapi.testclient import TestClient

# Repo root: .../workout-log-api
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
TESTS = ROOT / "tests"

# Make src/ importable so tests can do `import workout_log_api...`
for p in {SRC, TESTS}:
    p_str = str(p)
    if p_str not in sys.path:
        sys.path.insert(0, p_str)

from fakes import FakeSupabase
from workout_log_api.config import Settings
from workout_log_api.main import create_app


BOT_TOKEN = "123456789:AAFakeTokenForTestsOnly_abcdefghijk"
TEST_USER = {"id": 424242, "first_name": "Ivan", "username": "ivan_lifts", "language_code": "en"}


# ---------------------------------------------------------------------------
# initData signing
# ---------------------------------------------------------------------------


def sign_fields(fields: Dict[str, str], bot_token: str = BOT_TOKEN, encoding: str = "hex") -> str:
    """Sign decoded initData fields the way Telegram does."""
    data_check_string = "\n".join(f"{k}={v}" for k, v in sorted(fields.items()))
    secret_key = hmac.new(b"WebAppData", bot_token.encode(), hashlib.sha256).digest()
    digest = hmac.new(secret_key, data_check_string.encode(), hashlib.sha256).digest()
    if encoding == "base64url":
        return base64.urlsafe_b64encode(digest).decode().rstrip("=")
    return digest.hex()


def build_init_data(
    user: Optional[Dict[str, Any]] = None,
    auth_date: Optional[int] = None,
    bot_token: str = BOT_TOKEN,
    extra: Optional[Dict[str, str]] = None,
    encoding: str = "hex",
    include_user: bool = True,
) -> str:
    """Return a URL-encoded initData string with a valid hash."""
    fields: Dict[str, str] = {
        "query_id": "AAHdF6IQAAAAAN0XohDhrOrc",
        "auth_date": str(int(time.time()) if auth_date is None else auth_date),
    }
    if include_user:
        fields["user"] = json.dumps(user or TEST_USER, separators=(",", ":"))
    fields.update(extra or {})
    fields["hash"] = sign_fields(fields, bot_token, encoding)
    return urlencode(fields)


# ---------------------------------------------------------------------------
# App / store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Set mock environment variables for tests."""
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("BOT_TOKEN", BOT_TOKEN)
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE", "test-service-role")
    monkeypatch.delenv("INITDATA_MAX_AGE_SECONDS", raising=False)
    monkeypatch.delenv("CORS_ALLOW_ORIGINS", raising=False)


@pytest.fixture
def fake_db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def app(settings, fake_db):
    return create_app(settings, supabase_client=fake_db)


@pytest.fixture
def client(app) -> TestClient:
    """Per-test FastAPI TestClient backed by the in-memory store."""
    return TestClient(app)


@pytest.fixture
def init_data() -> str:
    return build_init_data()


@pytest.fixture
def auth_headers(init_data) -> Dict[str, str]:
    return {"x-telegram-initdata": init_data}


@pytest.fixture
def bench_payload() -> Dict[str, Any]:
    return {
        "workout_date": "2024-05-01",
        "title": "Push day",
        "notes": "felt strong",
        "exercises": [
            {
                "name": "Bench",
                "sets": [
                    {"reps": 5, "weight_kg": 100},
                    {"reps": 5, "weight_kg": 100},
                ],
            }
        ],
    }
