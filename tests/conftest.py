import os
import sys
import time
from pathlib import Path

import fakeredis
import pytest
from fastapi.testclient import TestClient

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set testing environment variable before the app is imported
os.environ["TESTING"] = "1"

from telehealth.main import app
from telehealth.core.cache import get_redis
from telehealth.core.security import create_access_token

WS_URL = "/api/v1/video/ws"


@pytest.fixture
def fake_redis():
    server = fakeredis.FakeRedis(decode_responses=True)
    app.dependency_overrides[get_redis] = lambda: server
    yield server
    app.dependency_overrides.pop(get_redis, None)


@pytest.fixture
def client(fake_redis):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client


def auth_headers(user_id: str) -> dict:
    token = create_access_token({"sub": user_id, "role": "patient"})
    return {"Authorization": f"Bearer {token}"}


def create_session(client, user_id: str) -> str:
    response = client.post("/api/v1/video/create-session", headers=auth_headers(user_id))
    assert response.status_code == 200
    return response.json()["sessionId"]


def wait_for_participants(client, session_id: str, expected: set, timeout: float = 2.0) -> dict:
    """Poll the session until its participants match; joins are applied asynchronously."""
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(
            f"/api/v1/video/session/{session_id}",
            headers=auth_headers("observer")
        ).json()
        if set(body["participants"]) == expected:
            return body
        if time.monotonic() > deadline:
            raise AssertionError(f"participants {body['participants']} != {sorted(expected)}")
        time.sleep(0.01)
