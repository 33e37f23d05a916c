"""API test fixtures."""

import json

import jwt
import pytest
from fastapi.testclient import TestClient

from .lib import create_app

JWT_SECRET = "api-test-secret-with-at-least-32-bytes"


def parse_sse(body: str) -> list[dict]:
    """Decode a server-sent event stream into its data payloads."""
    events = []
    for block in body.strip().split("\n\n"):
        for line in block.splitlines():
            if line.startswith("data: "):
                events.append(json.loads(line[len("data: ") :]))
    return events


@pytest.fixture
def auth_headers(monkeypatch) -> dict[str, str]:
    """Bearer header for user-1."""
    monkeypatch.setenv("VIBE_JWT_SECRET", JWT_SECRET)
    monkeypatch.delenv("VIBE_JWT_ALGORITHM", raising=False)
    token = jwt.encode({"sub": "user-1"}, JWT_SECRET, algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(services) -> TestClient:
    """Test client over the temp-store services."""
    return TestClient(create_app(services))
