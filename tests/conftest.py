from typing import Dict, Tuple

import pytest
from fastapi.testclient import TestClient

from memories.config import Settings
from memories.main import create_app

API = "/api"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        db_path=str(tmp_path / "memories.db"),
        token_secret="test-secret",
        token_ttl_days=30,
        api_prefix=API,
        page_size=10,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, username: str, email: str = "", password: str = "secret123") -> Tuple[dict, Dict[str, str]]:
    resp = client.post(
        f"{API}/auth/register",
        json={"username": username, "email": email or f"{username}@example.com", "password": password},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body, auth_headers(body["token"])


def create_memory(client: TestClient, headers: Dict[str, str], **fields) -> dict:
    payload = {"title": "Beach Day", "description": "Sun and sand", "tags": []}
    payload.update(fields)
    resp = client.post(f"{API}/memories", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()
