"""Tests for the HTTP API."""

import httpx
import pytest
from fastapi.testclient import TestClient

from pocket_chat import storage
from pocket_chat.app import create_app
from pocket_chat.cooldown import CooldownRegistry
from pocket_chat.executor import RequestExecutor
from pocket_chat.pipeline import ChatPipeline

PARTNER = {"id": "p1", "name": "Mia", "chat_history": [{"role": "assistant", "content": "hi"}]}


def _provider(request: httpx.Request) -> httpx.Response:
    if request.headers.get("authorization") == "Bearer bad":
        return httpx.Response(401, json={"error": {"message": "invalid api key"}})
    if request.url.path.endswith("/models"):
        return httpx.Response(200, json={"data": [{"id": "m1"}]})
    return httpx.Response(200, json={"choices": [{"message": {"content": "hey!"}}]})


@pytest.fixture
def client(tmp_path, clock):
    executor = RequestExecutor(
        cooldowns=CooldownRegistry(clock, clock.sleep),
        client=httpx.AsyncClient(transport=httpx.MockTransport(_provider)),
        sleep=clock.sleep,
    )
    app = create_app(tmp_path / "data", pipeline=ChatPipeline(storage.get_settings, executor=executor))
    return TestClient(app)


@pytest.fixture
def configured(client):
    client.patch("/api/settings", json={
        "api_url": "https://api.example/v1",
        "api_key": "k",
        "selected_model": "m",
        "max_retries": 0,
    })
    return client


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_settings_roundtrip(client):
    resp = client.patch("/api/settings", json={"api_url": "http://h/v1", "unknown": 1})
    assert resp.status_code == 200
    assert resp.json()["api_url"] == "http://h/v1"
    assert client.get("/api/settings").json()["api_url"] == "http://h/v1"


def test_settings_invalid(client):
    assert client.patch("/api/settings", json={"max_retries": "lots"}).status_code == 422


def test_chat(configured):
    resp = configured.post("/api/chat", json={"partner": PARTNER, "message": "hello"})
    assert resp.status_code == 200
    assert resp.json() == {"reply": "hey!"}


def test_chat_not_configured(client):
    resp = client.post("/api/chat", json={"partner": PARTNER, "message": "hello"})
    assert resp.status_code == 400
    assert "API URL" in resp.json()["detail"]


def test_chat_provider_error(configured):
    configured.patch("/api/settings", json={"api_key": "bad"})
    resp = configured.post("/api/chat", json={"partner": PARTNER, "message": "hello"})
    assert resp.status_code == 502
    assert "invalid api key" in resp.json()["detail"]


@pytest.mark.parametrize("kind", ["voice", "video"])
def test_call(configured, kind):
    resp = configured.post(f"/api/calls/{kind}", json={
        "partner": PARTNER,
        "message": "can you hear me",
        "initiator": "partner",
    })
    assert resp.status_code == 200
    assert resp.json()["reply"] == "hey!"


def test_call_unknown_kind(configured):
    resp = configured.post("/api/calls/fax", json={"partner": PARTNER, "message": "x"})
    assert resp.status_code == 422


def test_listen_together(configured):
    resp = configured.post("/api/listen-together", json={
        "partner": PARTNER,
        "message": "nice",
        "song": {"name": "Sunny Day", "artist": "Jay Chou"},
    })
    assert resp.status_code == 200


def test_models(configured):
    resp = configured.post("/api/models", json={})
    assert resp.json() == {"models": ["m1"]}


def test_models_bad_key(client):
    resp = client.post("/api/models", json={"api_url": "http://h/v1", "api_key": "bad"})
    assert resp.status_code == 502


def test_check_connection(configured):
    body = configured.post("/api/check-connection").json()
    assert body["success"] is True
    assert body["models"] == ["m1"]
