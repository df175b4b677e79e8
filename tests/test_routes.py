"""Tests for the HTTP surface, driven through FastAPI's TestClient."""

import pytest
from fastapi.testclient import TestClient

from mineagent import __version__, storage
from mineagent.app import create_app
from mineagent.engine import render
from mineagent.llm import EchoChat
from mineagent.runtime import Runtime
from mineagent.storage.config import AgentConfig


@pytest.fixture
def runtime() -> Runtime:
    return Runtime.build(config=AgentConfig(run_feedback_delay=0), chat=EchoChat())


@pytest.fixture
def client(runtime):
    app = create_app(data_dir=storage.data_dir(), runtime=runtime)
    with TestClient(app) as client:
        yield client


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_status(client):
    data = client.get("/api/status").json()
    assert data == {
        "indexed_commands": 2,
        "indexed_presets": len(storage.list_presets()),
        "active_sessions": 0,
        "version": __version__,
    }
    assert data["indexed_presets"] >= 3


def test_reload_all(client):
    (storage.preset_dir() / "custom.txt").write_text("x")
    resp = client.post("/api/reload")
    assert resp.json() == {"reloaded": ["config", "workspace"]}
    assert "custom.txt" in storage.list_presets()


def test_reload_single_target(client):
    assert client.post("/api/reload", params={"target": "config"}).json() == {
        "reloaded": ["config"]
    }


def test_reload_unknown_target(client):
    assert client.post("/api/reload", params={"target": "plugins"}).status_code == 400


def test_settings_mask_key(client):
    storage.update_config({"cloudflare": {"cf_key": "secret"}})
    data = client.get("/api/settings").json()
    assert data["cloudflare"]["cf_key"] == "********"
    assert data["settings"]["timeout_minutes"] == 10


def test_patch_settings_persists(client):
    resp = client.patch("/api/settings", json={"settings": {"timeout_minutes": 3}})
    assert resp.status_code == 200
    assert resp.json()["settings"]["timeout_minutes"] == 3
    assert storage.get_config()["settings"]["timeout_minutes"] == 3


def test_message_outside_session_goes_public(client, runtime):
    runtime.host.join("Alex")
    resp = client.post("/api/users/Steve/messages", json={"text": "hello"})
    assert resp.json() == {"handled": False}
    assert client.get("/api/users/Alex/outbox").json()["lines"] == ["<Steve> hello"]


def test_agreement_flow(client):
    resp = client.post("/api/users/Steve/toggle")
    assert resp.json() == {"mode": "pending_agreement"}
    outbox = client.get("/api/users/Steve/outbox").json()
    assert outbox["lines"] == render.AGREEMENT_LINES

    resp = client.post("/api/users/Steve/messages", json={"text": "agree"})
    assert resp.json() == {"handled": True}
    outbox = client.get("/api/users/Steve/outbox").json()
    assert outbox["lines"] == render.ENTER_LINES
    assert outbox["mode"] == "active_idle"
    assert "Steve" in storage.load_agreements()


def test_toggle_twice_leaves(client):
    client.post("/api/users/Steve/toggle")
    client.post("/api/users/Steve/messages", json={"text": "agree"})
    assert client.get("/api/status").json()["active_sessions"] == 1
    assert client.post("/api/users/Steve/toggle").json() == {"mode": "none"}
    assert client.get("/api/status").json()["active_sessions"] == 0


def test_confirm_without_pending(client):
    assert client.post("/api/users/Steve/confirm").status_code == 409
    assert client.post("/api/users/Steve/cancel").status_code == 409


def test_select_without_choice(client):
    resp = client.post("/api/users/Steve/select", json={"option": "Y"})
    assert resp.status_code == 409


def test_select_invokes_callback(client, runtime):
    picked = []
    runtime.host.send_choice("Steve", ["A", "B"], picked.append)
    outbox = client.get("/api/users/Steve/outbox").json()
    assert outbox["choice"] == ["A", "B"]

    assert client.post("/api/users/Steve/select", json={"option": "B"}).status_code == 200
    assert picked == ["B"]


def test_invalid_user_id(client):
    assert client.post("/api/users/bad id/toggle").status_code == 400
    assert client.get("/api/users/bad id/outbox").status_code == 400
