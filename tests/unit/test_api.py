from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from verifier.backend import MockAccessBackend
from verifier.config import Settings
from verifier.device import DeviceIdentity
from verifier.errors import NetworkError
from verifier.main import create_app
from verifier.verification import mock_decision


@pytest.fixture
def client(settings, tmp_path):
    app = create_app(settings, device=DeviceIdentity.from_directory(tmp_path / "device"))
    with TestClient(app) as test_client:
        yield test_client


def test_healthz_reports_locked_mock_terminal(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "session": "locked", "mode": "mock"}


def test_malformed_pin_is_bad_request(client):
    response = client.post("/session/unlock", json={"pin": "99"})
    assert response.status_code == 400
    assert response.json() == {"error": "PIN must be 4 digits.", "retryable": False}


def test_wrong_pin_is_unauthorized(client):
    response = client.post("/session/unlock", json={"pin": "9999"})
    assert response.status_code == 401
    assert "mock: use 1234" in response.json()["error"]
    assert client.get("/session").json()["status"] == "locked"


def test_unlock_select_and_verify_flow(client):
    unlocked = client.post("/session/unlock", json={"pin": "1234"})
    assert unlocked.status_code == 200
    assert unlocked.json()["status"] == "unlocked"

    session = client.get("/session").json()
    assert session["unlocked"] is True
    assert session["claims"]["orgId"] == "mock_org_1"
    assert session["claims"]["deviceId"] == session["deviceId"]

    checkpoints = client.get("/checkpoints").json()
    assert checkpoints == {
        "checkpoints": [{"checkpointId": "mock_checkpoint_gate", "name": "Main Gate"}],
        "selected": "mock_checkpoint_gate",
    }

    verified = client.post("/verify", json={"code": "48 21"})
    assert verified.status_code == 200
    body = verified.json()
    expected = mock_decision("mock_checkpoint_gate", "4821")
    assert body["applied"] is True
    assert body["code"] == "4821"
    assert body["result"]["decision"] == expected.decision.value
    assert body["result"]["reason"] == expected.reason
    assert body["display"]["checkpointId"] == "mock_checkpoint_gate"


def test_manual_checkpoint_selection(client):
    client.post("/session/unlock", json={"pin": "1234"})
    selected = client.post("/checkpoints/select", json={"checkpointId": "side_door"})
    assert selected.json() == {"selected": "side_door"}
    assert client.post("/verify", json={"code": "0001"}).json()["checkpointId"] == "side_door"

    blank = client.post("/checkpoints/select", json={"checkpointId": "  "})
    assert blank.status_code == 400


def test_short_code_is_bad_request(client):
    client.post("/session/unlock", json={"pin": "1234"})
    response = client.post("/verify", json={"code": "12"})
    assert response.status_code == 400
    assert response.json()["error"] == "Code must be 4 digits."


def test_lock_clears_session_and_checkpoints(client):
    client.post("/session/unlock", json={"pin": "1234"})
    locked = client.post("/session/lock")
    assert locked.json() == {"status": "locked"}

    assert client.get("/checkpoints").json() == {"checkpoints": [], "selected": None}
    assert client.post("/checkpoints/refresh").status_code == 401

    denied = client.post("/verify", json={"code": "0001", "checkpointId": "mock_checkpoint_gate"}).json()
    assert denied["result"] == {"decision": "denied", "reason": "Session locked", "retryable": False}


def test_network_failure_maps_to_service_unavailable(settings, tmp_path):
    class OfflineBackend(MockAccessBackend):
        async def unlock(self, pin, device_id):
            raise NetworkError("Network error. Please try again.")

    app = create_app(
        settings,
        backend=OfflineBackend(settings),
        device=DeviceIdentity.from_directory(tmp_path / "device"),
    )
    with TestClient(app) as client:
        response = client.post("/session/unlock", json={"pin": "1234"})
    assert response.status_code == 503
    assert response.json() == {"error": "Network error. Please try again.", "retryable": True}


def test_ui_socket_receives_unlock_events(client):
    with client.websocket_connect("/ws/ui") as ws:
        client.post("/session/unlock", json={"pin": "1234"})
        first = ws.receive_json()
        second = ws.receive_json()
    assert first == {"type": "state", "status": "unlocked", "data": {"unlocked": True}}
    assert second["type"] == "checkpoints"
    assert second["data"]["selected"] == "mock_checkpoint_gate"


def test_cors_allows_only_configured_origins(client):
    preflight = {"Access-Control-Request-Method": "POST"}
    allowed = client.options("/session/unlock", headers={"Origin": "http://localhost:3000", **preflight})
    assert allowed.status_code == 200
    assert allowed.headers["access-control-allow-origin"] == "http://localhost:3000"
    assert allowed.headers["access-control-allow-credentials"] == "true"

    foreign = client.options("/session/unlock", headers={"Origin": "https://evil.example", **preflight})
    assert foreign.status_code == 400
    assert "access-control-allow-origin" not in foreign.headers


def test_wildcard_cors_drops_credentials(tmp_path):
    settings = Settings(_env_file=None, state_directory=tmp_path, cors_allow_origins=["*"])
    app = create_app(settings, device=DeviceIdentity.from_directory(tmp_path / "device"))
    with TestClient(app) as client:
        response = client.get("/healthz", headers={"Origin": "https://anywhere.example"})
    assert response.headers["access-control-allow-origin"] == "*"
    assert "access-control-allow-credentials" not in response.headers
