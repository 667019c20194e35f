from datetime import datetime

import pytest

from log_monitor.core import storage


def rpc(client, procedure, payload=None):
    return client.post(f"/rpc/{procedure}", json=payload)


def new_log(**overrides):
    body = {
        "level": "info",
        "type": "application",
        "source": "app.js",
        "message": "Request served",
        "raw_content": "INFO app.js Request served in 12ms",
    }
    body.update(overrides)
    return body


def test_healthcheck_get_and_post(client):
    for response in (client.get("/rpc/healthcheck"), rpc(client, "healthcheck")):
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert datetime.fromisoformat(body["timestamp"].replace("Z", "+00:00")).tzinfo is not None


def test_create_and_get_logs(client):
    created = rpc(client, "createLogEntry", new_log(timestamp="2024-01-15T10:00:00Z"))
    assert created.status_code == 200
    entry = created.json()
    assert entry["id"] > 0
    assert entry["level"] == "info"
    assert entry["timestamp"].startswith("2024-01-15T10:00:00")

    response = rpc(client, "getLogs", {"level": "info"})
    assert response.status_code == 200
    assert [log["id"] for log in response.json()] == [entry["id"]]


def test_get_logs_without_body_uses_defaults(client):
    for i in range(3):
        rpc(client, "createLogEntry", new_log(message=f"log {i}"))
    response = rpc(client, "getLogs")
    assert response.status_code == 200
    assert len(response.json()) == 3


def test_get_logs_pagination(client):
    ids = [rpc(client, "createLogEntry", new_log(timestamp=f"2024-01-15T10:0{i}:00Z")).json()["id"]
           for i in range(5)]
    response = rpc(client, "getLogs", {"limit": 2, "offset": 2})
    assert [log["id"] for log in response.json()] == [ids[2], ids[1]]


def test_recent_logs(client):
    first = rpc(client, "createLogEntry", new_log(timestamp="2030-01-01T00:00:00Z")).json()
    second = rpc(client, "createLogEntry", new_log(timestamp="2000-01-01T00:00:00Z")).json()
    response = rpc(client, "getRecentLogs", {"limit": 10})
    assert [log["id"] for log in response.json()] == [second["id"], first["id"]]
    assert len(rpc(client, "getRecentLogs").json()) == 2


def test_search_logs(client):
    rpc(client, "createLogEntry", new_log(message="Payment FAILED for order 17"))
    rpc(client, "createLogEntry", new_log(message="Payment accepted"))
    response = rpc(client, "searchLogs", {"keyword": "failed"})
    assert response.status_code == 200
    assert [log["message"] for log in response.json()] == ["Payment FAILED for order 17"]


def test_log_sources(client):
    for source in ("nginx", "app.js", "nginx"):
        rpc(client, "createLogEntry", new_log(source=source))
    assert rpc(client, "getLogSources").json() == ["app.js", "nginx"]


def test_stream_status_and_control(client):
    status = rpc(client, "getStreamStatus").json()
    assert status["is_paused"] is False
    assert status["total_logs"] == 0

    paused = rpc(client, "controlStream", {"action": "pause"}).json()
    assert paused["is_paused"] is True
    assert rpc(client, "getStreamStatus").json()["is_paused"] is True

    resumed = rpc(client, "controlStream", {"action": "resume"}).json()
    assert resumed["is_paused"] is False


def test_clear_logs(client):
    rpc(client, "createLogEntry", new_log())
    response = rpc(client, "clearLogs")
    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "All logs cleared successfully"}
    assert rpc(client, "getLogs").json() == []
    assert rpc(client, "getStreamStatus").json()["total_logs"] == 0


@pytest.mark.parametrize("procedure,payload", [
    ("getLogs", {"level": "critical"}),
    ("getLogs", {"limit": 5000}),
    ("getLogs", {"offset": -3}),
    ("getRecentLogs", {"limit": 0}),
    ("searchLogs", {"keyword": ""}),
    ("searchLogs", {}),
    ("controlStream", {"action": "restart"}),
    ("createLogEntry", new_log(level="verbose")),
])
def test_invalid_input_returns_validation_envelope(client, procedure, payload):
    response = rpc(client, procedure, payload)
    assert response.status_code == 400
    error = response.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["message"]
    assert error["details"]


def test_invalid_control_does_not_touch_status(client, db):
    rpc(client, "controlStream", {"action": "restart"})
    assert db.query(storage.StreamStatusDB).count() == 0


def test_storage_failure_returns_503(client, engine):
    storage.Base.metadata.drop_all(bind=engine)
    for procedure in ("getLogs", "getLogSources", "getStreamStatus", "clearLogs"):
        response = rpc(client, procedure)
        assert response.status_code == 503
        assert response.json()["error"]["code"] == "STORAGE_ERROR"
