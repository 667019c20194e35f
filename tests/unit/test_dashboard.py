import pytest

from log_monitor.dashboard import create_dashboard


@pytest.fixture
def dashboard(sync_client):
    app = create_dashboard(sync_client)
    app.config["TESTING"] = True
    return app.test_client()


def test_index_page(dashboard):
    response = dashboard.get("/")
    assert response.status_code == 200
    assert b"Log Monitor" in response.data
    assert b"const RENDER_MS = 2000;" in response.data


def test_state_before_first_tick(dashboard):
    data = dashboard.get("/api/state").get_json()
    assert data["connected"] is False
    assert data["loading"] is True
    assert data["status"] is None


def test_refresh(dashboard):
    data = dashboard.post("/api/refresh").get_json()
    assert data["ok"] is True
    assert data["state"]["connected"] is True
    assert [log["id"] for log in data["state"]["logs"]] == [1, 2]


def test_refresh_failure(dashboard, fake_client):
    fake_client.failing.add("*")
    data = dashboard.post("/api/refresh").get_json()
    assert data["ok"] is False
    assert data["state"]["error"].startswith("Unable to connect")


def test_control_while_disconnected_is_409(dashboard, fake_client):
    response = dashboard.post("/api/control/pause")
    assert response.status_code == 409
    assert response.get_json()["error"] == "Cannot control stream: Backend not connected"
    assert fake_client.calls == []


def test_control_and_toggle(dashboard):
    dashboard.post("/api/refresh")
    data = dashboard.post("/api/control/pause").get_json()
    assert data["state"]["status"]["is_paused"] is True
    assert data["state"]["polling"] is False

    data = dashboard.post("/api/control/toggle").get_json()
    assert data["state"]["status"]["is_paused"] is False
    assert data["state"]["polling"] is True


def test_unknown_action_is_400(dashboard):
    dashboard.post("/api/refresh")
    response = dashboard.post("/api/control/restart")
    assert response.status_code == 400
    assert response.get_json()["details"]


def test_clear(dashboard):
    dashboard.post("/api/refresh")
    data = dashboard.post("/api/clear").get_json()
    assert data["ok"] is True
    assert data["state"]["logs"] == []


def test_search_and_clear_search(dashboard):
    dashboard.post("/api/refresh")
    data = dashboard.post("/api/search", json={"keyword": "user"}).get_json()
    assert data["state"]["search_mode"] is True
    assert [log["message"] for log in data["state"]["logs"]] == ["User logged in"]

    data = dashboard.post("/api/search/clear").get_json()
    assert data["state"]["search_mode"] is False
    assert len(data["state"]["logs"]) == 2


def test_filters(dashboard):
    data = dashboard.post("/api/filters", json={"level": "error"}).get_json()
    assert data["state"]["filters"]["level"] == "error"

    response = dashboard.post("/api/filters", json={"level": "loud"})
    assert response.status_code == 400

    response = dashboard.post("/api/filters", json=["level", "error"])
    assert response.status_code == 400
    assert response.get_json()["state"]["filters"]["level"] == "error"

    data = dashboard.post("/api/filters/clear").get_json()
    assert "level" not in data["state"]["filters"]


def test_auto_refresh_switch(dashboard, scheduler):
    dashboard.post("/api/refresh")
    data = dashboard.post("/api/auto-refresh", json={"enabled": False}).get_json()
    assert data["state"]["auto_refresh"] is False
    assert scheduler.get_jobs() == []

    dashboard.post("/api/auto-refresh", json={"enabled": True})
    assert len(scheduler.get_jobs()) == 1
