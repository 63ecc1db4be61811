"""
Tests for the control API.

Verifies that:
1. Status and toggle endpoints reflect the session
2. Editor endpoints return 404 without a mounted entity
3. Invalid edits and names return 400
4. Saving over an existing file needs overwrite confirmation (409)
5. File manager lists and deletes preset files
"""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from camtool.main import create_app
from camtool.session import Session

VEHICLE_NAME = "v_sport2_porsche_911turbo_player"


@pytest.fixture
def session(store, config, defaults_dir):
    s = Session(store, config=config, clock=lambda: datetime(2024, 1, 1), configure_logs=False)
    s.start()
    return s


@pytest.fixture
def client(session):
    return TestClient(create_app(session))


@pytest.fixture
def mounted(session, entity):
    session.on_mount(entity)
    return session


class TestGlobalEndpoints:
    """Status, toggle, reload, debug level."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "enabled": True}

    def test_status(self, client):
        response = client.get("/control/status")
        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is True
        assert data["presets"] == 2
        assert data["entity"] is None

    def test_status_with_entity(self, client, mounted):
        data = client.get("/control/status").json()
        assert data["entity"] == VEHICLE_NAME

    def test_disable_then_reload_conflict(self, client):
        response = client.post("/control/enabled", json={"enabled": False})
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Disabled"}

        response = client.post("/control/reload")
        assert response.status_code == 409

    def test_reload(self, client):
        response = client.post("/control/reload")
        assert response.status_code == 200
        assert response.json()["success"] is True

    def test_dev_mode(self, client, session):
        assert client.post("/control/dev-mode", json={"level": 2}).status_code == 200
        assert session.options.dev_mode == 2

    def test_dev_mode_out_of_range(self, client):
        assert client.post("/control/dev-mode", json={"level": 5}).status_code == 422


class TestEditorEndpoints:
    """Editing the mounted entity's preset."""

    def test_no_entity(self, client):
        assert client.get("/control/editor").status_code == 404
        response = client.post("/control/editor/field", json={"level": "Close", "field": "z", "value": 1.0})
        assert response.status_code == 404

    def test_get_editor(self, client, mounted):
        response = client.get("/control/editor")
        assert response.status_code == 200
        data = response.json()
        assert data["key"] == VEHICLE_NAME
        assert data["profile_id"] == "4w_911"
        assert data["offsets"]["Close"]["z"] == pytest.approx(1.1)
        assert data["file_present"] is False
        assert data["tasks"]["apply"] is False

    def test_edit_field(self, client, mounted):
        response = client.post("/control/editor/field", json={"level": "Close", "field": "z", "value": 1.4})
        assert response.status_code == 200
        data = response.json()
        assert data["offsets"]["Close"]["z"] == pytest.approx(1.4)
        assert data["tasks"]["apply"] is True
        assert data["tasks"]["save"] is True
        assert data["tasks"]["validate_pending"] is False

    def test_edit_invalid_field(self, client, mounted):
        response = client.post("/control/editor/field", json={"level": "Close", "field": "roll", "value": 1.0})
        assert response.status_code == 400

    def test_rename(self, client, mounted):
        response = client.post("/control/editor/rename", json={"name": "porsche_911turbo"})
        assert response.status_code == 200
        assert response.json()["key"] == "porsche_911turbo"

        assert client.post("/control/editor/rename", json={"name": "ferrari"}).status_code == 400

    def test_apply(self, client, mounted, store):
        client.post("/control/editor/field", json={"level": "Far", "field": "z", "value": 2.8})
        response = client.post("/control/editor/apply")
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert store.get("Camera.VehicleTPP_4w_911_High_Far.lookAtOffset").z == pytest.approx(2.8)

    def test_save_and_overwrite(self, client, mounted):
        client.post("/control/editor/field", json={"level": "Close", "field": "z", "value": 1.4})
        response = client.post("/control/editor/save", json={})
        assert response.status_code == 200
        assert response.json()["outcome"] == "written"

        client.post("/control/editor/field", json={"level": "Close", "field": "z", "value": 1.1})
        assert client.post("/control/editor/save", json={}).status_code == 409

        response = client.post("/control/editor/save", json={"overwrite": True})
        assert response.status_code == 200
        assert response.json()["outcome"] == "deleted"


class TestFileEndpoints:
    """File manager."""

    def _save(self, client):
        client.post("/control/editor/field", json={"level": "Close", "field": "z", "value": 1.4})
        client.post("/control/editor/save", json={})

    def test_list_files(self, client, mounted):
        self._save(client)
        response = client.get("/control/files")
        assert response.status_code == 200
        files = response.json()["files"]
        assert [f["key"] for f in files] == [VEHICLE_NAME]
        assert files[0]["total"] == 1

    def test_delete_file(self, client, mounted, config):
        self._save(client)
        response = client.delete(f"/control/files/{VEHICLE_NAME}")
        assert response.status_code == 200
        assert not (config.presets_path / f"{VEHICLE_NAME}.json").exists()
        assert client.get("/control/files").json()["files"] == []

    def test_delete_missing(self, client):
        assert client.delete("/control/files/nothing").status_code == 404


class TestServerRunner:
    """uvicorn wiring."""

    def test_run_control_server(self, session, monkeypatch):
        import uvicorn

        from camtool import main

        calls = {}

        def fake_run(app, host, port):
            calls.update(app=app, host=host, port=port)

        monkeypatch.setattr(uvicorn, "run", fake_run)
        monkeypatch.delenv("CAMTOOL_CONTROL_HOST", raising=False)
        main.run_control_server(session, port=9000)

        assert calls["host"] == main.DEFAULT_HOST
        assert calls["port"] == 9000
        assert calls["app"].state.session is session

    def test_bind_host_from_env(self, monkeypatch):
        from camtool import main

        monkeypatch.setenv("CAMTOOL_CONTROL_HOST", "0.0.0.0")
        assert main.get_bind_host() == "0.0.0.0"
