"""Tests for leavesync.http.app -- the /data endpoint."""

import pytest
from fastapi.testclient import TestClient

from leavesync.http import create_app

from fakes import KEY, FlakyStore

DOC = {"users": [{"id": 1, "name": "Alice Tan", "role": "staff"}], "leaves": []}


@pytest.fixture
def store():
    return FlakyStore()


@pytest.fixture
def http(store):
    return TestClient(create_app(store, KEY))


class TestGet:
    def test_absent_blob_is_null(self, http):
        response = http.get("/data")

        assert response.status_code == 200
        assert response.json() is None

    def test_returns_stored_document(self, http, store):
        store.write_full(KEY, DOC)

        response = http.get("/data", params={"t": 1700000000000})

        assert response.status_code == 200
        assert response.json() == DOC

    def test_read_failure_is_null(self, http, store):
        store.write_full(KEY, DOC)
        store.fail_fetch = True

        response = http.get("/data")

        assert response.status_code == 200
        assert response.json() is None


class TestPut:
    def test_replaces_document(self, http, store):
        response = http.put("/data", json=DOC)

        assert response.status_code == 200
        assert response.json() == {"ok": True}
        assert store.fetch_latest(KEY) == DOC

    def test_write_failure_is_500(self, http, store):
        store.fail_write = True

        response = http.put("/data", json=DOC)

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to save data"}

    def test_invalid_json_is_400(self, http, store):
        response = http.put(
            "/data", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}
        assert store.write_calls == 0


class TestOtherMethods:
    def test_options_is_200(self, http):
        assert http.options("/data").status_code == 200

    @pytest.mark.parametrize("method", ["POST", "PATCH", "DELETE", "TRACE", "PROPFIND"])
    def test_unsupported_methods_are_405(self, http, method):
        response = http.request(method, "/data")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    def test_head_is_405(self, http):
        assert http.head("/data").status_code == 405

    def test_unknown_path_keeps_default_404(self, http):
        response = http.get("/nope")

        assert response.status_code == 404
        assert response.json() == {"detail": "Not Found"}

    def test_cors_headers_on_simple_request(self, http):
        response = http.get("/data", headers={"Origin": "https://leave.example.com"})

        assert response.headers["access-control-allow-origin"] == "*"

    def test_cors_preflight(self, http):
        response = http.options(
            "/data",
            headers={
                "Origin": "https://leave.example.com",
                "Access-Control-Request-Method": "PUT",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert "PUT" in response.headers["access-control-allow-methods"]


def test_app_state_exposes_store(store):
    app = create_app(store, KEY)

    assert app.state.store is store
    assert app.state.blob_key == KEY


class TestServerEntryPoint:
    def test_run_serves_file_store(self, tmp_path, monkeypatch):
        from unittest.mock import patch

        from leavesync.core.store import FileDocumentStore
        from leavesync.http import server as http_server

        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("LEAVESYNC_CONFIG", raising=False)
        monkeypatch.delenv("LEAVESYNC_PORT", raising=False)
        with (
            patch.object(http_server, "load_dotenv"),
            patch.object(http_server, "setup_logging"),
            patch.object(http_server.uvicorn, "run") as mock_run,
        ):
            http_server.run(["--store-path", str(tmp_path / "blobs"), "--port", "9001"])

        app = mock_run.call_args.args[0]
        assert isinstance(app.state.store, FileDocumentStore)
        assert app.state.store.root == tmp_path / "blobs"
        assert mock_run.call_args.kwargs["port"] == 9001
        assert mock_run.call_args.kwargs["host"] == "127.0.0.1"

    def test_run_exits_on_bad_config(self, monkeypatch):
        from unittest.mock import patch

        from leavesync.http import server as http_server

        monkeypatch.setenv("LEAVESYNC_POLL_INTERVAL", "not-a-number")
        with (
            patch.object(http_server, "load_dotenv"),
            patch.object(http_server, "discover_config_files", return_value=[]),
            pytest.raises(SystemExit) as exc_info,
        ):
            http_server.run([])
        assert exc_info.value.code == 1

    def test_run_logs_with_yaml_logging_section(self, tmp_path, monkeypatch):
        from unittest.mock import patch

        from leavesync.http import server as http_server

        config_file = tmp_path / "config.yml"
        config_file.write_text(
            f"logging:\n  level: warning\n  file: {tmp_path / 'server.log'}\n"
        )
        monkeypatch.setenv("LEAVESYNC_CONFIG", str(config_file))
        monkeypatch.delenv("LEAVESYNC_DEBUG", raising=False)
        with (
            patch.object(http_server, "load_dotenv"),
            patch.object(http_server, "setup_logging") as mock_setup,
            patch.object(http_server.uvicorn, "run") as mock_run,
        ):
            http_server.run(["--store-path", str(tmp_path / "blobs")])

        mock_setup.assert_called_once_with(
            mode="http",
            debug=False,
            level="warning",
            log_file=str(tmp_path / "server.log"),
        )
        assert mock_run.call_args.kwargs["log_config"] is None
