"""Tests for crash report API endpoints."""

import io
from unittest.mock import MagicMock

from flask import Flask
from flask.testing import FlaskClient

from breakpad_server.config import MINIDUMP_FIELD
from breakpad_server.services.container import ServiceContainer

MINIDUMP_BYTES = b"MDMP" + bytes(range(256)) * 2


def _upload(client: FlaskClient, **fields: str) -> dict:
    data: dict = {"prod": "Crashy", "ver": "1.0.0", **fields}
    data[MINIDUMP_FIELD] = (io.BytesIO(MINIDUMP_BYTES), "minidump.dmp")
    response = client.post("/api/crashreports", data=data, content_type="multipart/form-data")
    assert response.status_code == 200, response.get_json()
    return response.get_json()


class TestUploadCrashReport:
    """Tests for POST /api/crashreports."""

    def test_upload_returns_report_with_file_urls(self, client: FlaskClient):
        data = _upload(client, channel="beta")

        assert data["product"] == "Crashy"
        assert data["version"] == "1.0.0"
        assert data["params"]["channel"] == "beta"
        assert data["files"] == {
            MINIDUMP_FIELD: f"/api/crashreports/{data['id']}/files/{MINIDUMP_FIELD}"
        }

    def test_upload_is_committed(self, client: FlaskClient):
        data = _upload(client)

        response = client.get(f"/api/crashreports/{data['id']}")

        assert response.status_code == 200
        assert response.get_json()["id"] == data["id"]

    def test_client_ip_from_peer(self, client: FlaskClient):
        response = client.post(
            "/api/crashreports",
            data={"prod": "Crashy"},
            content_type="multipart/form-data",
            environ_base={"REMOTE_ADDR": "192.0.2.7"},
            headers={"X-Forwarded-For": "203.0.113.9"},
        )

        # Forwarded header from an untrusted peer is ignored
        assert response.get_json()["ip"] == "192.0.2.7"

    def test_client_ip_through_local_proxy(self, client: FlaskClient):
        response = client.post(
            "/api/crashreports",
            data={"prod": "Crashy"},
            content_type="multipart/form-data",
            environ_base={"REMOTE_ADDR": "127.0.0.1"},
            headers={"X-Forwarded-For": "203.0.113.9, 127.0.0.1"},
        )

        assert response.get_json()["ip"] == "203.0.113.9"

    def test_upload_too_large(self, app: Flask, client: FlaskClient):
        app.config["MAX_CONTENT_LENGTH"] = 100

        response = client.post(
            "/api/crashreports",
            data={MINIDUMP_FIELD: (io.BytesIO(MINIDUMP_BYTES), "minidump.dmp")},
            content_type="multipart/form-data",
        )

        assert response.status_code == 413


class TestListCrashReports:
    """Tests for GET /api/crashreports and /api/crashreports/count."""

    def test_list(self, client: FlaskClient):
        for version in ("1", "2", "3"):
            _upload(client, ver=version)

        response = client.get("/api/crashreports?limit=2")

        assert response.status_code == 200
        data = response.get_json()
        assert data["count"] == 3
        assert [r["version"] for r in data["crash_reports"]] == ["3", "2"]

    def test_list_invalid_limit(self, client: FlaskClient):
        response = client.get("/api/crashreports?limit=0")

        assert response.status_code == 400

    def test_count_with_filter(self, client: FlaskClient):
        _upload(client, channel="beta")
        _upload(client, channel="stable")

        response = client.get("/api/crashreports/count?channel=beta")

        assert response.status_code == 200
        assert response.get_json() == {"count": 1}


class TestGetCrashReport:
    """Tests for GET /api/crashreports/<id>."""

    def test_not_found(self, client: FlaskClient):
        response = client.get("/api/crashreports/999")

        assert response.status_code == 404
        data = response.get_json()
        assert data["code"] == "RECORD_NOT_FOUND"
        assert "correlationId" in data


class TestStackwalk:
    """Tests for GET /api/crashreports/<id>/stackwalk."""

    def test_returns_plain_text_trace(self, client: FlaskClient, mock_stackwalk: MagicMock):
        report = _upload(client)

        response = client.get(f"/api/crashreports/{report['id']}/stackwalk")

        assert response.status_code == 200
        assert response.mimetype == "text/plain"
        assert response.get_data(as_text=True).startswith("Thread 0 (crashed)")

    def test_cached_until_symbol_upload(
        self, client: FlaskClient, mock_stackwalk: MagicMock
    ):
        report = _upload(client)
        client.get(f"/api/crashreports/{report['id']}/stackwalk")
        client.get(f"/api/crashreports/{report['id']}/stackwalk")
        assert mock_stackwalk.call_count == 1

        symfile = b"MODULE windows x86 ABCDEF01 crashy.pdb\nFUNC 1000 10 0 main\n"
        response = client.post(
            "/api/symfiles",
            data={"symfile": (io.BytesIO(symfile), "crashy.sym")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 200

        client.get(f"/api/crashreports/{report['id']}/stackwalk")
        assert mock_stackwalk.call_count == 2

    def test_analyzer_failure_is_bad_gateway(self, client: FlaskClient, mock_stackwalk: MagicMock):
        report = _upload(client)
        mock_stackwalk.return_value = MagicMock(returncode=1, stdout=b"", stderr=b"corrupt minidump")

        response = client.get(f"/api/crashreports/{report['id']}/stackwalk")

        assert response.status_code == 502
        data = response.get_json()
        assert data["code"] == "ANALYSIS_FAILED"
        assert data["details"]["stderr"] == "corrupt minidump"

    def test_missing_minidump_not_found(self, client: FlaskClient, mock_stackwalk: MagicMock):
        response = client.post(
            "/api/crashreports", data={"prod": "Crashy"}, content_type="multipart/form-data"
        )
        report_id = response.get_json()["id"]

        response = client.get(f"/api/crashreports/{report_id}/stackwalk")

        assert response.status_code == 404
        mock_stackwalk.assert_not_called()


class TestDownloadFile:
    """Tests for GET /api/crashreports/<id>/files/<field>."""

    def test_download_disk_file(self, client: FlaskClient):
        report = _upload(client)

        response = client.get(f"/api/crashreports/{report['id']}/files/{MINIDUMP_FIELD}")

        assert response.status_code == 200
        assert response.data == MINIDUMP_BYTES
        assert f"upload_file_minidump.{report['id']}.dmp" in response.headers["Content-Disposition"]

    def test_download_inline_file(self, client: FlaskClient, container: ServiceContainer):
        container.config.override(container.config().model_copy(update={"files_in_database": True}))
        report = _upload(client)

        response = client.get(f"/api/crashreports/{report['id']}/files/{MINIDUMP_FIELD}")

        assert response.status_code == 200
        assert response.data == MINIDUMP_BYTES

    def test_download_short_inline_file(self, client: FlaskClient, container: ServiceContainer):
        container.config.override(container.config().model_copy(update={"files_in_database": True}))
        log = b"app started\nsegfault\n"
        response = client.post(
            "/api/crashreports",
            data={"prod": "Crashy", "upload_file_log": (io.BytesIO(log), "app.log")},
            content_type="multipart/form-data",
        )
        report_id = response.get_json()["id"]

        response = client.get(f"/api/crashreports/{report_id}/files/upload_file_log")

        assert response.status_code == 200
        assert response.data == log
        assert f"log.{report_id}.txt" in response.headers["Content-Disposition"]

    def test_unknown_field(self, client: FlaskClient):
        report = _upload(client)

        response = client.get(f"/api/crashreports/{report['id']}/files/upload_file_core")

        assert response.status_code == 404
