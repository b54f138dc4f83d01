"""
Tests for the HTTP interface.
"""
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from doc_ledger.api.app import create_app
from doc_ledger.config.loader import AppConfig, LoggingConfig, StorageConfig
from doc_ledger.core.pipeline import IngestionPipeline
from doc_ledger.storage.ledger import LedgerStore, reset_ledger_stores
from doc_ledger.storage.records import RecordStore

HELLO_DIGEST = "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


def _fixed_clock():
    return datetime(2024, 3, 5, 10, 15, 30, 123000, tzinfo=timezone.utc)


@pytest.fixture
def storage_root():
    """Create a temporary storage root."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)
    reset_ledger_stores()


@pytest.fixture
def pipeline(storage_root):
    """Create a pipeline with a fixed clock."""
    ledger_store = LedgerStore(storage_root / "usage.json", clock=_fixed_clock)
    ledger_store.initialize()
    return IngestionPipeline(RecordStore(storage_root), ledger_store, clock=_fixed_clock)


@pytest.fixture
def client(storage_root, pipeline):
    """Create a test client for the app."""
    config = AppConfig(storage=StorageConfig(root=str(storage_root)))
    return TestClient(create_app(config, pipeline))


class TestHealth:
    """Test the health endpoint."""

    def test_health_reports_ledger(self, client):
        """Test that health includes the usage ledger."""
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["online"] is True
        assert body["ledger"]["month"] == "2024-03"

    def test_health_with_corrupt_ledger(self, client, storage_root):
        """Test that an unreadable ledger is reported, not raised."""
        (storage_root / "usage.json").write_text("broken", encoding="utf-8")

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["online"] is True
        assert "error" in response.json()


class TestExtractHybrid:
    """Test the upload endpoint."""

    def test_upload_returns_record(self, client, storage_root):
        """Test that an upload is stored and its record returned."""
        response = client.post(
            "/extract-hybrid",
            files={"file": ("hello.pdf", b"hello", "application/pdf")},
        )

        assert response.status_code == 200
        assert response.json() == {
            "contentId": HELLO_DIGEST,
            "submittedFlag": True,
            "timestamp": "2024-03-05T10:15:30.123Z",
        }
        assert (storage_root / "json" / "2024-03-05" / f"{HELLO_DIGEST}.json").is_file()

        health = client.get("/health").json()
        assert health["ledger"]["processed_count"] == 1
        assert health["ledger"]["recent"][0]["contentId"] == HELLO_DIGEST

    def test_missing_file_is_client_error(self, client):
        """Test that a request without a file is rejected."""
        response = client.post("/extract-hybrid")

        assert response.status_code == 400
        assert response.json()["kind"] == "invalid_input"

    def test_empty_file_is_client_error(self, client, storage_root):
        """Test that an empty upload is rejected without side effects."""
        response = client.post(
            "/extract-hybrid",
            files={"file": ("empty.pdf", b"", "application/pdf")},
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "invalid_input"
        assert not (storage_root / "json").exists()

    def test_storage_failure_is_server_error(self, client, pipeline):
        """Test that a record write failure maps to a server error."""
        with patch.object(pipeline.record_store, "put", side_effect=OSError("disk full")):
            response = client.post(
                "/extract-hybrid",
                files={"file": ("hello.pdf", b"hello", "application/pdf")},
            )

        assert response.status_code == 500
        assert response.json()["kind"] == "storage_write_failure"

    def test_ledger_failure_includes_record(self, client):
        """Test that a ledger failure still reports the stored record."""
        with patch("doc_ledger.storage.ledger.write_json_atomic", side_effect=OSError("read-only")):
            response = client.post(
                "/extract-hybrid",
                files={"file": ("hello.pdf", b"hello", "application/pdf")},
            )

        assert response.status_code == 500
        body = response.json()
        assert body["kind"] == "ledger_update_failure"
        assert body["record"]["contentId"] == HELLO_DIGEST

    def test_cors_headers(self, client):
        """Test that cross-origin requests are allowed."""
        response = client.get("/health", headers={"Origin": "https://example.org"})

        assert response.headers["access-control-allow-origin"] == "*"


class TestCreateApp:
    """Test application factory wiring."""

    def test_configures_logging_from_config(self, storage_root, pipeline):
        """Test that the factory applies the configured log level."""
        config = AppConfig(
            storage=StorageConfig(root=str(storage_root)),
            logging=LoggingConfig(level="DEBUG"),
        )

        with patch("doc_ledger.api.app.configure_logging") as configure:
            create_app(config, pipeline)

        configure.assert_called_once_with("DEBUG")
