"""Tests for the ingestion router — upload, resolve and history over HTTP."""

import io

import pytest
from fastapi.testclient import TestClient

from apps.api.core.config import settings
from apps.api.domains.ingestion import service
from apps.api.domains.ingestion.repository import InMemoryTransactionStore
from apps.api.domains.ingestion.router import get_transaction_store
from apps.api.main import app
from packages.statement_import.errors import ExtractionError

CSV_SAMPLE = """Date,Description,Amount
2024-01-15,NETFLIX.COM,-22.99
2024-01-16,Payroll ACME,1500.00
2024-01-17,Coffee Shop,-4.50
"""


class FailingExtractor:
    async def extract(self, text):
        raise ExtractionError()


@pytest.fixture
def store():
    return InMemoryTransactionStore()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_transaction_store] = lambda: store
    c = TestClient(app)
    yield c
    app.dependency_overrides.clear()


def _upload(client, name, content, content_type="text/csv"):
    data = content.encode("utf-8") if isinstance(content, str) else content
    return client.post(
        "/api/v1/imports/upload",
        files={"file": (name, io.BytesIO(data), content_type)},
    )


def test_upload_csv_returns_201_with_counts(client):
    response = _upload(client, "jan.csv", CSV_SAMPLE)

    assert response.status_code == 201
    data = response.json()
    assert data["format"] == "csv"
    assert data["transactions_found"] == 3
    assert data["transactions_imported"] == 3
    assert data["duplicates_skipped"] == 0
    assert data["flagged"] == []
    assert data["import_log_id"]


def test_second_upload_reports_duplicates(client):
    _upload(client, "jan.csv", CSV_SAMPLE)
    data = _upload(client, "jan.csv", CSV_SAMPLE).json()

    assert data["transactions_imported"] == 0
    assert data["duplicates_skipped"] == 3


def test_unsupported_extension_is_problem_detail(client):
    response = _upload(client, "notes.txt", "hello", "text/plain")

    assert response.status_code == 422
    body = response.json()
    assert body["title"] == "Unprocessable Entity"
    assert "Supported formats" in body["detail"]
    assert body["instance"] == "/api/v1/imports/upload"


def test_empty_csv_rejected(client):
    response = _upload(client, "jan.csv", "")
    assert response.status_code == 422
    assert response.json()["detail"] == "file is empty"


def test_no_transactions_rejected(client):
    response = _upload(client, "jan.csv", "just,some,words\nand,more,words\n")
    assert response.status_code == 422
    assert response.json()["detail"] == "no transactions found in file"


def test_oversized_upload_rejected(client, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 16)
    response = _upload(client, "jan.csv", CSV_SAMPLE)
    assert response.status_code == 413
    assert response.json()["title"] == "Payload Too Large"


def test_pdf_extraction_failure_maps_to_502(client, monkeypatch):
    monkeypatch.setattr(
        "packages.statement_import.pdf_parser.extract_text_from_pdf",
        lambda data: "01/15 NETFLIX 22.99",
    )
    monkeypatch.setattr(service, "build_extractor", lambda: FailingExtractor())

    response = _upload(client, "jan.pdf", b"%PDF-1.4", "application/pdf")

    assert response.status_code == 502
    assert response.json()["detail"] == "AI response did not contain valid JSON"


def test_resolve_keeps_flagged_transaction(client, store):
    _upload(client, "dec.csv", "Date,Description,Amount\n2024-01-15,NETFLIX.COM,-22.49\n")
    upload = _upload(client, "jan.csv", CSV_SAMPLE).json()
    assert upload["duplicates_flagged"] == 1
    flagged = upload["flagged"][0]
    assert flagged["matched_existing"]["amount"] == 22.49

    response = client.post(
        "/api/v1/imports/resolve",
        json={
            "import_log_id": upload["import_log_id"],
            "decisions": [{"transaction": flagged["transaction"], "action": "keep"}],
        },
    )

    assert response.status_code == 200
    assert response.json() == {"resolved": 1, "kept": 1, "skipped": 0}
    assert len(store.list_existing()) == 4


def test_resolve_unknown_import_is_404(client):
    response = client.post(
        "/api/v1/imports/resolve",
        json={
            "import_log_id": "does-not-exist",
            "decisions": [
                {
                    "transaction": {
                        "date": "2024-01-15",
                        "description": "X",
                        "amount": 1.0,
                        "type": "debit",
                    },
                    "action": "skip",
                }
            ],
        },
    )
    assert response.status_code == 404


def test_resolve_requires_decisions(client):
    _upload(client, "jan.csv", CSV_SAMPLE)
    log_id = client.get("/api/v1/imports/history").json()["imports"][0]["id"]

    response = client.post(
        "/api/v1/imports/resolve", json={"import_log_id": log_id, "decisions": []}
    )
    assert response.status_code == 422


def test_history_lists_newest_first(client):
    _upload(client, "first.csv", CSV_SAMPLE)
    _upload(client, "second.csv", CSV_SAMPLE)

    data = client.get("/api/v1/imports/history").json()

    assert data["count"] == 2
    assert [entry["file_name"] for entry in data["imports"]] == ["second.csv", "first.csv"]
