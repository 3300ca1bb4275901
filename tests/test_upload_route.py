import pytest
from fastapi.testclient import TestClient

from main import get_app
from pdf.errors import ExternalCallError
from pdf.pdf_pipeline.orchestrator import StatementPipeline
from settings.rate_limit import InMemoryRateLimitStore


def expenses_responder(text, chunk_index):
    return [{"amount": "4.50", "occurred_on": "2024-04-16", "merchant": "Coffee Shop", "line_index": 4}]


@pytest.fixture
def make_client(make_settings, fake_extraction_client):
    def _make(client=None, **overrides):
        settings = make_settings(**overrides)
        extraction = client or fake_extraction_client(expenses_responder)
        app = get_app(
            settings=settings,
            pipeline=StatementPipeline(settings, extraction_client=extraction),
            rate_limit_store=InMemoryRateLimitStore(),
        )
        return TestClient(app), extraction

    return _make


def upload(client, pdf_bytes, **kwargs):
    return client.post("/statements/parse", files={"file": ("statement.pdf", pdf_bytes, "application/pdf")}, **kwargs)


def test_health(make_client):
    client, _ = make_client()
    assert client.get("/health").json() == {"status": "ok"}


def test_parse_pdf(make_client, statement_pdf):
    client, extraction = make_client()
    resp = upload(client, statement_pdf)
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["expenses"][0]["amount"] == 4.5
    assert body["expenses"][0]["merchant"] == "Coffee Shop"
    assert body["usage"]["mode"] == "single"
    assert body["usage"]["redaction_skipped"] is False
    assert len(extraction.calls) == 1


def test_parse_text_field(make_client):
    client, extraction = make_client()
    resp = client.post("/statements/parse", data={"text": "2024-04-16 Coffee Shop 4.50"})
    assert resp.status_code == 200
    assert extraction.calls[0][1] == "1. 2024-04-16 Coffee Shop 4.50"


def test_preview_query(make_client, statement_pdf):
    client, extraction = make_client()
    resp = upload(client, statement_pdf, params={"preview": "true"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["expenses"] == []
    assert len(body["usage"]["prompt_hash"]) == 12
    assert extraction.calls == []


def test_redact_words_form_field(make_client, statement_pdf):
    client, extraction = make_client()
    upload(client, statement_pdf, data={"redact_words": "Coffee, Grocery"})
    sent = extraction.calls[0][1]
    assert "Coffee" not in sent and "Grocery" not in sent


def test_password_header(make_client, statement_pdf, pdf_encryptor):
    client, _ = make_client()
    locked = pdf_encryptor(statement_pdf, "secret")
    assert upload(client, locked).status_code == 400
    resp = upload(client, locked, headers={"X-PDF-Password": "secret"})
    assert resp.status_code == 200


def test_missing_input(make_client):
    client, _ = make_client()
    resp = client.post("/statements/parse")
    assert resp.status_code == 400
    assert resp.json()["success"] is False


@pytest.mark.parametrize(
    "overrides,payload,status",
    [
        ({"MAX_UPLOAD_MB": 1}, b"%PDF" + b"0" * (1024 * 1024), 413),
        ({}, b"garbage, not a pdf", 400),
        ({"AI_DISABLE_EXTERNAL": True}, None, 503),
    ],
)
def test_error_mapping(make_client, statement_pdf, overrides, payload, status):
    client, _ = make_client(**overrides)
    resp = upload(client, payload if payload is not None else statement_pdf)
    assert resp.status_code == status
    body = resp.json()
    assert body["success"] is False
    assert body["error"]


def test_external_failure_is_bad_gateway(make_client, statement_pdf, fake_extraction_client):
    client, _ = make_client(client=fake_extraction_client(error=ExternalCallError("upstream down", status_code=500)))
    resp = upload(client, statement_pdf)
    assert resp.status_code == 502
    assert resp.json() == {"success": False, "error": "upstream down"}


def test_rate_limit(make_client, statement_pdf):
    client, _ = make_client(RATE_LIMIT_MAX_REQUESTS=1, RATE_LIMIT_WINDOW_SECONDS=60)
    headers = {"X-User-ID": "u-1"}
    assert upload(client, statement_pdf, headers=headers).status_code == 200
    resp = upload(client, statement_pdf, headers=headers)
    assert resp.status_code == 429
    assert resp.headers["Retry-After"] == "60"
    assert resp.json()["success"] is False
    # a different caller is unaffected
    assert upload(client, statement_pdf, headers={"X-User-ID": "u-2"}).status_code == 200
