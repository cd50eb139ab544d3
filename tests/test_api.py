"""Tests for the HTTP surface: /webhook, /process, /crawl and /health."""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from opennews.crawler.models import RunReport
from opennews.monitoring.api_server import app, set_dependencies
from opennews.utils.config import reset_settings


class FakeEngine:
    def __init__(self):
        self.payloads = []
        self.runs = 0

    async def ingest_push_payload(self, payload):
        self.payloads.append(payload)
        return True

    async def run(self):
        self.runs += 1
        return RunReport(started_at=datetime.now(timezone.utc))


class FakeBackfill:
    def __init__(self):
        self.calls = 0

    async def run(self):
        self.calls += 1
        return {"selected": 0, "updated": 0, "failed": 0}


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    monkeypatch.delenv("WEBHOOK_SECRET", raising=False)
    monkeypatch.delenv("API_SECRET_KEY", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def backfill():
    return FakeBackfill()


@pytest.fixture
def client(engine, backfill):
    set_dependencies(crawl_engine=engine, tag_backfill=backfill)
    yield TestClient(app)
    set_dependencies()


class TestWebhook:
    def test_accepts_object_and_ingests_in_background(self, client, engine):
        resp = client.post("/webhook", json={"text": "BTC ETF approved", "channel": "c"})
        assert resp.status_code == 202
        assert resp.json() == {"status": "received", "message": "Message queued for processing."}
        assert engine.payloads == [{"text": "BTC ETF approved", "channel": "c"}]

    def test_malformed_json(self, client, engine):
        resp = client.post(
            "/webhook", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 400
        assert resp.json() == {"status": "error", "message": "Invalid JSON body."}
        assert engine.payloads == []

    def test_array_body_rejected(self, client, engine):
        resp = client.post("/webhook", json=[{"text": "a"}])
        assert resp.status_code == 400
        assert resp.json()["status"] == "error"
        assert engine.payloads == []

    def test_secret_required_when_configured(self, client, engine, monkeypatch):
        monkeypatch.setenv("WEBHOOK_SECRET", "s3cret")
        reset_settings()

        denied = client.post("/webhook", json={"text": "x"})
        allowed = client.post("/webhook", json={"text": "x"}, headers={"X-Webhook-Secret": "s3cret"})

        assert denied.status_code == 401
        assert allowed.status_code == 202
        assert len(engine.payloads) == 1

    def test_engine_not_wired(self):
        set_dependencies()
        resp = TestClient(app).post("/webhook", json={"text": "x"})
        assert resp.status_code == 503


class TestProcess:
    def test_starts_backfill(self, client, backfill):
        resp = client.post("/process")
        assert resp.status_code == 200
        assert resp.json() == {"status": "started", "message": "Article processing started"}
        assert backfill.calls == 1

    def test_bearer_token_enforced(self, client, backfill, monkeypatch):
        monkeypatch.setenv("API_SECRET_KEY", "op-key")
        reset_settings()

        denied = client.post("/process", headers={"Authorization": "Bearer wrong"})
        allowed = client.post("/process", headers={"Authorization": "Bearer op-key"})

        assert denied.status_code == 401
        assert allowed.status_code == 200
        assert backfill.calls == 1

    def test_crawl_trigger(self, client, engine):
        resp = client.post("/crawl")
        assert resp.status_code == 200
        assert resp.json()["status"] == "started"
        assert engine.runs == 1


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
