"""
Tests for the HTTP surface with the indexing runtime replaced by fakes.
"""

import json
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from server.api_server import app
from shared.clients.rag.models.VectorRecord import VectorRecord
from services.indexing.VectorStoreGateway import VectorStoreGateway
from services.triggers.InitialIndexingService import InitialIndexingService
from services.triggers.WebhookIndexingService import WebhookIndexingService
from tests.fakes import FakeRAGClient, FakeSourceClient, RecordingDispatcher

API_KEY = "test-key"


@pytest.fixture
def api(helper_config, monkeypatch):
    """TestClient without lifespan; app.state is wired with fakes."""
    monkeypatch.setenv("APP_API_KEY", API_KEY)
    rag_client = FakeRAGClient()
    dispatcher = RecordingDispatcher()
    source_client = FakeSourceClient(teams={"ws-1": [7]})
    gateway = VectorStoreGateway(helper_config, rag_client, AsyncMock())

    app.state.helper_config = helper_config
    app.state.gateway = gateway
    app.state.dispatcher = dispatcher
    app.state.webhook_service = WebhookIndexingService(helper_config, dispatcher, gateway, source_client)
    app.state.initial_service = InitialIndexingService(helper_config, dispatcher, source_client)
    return TestClient(app), dispatcher, rag_client


class TestWebhookRoutes:
    def test_notion_webhook_should_answer_verification_with_challenge(self, api) -> None:
        client, _, _ = api

        response = client.post("/webhook/notion", content=json.dumps({"verification_token": "tok"}))

        assert response.status_code == 200
        assert response.json() == {"status": "verification", "challenge": "tok"}

    def test_notion_webhook_should_accept_malformed_body(self, api) -> None:
        client, dispatcher, _ = api

        response = client.post("/webhook/notion", content=b"not json")

        assert response.status_code == 200
        assert response.json()["status"] == "accepted"
        assert dispatcher.submitted == []

    def test_notion_webhook_should_schedule_page_events(self, api) -> None:
        client, dispatcher, _ = api
        body = {"type": "page.created", "workspace_id": "ws-1", "entity": {"id": "p1", "type": "page"}}

        response = client.post("/webhook/notion", json=body)

        assert response.json() == {"status": "accepted", "challenge": None}
        assert len(dispatcher.submitted) == 1

    def test_connected_webhook_should_require_api_key(self, api) -> None:
        client, dispatcher, _ = api

        response = client.post("/webhook/connected", json={"team_id": 7}, headers={"X-Api-Key": "wrong"})

        assert response.status_code == 401
        assert dispatcher.submitted == []

    def test_connected_webhook_should_schedule_bulk_load(self, api) -> None:
        client, dispatcher, _ = api

        response = client.post("/webhook/connected", json={"team_id": 7}, headers={"X-Api-Key": API_KEY})

        assert response.json() == {"status": "accepted", "team_id": 7}
        label, _, args = dispatcher.submitted[0]
        assert args == (7,)
        assert "teamId=7" in label


class TestQueryRoute:
    def test_query_should_return_matches(self, api) -> None:
        # Arrange
        client, _, rag_client = api
        rag_client.records["abc-0"] = VectorRecord(id="abc-0", text="launch plan", metadata={"teamId": 7})
        rag_client.records["abc-1"] = VectorRecord(id="abc-1", text="launch plan", metadata={"teamId": 8})

        # Act
        response = client.post(
            "/query", json={"query": "launch", "team_id": 7, "top_k": 2}, headers={"X-Api-Key": API_KEY}
        )

        # Assert
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["results"][0]["id"] == "abc-0"
        assert rag_client.search_calls == [("launch", 2, "teamId == 7")]

    def test_query_should_reject_missing_api_key(self, api) -> None:
        client, _, _ = api

        assert client.post("/query", json={"query": "x"}).status_code == 422


def test_health_should_report_ok(api) -> None:
    client, _, _ = api

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
