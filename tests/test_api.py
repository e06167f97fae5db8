# =============================================================================
# API Tests: FastAPI Routes
# =============================================================================
#
# The app is built without entering its lifespan (no real LLM client).
# `get_orchestrator` is overridden with an Orchestrator wired to the
# scripted LLM and in-memory stores from conftest.py.
# =============================================================================

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from command_center.api.deps import get_orchestrator
from command_center.main import create_app


@pytest.fixture
def client(orchestrator, settings):
    app = create_app(settings)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    # No context manager: the lifespan (and its real provider) never runs
    return TestClient(app)


# ---------------------------------------------------------------------------
# Test: Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self, client, settings):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["version"] == settings.app_version


# ---------------------------------------------------------------------------
# Test: Orchestrator Routes
# ---------------------------------------------------------------------------


class TestOrchestratorRoutes:
    def test_chat_single_agent(self, client):
        response = client.post("/orchestrator/chat", json={
            "message": "How do I set up a Zapier webhook for my GHL pipeline?",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["response"]["type"] == "single-agent"
        assert body["response"]["agent"]["id"] == "highlevel-specialist"
        assert body["agentsUsed"] == ["highlevel-specialist"]
        assert body["conversationId"]

    def test_chat_multi_agent(self, client):
        response = client.post("/orchestrator/chat", json={
            "message": "What's the RSI and MACD for BTC, and how's my "
                       "marketing campaign doing?",
        })

        body = response.json()
        assert body["response"]["type"] == "multi-agent"
        assert len(body["response"]["agentResponses"]) == 2
        assert body["response"]["agentResponses"][0]["agentId"] == "hybrid-grid"

    def test_chat_continues_conversation(self, client):
        first = client.post("/orchestrator/chat", json={"message": "hello"}).json()
        second = client.post("/orchestrator/chat", json={
            "message": "hello again",
            "conversationId": first["conversationId"],
        }).json()
        assert second["conversationId"] == first["conversationId"]

    def test_empty_message_rejected(self, client):
        response = client.post("/orchestrator/chat", json={"message": "   "})
        assert response.status_code == 422

    def test_missing_message_rejected(self, client):
        assert client.post("/orchestrator/chat", json={}).status_code == 422

    def test_route_preview(self, client):
        response = client.post("/orchestrator/route", json={"message": "hello"})

        assert response.status_code == 200
        routing = response.json()["routing"]
        assert routing["primaryAgent"] is None
        assert routing["isMultiAgent"] is False


# ---------------------------------------------------------------------------
# Test: Agent Routes
# ---------------------------------------------------------------------------


class TestAgentRoutes:
    def test_list_agents(self, client):
        ids = [a["id"] for a in client.get("/agents").json()]
        assert "dev-ops" in ids
        assert "orchestrator" not in ids

    def test_get_agent(self, client):
        body = client.get("/agents/legal-contracts").json()
        assert body["name"] == "Contract Navigator"

    def test_get_unknown_agent(self, client):
        assert client.get("/agents/astrologer").status_code == 404

    def test_direct_chat(self, client):
        response = client.post("/agents/dev-ops/chat", json={"message": "hi"})

        assert response.status_code == 200
        body = response.json()
        assert body["agent"] == {"id": "dev-ops", "name": "DevOps Engineer"}
        assert body["content"] == "Answer from dev-ops"

    def test_direct_chat_unknown_agent(self, client):
        response = client.post("/agents/astrologer/chat", json={"message": "hi"})
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Test: Knowledge Routes
# ---------------------------------------------------------------------------


class TestKnowledgeRoutes:
    def test_add_text_then_search(self, client):
        created = client.post("/agents/dev-ops/knowledge/text", json={
            "title": "Deploy runbook",
            "content": "Use blue/green deploys on AWS",
            "sourceUrl": "https://wiki.example.com/deploy",
        })
        assert created.status_code == 201
        entry = created.json()
        assert entry["id"]
        assert entry["sourceUrl"] == "https://wiki.example.com/deploy"

        found = client.post("/agents/dev-ops/knowledge/search", json={
            "query": "aws deploy",
        })
        assert found.status_code == 200
        assert [r["id"] for r in found.json()["results"]] == [entry["id"]]

    def test_search_scoped_to_agent(self, client):
        client.post("/agents/dev-ops/knowledge/text", json={
            "title": "Deploy runbook", "content": "blue/green",
        })
        found = client.post("/agents/legal-contracts/knowledge/search", json={
            "query": "deploy",
        })
        assert found.json()["results"] == []

    def test_added_knowledge_grounds_direct_chat(self, client, llm):
        client.post("/agents/dev-ops/knowledge/text", json={
            "title": "Deploy runbook", "content": "Use blue/green deploys",
        })
        body = client.post("/agents/dev-ops/chat", json={
            "message": "What is our deploy process?",
        }).json()

        assert body["knowledgeUsed"] == 1
        assert "Use blue/green deploys" in llm.calls_of("agent")[-1]["system"]

    def test_missing_content_rejected(self, client):
        response = client.post("/agents/dev-ops/knowledge/text", json={
            "title": "Deploy runbook",
        })
        assert response.status_code == 400

    def test_missing_title_rejected(self, client):
        response = client.post("/agents/dev-ops/knowledge/text", json={
            "content": "Use blue/green deploys",
        })
        assert response.status_code == 400

    def test_missing_query_rejected(self, client):
        response = client.post("/agents/dev-ops/knowledge/search", json={})
        assert response.status_code == 400

    def test_unknown_agent(self, client):
        response = client.post("/agents/astrologer/knowledge/text", json={
            "title": "Stars", "content": "Mercury is in retrograde",
        })
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# Test: Conversation Routes
# ---------------------------------------------------------------------------


class TestConversationRoutes:
    def test_create_list_and_get(self, client):
        created = client.post("/agent-conversations", json={
            "userId": "alice", "title": "Planning",
        })
        assert created.status_code == 201
        conversation_id = created.json()["conversationId"]

        client.post("/orchestrator/chat", json={
            "message": "hello", "conversationId": conversation_id,
        })

        listed = client.get("/agent-conversations", params={"userId": "alice"})
        assert [c["id"] for c in listed.json()] == [conversation_id]

        detail = client.get(f"/agent-conversations/{conversation_id}").json()
        assert detail["title"] == "Planning"
        assert [m["role"] for m in detail["messages"]] == ["user", "agent"]

    def test_unknown_conversation(self, client):
        assert client.get("/agent-conversations/nope").status_code == 404


# ---------------------------------------------------------------------------
# Test: Unconfigured Orchestrator
# ---------------------------------------------------------------------------


class TestUnconfigured:
    def test_service_unavailable_without_orchestrator(self, settings):
        app = create_app(settings)
        app.state.orchestrator = None
        client = TestClient(app)
        response = client.post("/orchestrator/chat", json={"message": "hello"})
        assert response.status_code == 503
