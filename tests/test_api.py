"""API integration tests.

Tests exercise the route handlers with minimal FastAPI test apps, an
in-memory conversation store, and no database or external services.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from relayflow.api.routes import conversations, executions, health

PHONE = "+5511987654321"

NODES = [
    {"id": "t1", "type": "trigger", "label": "Start", "config": {"triggerType": "Manual"}},
    {"id": "ask", "type": "action", "label": "Ask", "config": {"actionType": "Ask Question", "variableKey": "name"}},
    {"id": "reply", "type": "action", "label": "Reply", "config": {"actionType": "Send Message", "message": "Hi {{var.name}}"}},
]
EDGES = [{"source": "t1", "target": "ask"}, {"source": "ask", "target": "reply"}]


# ── Helpers ───────────────────────────────────────────────────────────────────

def make_test_app(routers, state_attrs=None, prefix="/v1"):
    """Create minimal test app with the given routers and app.state attributes."""
    app = FastAPI()
    for router in routers:
        app.include_router(router, prefix=prefix)

    if state_attrs:
        for key, value in state_attrs.items():
            setattr(app.state, key, value)
    return app


@pytest.fixture
def client(registry, store, policy_provider):
    app = make_test_app(
        [executions.router, conversations.router],
        {"store": store, "registry": registry, "policy_provider": policy_provider, "callbacks": []},
    )
    return TestClient(app)


def _pause(client, execution_id="exec-1"):
    resp = client.post("/v1/executions", json={
        "nodes": NODES,
        "edges": EDGES,
        "triggerInput": {"from": PHONE},
        "workflowId": "wf-1",
        "executionId": execution_id,
    })
    assert resp.status_code == 200
    return resp.json()


# ── Executions ────────────────────────────────────────────────────────────────

class TestExecutions:

    def test_execute_simple_workflow(self, client, recorder):
        resp = client.post("/v1/executions", json={
            "nodes": [NODES[0], {"id": "m", "type": "action", "config": {"actionType": "Send Message"}}],
            "edges": [{"source": "t1", "target": "m"}],
            "triggerInput": {"from": PHONE},
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["paused"] is False
        assert data["executionId"]
        assert data["workflowId"]
        assert data["results"]["m"] == {"success": True, "data": {"sent": True, "messageId": "m-1"}}
        assert data["outputs"]["t1"]["label"] == "Start"
        assert recorder.names() == ["Send Message"]

    def test_execute_pauses_on_question(self, client, store):
        data = _pause(client)
        assert data["paused"] is True
        assert data["resumeNodeId"] == "reply"
        assert data["conversationId"] in store.conversations
        assert "reply" not in data["results"]

    def test_invalid_graph_rejected(self, client, recorder):
        resp = client.post("/v1/executions", json={
            "nodes": NODES,
            "edges": EDGES + [{"source": "reply", "target": "ask"}],
        })
        assert resp.status_code == 422
        detail = resp.json()["detail"]
        assert any("Cycle" in v for v in detail["violations"])
        assert recorder.calls == []

    def test_unknown_action_rejected_before_run(self, client):
        resp = client.post("/v1/executions", json={
            "nodes": [NODES[0], {"id": "x", "type": "action", "config": {"actionType": "Frobnicate"}}],
            "edges": [{"source": "t1", "target": "x"}],
        })
        assert resp.status_code == 422

    def test_get_execution_record(self, client):
        _pause(client, execution_id="exec-42")
        resp = client.get("/v1/executions/exec-42")
        assert resp.status_code == 200
        record = resp.json()
        assert record["executionId"] == "exec-42"
        assert record["workflowId"] == "wf-1"
        assert record["status"] == "waiting"
        assert record["finishedAt"] is None
        assert record["output"]["resumeNodeId"] == "reply"

    def test_get_unknown_execution(self, client):
        assert client.get("/v1/executions/nope").status_code == 404


# ── Conversations ─────────────────────────────────────────────────────────────

class TestConversations:

    def test_reply_resumes_run(self, client, recorder):
        paused = _pause(client)
        resp = client.post(f"/v1/conversations/{paused['conversationId']}/reply", json={
            "answer": "Ana", "nodes": NODES, "edges": EDGES, "executionId": "exec-2",
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["executionId"] == "exec-2"
        assert list(data["results"]) == ["reply"]
        assert recorder.input_for("Send Message")["message"] == "Hi Ana"

        record = client.get("/v1/executions/exec-2").json()
        assert record["status"] == "success"

    def test_second_reply_conflicts(self, client):
        paused = _pause(client)
        url = f"/v1/conversations/{paused['conversationId']}/reply"
        body = {"answer": "Ana", "nodes": NODES, "edges": EDGES}
        assert client.post(url, json=body).status_code == 200
        assert client.post(url, json=body).status_code == 409

    def test_reply_to_unknown_conversation(self, client):
        resp = client.post("/v1/conversations/missing/reply", json={
            "answer": "x", "nodes": NODES, "edges": EDGES,
        })
        assert resp.status_code == 404

    def test_inbound_reply_matched_by_phone(self, client, recorder):
        _pause(client)
        resp = client.post("/v1/workflows/wf-1/replies", json={
            "phone": f"whatsapp:{PHONE}", "answer": "Bia", "nodes": NODES, "edges": EDGES,
        })
        assert resp.status_code == 200
        assert recorder.input_for("Send Message")["message"] == "Hi Bia"

    def test_inbound_reply_without_conversation(self, client):
        resp = client.post("/v1/workflows/wf-1/replies", json={
            "phone": PHONE, "answer": "Bia", "nodes": NODES, "edges": EDGES,
        })
        assert resp.status_code == 404


# ── Health ────────────────────────────────────────────────────────────────────

def test_health_with_injected_store(registry, store):
    app = make_test_app([health.router], {"store": store, "registry": registry}, prefix="")
    resp = TestClient(app).get("/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["services"] == {"api": True, "database": True, "registry": True}


def test_health_degraded_without_registry(store):
    app = make_test_app([health.router], {"store": store}, prefix="")
    data = TestClient(app).get("/health").json()
    assert data["status"] == "degraded"
    assert data["services"]["registry"] is False
