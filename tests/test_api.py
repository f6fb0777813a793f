"""Tests for the FastAPI endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from flow_deployer.deployer import DeployResult, FlowDeployer
from flow_deployer.errors import (
    AgentNotLinked,
    FlowNotFound,
    PersistenceConflict,
    RemotePushFailed,
)
from flow_deployer.server import app
from flow_deployer.services.flow_store import InMemoryFlowStore

HEADERS = {"X-Client-ID": "c1"}

NODES = [
    {"id": "n1", "type": "message", "data": {"text": "Hi there"}},
    {"id": "n2", "type": "check_availability", "data": {"provider": "calendly"}},
    {"id": "n3", "type": "webhook", "data": {"webhookUrl": "https://hooks.example.com/a"}},
]


@pytest.fixture
def store():
    """Attach a fresh store to app state (mirrors the lifespan)."""
    store = InMemoryFlowStore()
    app.state.store = store
    yield store
    app.state.store = None


@pytest.fixture
def deployer(store, retell_client):
    deployer = FlowDeployer(store, retell_client)
    app.state.deployer = deployer
    yield deployer
    app.state.deployer = None


@pytest.fixture
def mock_deployer(store):
    deployer = MagicMock(spec=FlowDeployer)
    app.state.deployer = deployer
    yield deployer
    app.state.deployer = None


@pytest.fixture
def client(store):
    return TestClient(app)


def _create(client, **overrides) -> dict:
    body = {"name": "Intake", "agent_id": "agent_1", "nodes": NODES, **overrides}
    response = client.post("/api/conversation-flows", json=body, headers=HEADERS)
    assert response.status_code == 201
    return response.json()


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "flow-deployer"


class TestRootEndpoint:
    def test_root_returns_service_info(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "Flow Deployer"
        assert "docs" in data


class TestFlowCrud:
    def test_create_returns_inactive_version_one(self, client):
        data = _create(client)
        assert data["version"] == 1
        assert data["is_active"] is False
        assert data["client_id"] == "c1"
        assert data["nodes"][2]["data"]["webhookUrl"] == "https://hooks.example.com/a"

    def test_missing_client_scope_is_rejected(self, client):
        response = client.get("/api/conversation-flows")
        assert response.status_code == 401

    def test_list_is_scoped_to_client(self, client):
        _create(client)
        assert len(client.get("/api/conversation-flows", headers=HEADERS).json()) == 1
        other = client.get("/api/conversation-flows", headers={"X-Client-ID": "c2"})
        assert other.json() == []

    def test_get_other_clients_flow_is_404(self, client):
        flow = _create(client)
        response = client.get(
            f"/api/conversation-flows/{flow['id']}", headers={"X-Client-ID": "c2"},
        )
        assert response.status_code == 404

    def test_duplicate_node_ids_are_rejected(self, client):
        nodes = [{"id": "a", "type": "end"}, {"id": "a", "type": "end"}]
        response = client.post(
            "/api/conversation-flows", json={"name": "x", "nodes": nodes}, headers=HEADERS,
        )
        assert response.status_code == 422

    def test_unknown_node_type_is_rejected(self, client):
        response = client.post(
            "/api/conversation-flows",
            json={"name": "x", "nodes": [{"id": "a", "type": "teleport"}]},
            headers=HEADERS,
        )
        assert response.status_code == 422

    def test_blank_name_is_rejected(self, client):
        response = client.post(
            "/api/conversation-flows", json={"name": "   "}, headers=HEADERS,
        )
        assert response.status_code == 422

    def test_update_ignores_version_and_active(self, client):
        flow = _create(client)
        response = client.patch(
            f"/api/conversation-flows/{flow['id']}",
            json={"name": "Renamed", "version": 7, "is_active": True},
            headers=HEADERS,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Renamed"
        assert data["version"] == 1
        assert data["is_active"] is False
        assert len(data["nodes"]) == 3

    @pytest.mark.parametrize("field", ["name", "nodes", "edges"])
    def test_update_rejects_null(self, client, field):
        flow = _create(client)
        url = f"/api/conversation-flows/{flow['id']}"

        response = client.patch(url, json={field: None}, headers=HEADERS)

        assert response.status_code == 422
        stored = client.get(url, headers=HEADERS).json()
        assert stored["name"] == "Intake"
        assert len(stored["nodes"]) == 3

    def test_update_null_agent_id_unlinks(self, client):
        flow = _create(client)
        response = client.patch(
            f"/api/conversation-flows/{flow['id']}",
            json={"agent_id": None},
            headers=HEADERS,
        )
        assert response.status_code == 200
        assert response.json()["agent_id"] is None

    def test_delete(self, client):
        flow = _create(client)
        url = f"/api/conversation-flows/{flow['id']}"
        assert client.delete(url, headers=HEADERS).json() == {"success": True}
        assert client.get(url, headers=HEADERS).status_code == 404


class TestPreviewEndpoint:
    def test_preview_compiles_without_deploying(self, client, deployer, retell_client):
        flow = _create(client)
        response = client.post(
            f"/api/conversation-flows/{flow['id']}/preview", headers=HEADERS,
        )
        assert response.status_code == 200
        data = response.json()
        assert "check_calendly_availability" in data["prompt_preview"]
        assert data["tools"] == [
            "check_calendly_availability",
            "book_calendly_appointment",
            "flow_webhook_1",
        ]
        assert data["required_providers"] == ["calendly"]
        retell_client.update_llm.assert_not_called()


class TestDeployEndpoint:
    def test_deploy_success(self, client, deployer, retell_client):
        flow = _create(client)

        response = client.post(f"/api/conversation-flows/{flow['id']}/deploy", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["version"] == 2
        assert data["tools_registered"][-1] == "flow_webhook_1"
        assert data["prompt_preview"].startswith("You are a professional AI voice assistant")
        stored = client.get(f"/api/conversation-flows/{flow['id']}", headers=HEADERS).json()
        assert stored["version"] == 2
        assert stored["is_active"] is True

    def test_unlinked_flow_is_400(self, client, deployer, retell_client):
        flow = _create(client, agent_id=None)
        response = client.post(f"/api/conversation-flows/{flow['id']}/deploy", headers=HEADERS)
        assert response.status_code == 400
        assert response.json()["detail"] == "Flow must be linked to an agent"
        retell_client.get_agent.assert_not_called()

    @pytest.mark.parametrize(
        ("error", "status", "detail"),
        [
            (FlowNotFound("f1"), 404, "Flow not found"),
            (AgentNotLinked("f1"), 400, "Flow must be linked to an agent"),
            (PersistenceConflict("f1", 1, 2), 409, None),
            (RemotePushFailed("Retell said no: secret", status_code=500), 502, "Failed to deploy flow"),
            (RuntimeError("kaboom"), 500, "An unexpected error occurred"),
        ],
    )
    def test_error_mapping(self, client, mock_deployer, error, status, detail):
        mock_deployer.deploy.side_effect = error

        response = client.post("/api/conversation-flows/f1/deploy", headers=HEADERS)

        assert response.status_code == status
        if detail is not None:
            assert response.json()["detail"] == detail
        assert "secret" not in response.text
        assert "kaboom" not in response.text

    def test_deploy_receives_client_context(self, client, mock_deployer):
        mock_deployer.deploy.return_value = DeployResult("script", [], 3)

        client.post("/api/conversation-flows/f1/deploy", headers=HEADERS)

        flow_id, context, cancel_event = mock_deployer.deploy.call_args[0]
        assert flow_id == "f1"
        assert context.client_id == "c1"
        assert not cancel_event.is_set()

    def test_response_includes_request_id_header(self, client, mock_deployer):
        mock_deployer.deploy.return_value = DeployResult("script", [], 2)
        response = client.post("/api/conversation-flows/f1/deploy", headers=HEADERS)
        assert "X-Request-ID" in response.headers

    def test_client_supplied_request_id_is_echoed(self, client, mock_deployer):
        mock_deployer.deploy.return_value = DeployResult("script", [], 2)
        response = client.post(
            "/api/conversation-flows/f1/deploy",
            headers={**HEADERS, "X-Request-ID": "my-trace-id-123"},
        )
        assert response.headers["X-Request-ID"] == "my-trace-id-123"


class TestProviderToolEndpoints:
    def test_register(self, client, mock_deployer):
        mock_deployer.register_provider_tools.return_value = ["lookup_caller"]

        response = client.post("/api/agents/agent_1/tools/hubspot", headers=HEADERS)

        assert response.status_code == 200
        assert response.json() == {"provider": "hubspot", "tools": ["lookup_caller"]}
        agent_id, provider, context = mock_deployer.register_provider_tools.call_args[0]
        assert (agent_id, provider.value, context.client_id) == ("agent_1", "hubspot", "c1")

    def test_unknown_provider_is_422(self, client, mock_deployer):
        response = client.post("/api/agents/agent_1/tools/salesforce", headers=HEADERS)
        assert response.status_code == 422

    def test_unregister_push_failure_is_502(self, client, mock_deployer):
        mock_deployer.unregister_provider_tools.side_effect = RemotePushFailed("nope", 500)
        response = client.delete("/api/agents/agent_1/tools/google", headers=HEADERS)
        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to update agent tools"


class TestDeployerNotReady:
    def test_returns_503_when_deployer_not_initialised(self):
        """If the deployer hasn't been set via lifespan, return 503."""
        with TestClient(app) as tc:
            app.state.deployer = None
            response = tc.post("/api/conversation-flows/f1/deploy", headers=HEADERS)
            assert response.status_code == 503
            assert "starting up" in response.json()["detail"].lower()
