"""Tests for the in-memory flow store."""

from __future__ import annotations

import pytest

from flow_deployer.errors import PersistenceConflict
from flow_deployer.models import parse_nodes
from flow_deployer.services.flow_store import InMemoryFlowStore


@pytest.fixture
def store():
    return InMemoryFlowStore()


class TestCrud:
    def test_create_and_get(self, store):
        flow = store.create_flow("c1", "Intake", agent_id="agent_1")
        fetched = store.get_flow(flow.id, "c1")
        assert fetched is not None
        assert fetched.name == "Intake"
        assert fetched.agent_id == "agent_1"
        assert fetched.version == 1
        assert fetched.is_active is False

    def test_other_clients_cannot_see_flow(self, store):
        flow = store.create_flow("c1", "Intake")
        assert store.get_flow(flow.id, "c2") is None
        assert store.update_flow(flow.id, "c2", {"name": "x"}) is None
        assert store.delete_flow(flow.id, "c2") is False

    def test_list_is_scoped_and_newest_first(self, store):
        first = store.create_flow("c1", "First")
        second = store.create_flow("c1", "Second")
        store.create_flow("c2", "Other")
        assert [f.id for f in store.list_flows("c1")] == [second.id, first.id]

    def test_update_changes_only_editable_fields(self, store):
        flow = store.create_flow("c1", "Intake")
        nodes = parse_nodes([{"id": "a", "type": "message", "data": {"text": "Hi"}}])

        updated = store.update_flow(
            flow.id,
            "c1",
            {"name": "Renamed", "nodes": nodes, "version": 99, "is_active": True, "client_id": "c2"},
        )

        assert updated.name == "Renamed"
        assert updated.nodes[0].data.text == "Hi"
        assert updated.version == 1
        assert updated.is_active is False
        assert updated.client_id == "c1"

    def test_returned_flows_are_copies(self, store):
        flow = store.create_flow("c1", "Intake")
        flow.name = "mutated"
        assert store.get_flow(flow.id, "c1").name == "Intake"

    def test_delete(self, store):
        flow = store.create_flow("c1", "Intake")
        assert store.delete_flow(flow.id, "c1") is True
        assert store.get_flow(flow.id, "c1") is None


class TestCommitDeploy:
    def test_bumps_version_and_activates(self, store):
        flow = store.create_flow("c1", "Intake")
        committed = store.commit_deploy(flow.id, "c1", expected_version=1)
        assert committed.version == 2
        assert committed.is_active is True
        assert store.get_flow(flow.id, "c1").version == 2

    def test_stale_version_conflicts(self, store):
        flow = store.create_flow("c1", "Intake")
        store.commit_deploy(flow.id, "c1", expected_version=1)

        with pytest.raises(PersistenceConflict) as exc_info:
            store.commit_deploy(flow.id, "c1", expected_version=1)

        assert exc_info.value.actual_version == 2
        assert store.get_flow(flow.id, "c1").version == 2

    def test_deleted_flow_conflicts(self, store):
        flow = store.create_flow("c1", "Intake")
        store.delete_flow(flow.id, "c1")
        with pytest.raises(PersistenceConflict):
            store.commit_deploy(flow.id, "c1", expected_version=1)
