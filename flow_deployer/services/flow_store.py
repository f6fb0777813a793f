"""Persistence for conversation flows.

``FlowStore`` is the interface the API and the deploy pipeline depend on;
``InMemoryFlowStore`` is a thread-safe, process-local implementation used
by the server by default and by the tests.

Every lookup is scoped to a ``client_id``: a flow owned by another client
is indistinguishable from a missing one.
"""

from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

from flow_deployer.errors import PersistenceConflict
from flow_deployer.models import Flow

logger = logging.getLogger(__name__)

# Fields a caller may change by editing.  version / is_active are owned by
# commit_deploy.
EDITABLE_FIELDS = frozenset({"name", "agent_id", "nodes", "edges"})


class FlowStore(ABC):
    """Interface that all flow store backends must implement."""

    @abstractmethod
    def list_flows(self, client_id: str) -> list[Flow]:
        """Return the client's flows, newest first."""

    @abstractmethod
    def get_flow(self, flow_id: str, client_id: str) -> Flow | None:
        ...

    @abstractmethod
    def create_flow(
        self,
        client_id: str,
        name: str,
        *,
        agent_id: str | None = None,
        nodes: list[Any] | None = None,
        edges: list[dict[str, Any]] | None = None,
    ) -> Flow:
        ...

    @abstractmethod
    def update_flow(self, flow_id: str, client_id: str, changes: dict[str, Any]) -> Flow | None:
        """Apply *changes* (restricted to ``EDITABLE_FIELDS``).  ``None`` if not found."""

    @abstractmethod
    def delete_flow(self, flow_id: str, client_id: str) -> bool:
        ...

    @abstractmethod
    def commit_deploy(self, flow_id: str, client_id: str, expected_version: int) -> Flow:
        """Mark the flow active and bump its version by one.

        Raises ``PersistenceConflict`` unless the stored version still equals
        *expected_version*.
        """


class InMemoryFlowStore(FlowStore):
    """Dict-backed store.  All data is lost on process restart."""

    def __init__(self) -> None:
        self._flows: dict[str, Flow] = {}
        self._lock = threading.Lock()

    def _owned(self, flow_id: str, client_id: str) -> Flow | None:
        flow = self._flows.get(flow_id)
        if flow is None or flow.client_id != client_id:
            return None
        return flow

    def list_flows(self, client_id: str) -> list[Flow]:
        with self._lock:
            flows = [f for f in self._flows.values() if f.client_id == client_id]
        # newest insert first on timestamp ties
        flows.reverse()
        flows.sort(key=lambda f: f.created_at, reverse=True)
        return [f.model_copy(deep=True) for f in flows]

    def get_flow(self, flow_id: str, client_id: str) -> Flow | None:
        with self._lock:
            flow = self._owned(flow_id, client_id)
            return flow.model_copy(deep=True) if flow else None

    def create_flow(
        self,
        client_id: str,
        name: str,
        *,
        agent_id: str | None = None,
        nodes: list[Any] | None = None,
        edges: list[dict[str, Any]] | None = None,
    ) -> Flow:
        flow = Flow(
            id=str(uuid.uuid4()),
            client_id=client_id,
            agent_id=agent_id,
            name=name,
            nodes=nodes or [],
            edges=edges or [],
        )
        with self._lock:
            self._flows[flow.id] = flow
        logger.info("Created flow %s for client %s", flow.id, client_id)
        return flow.model_copy(deep=True)

    def update_flow(self, flow_id: str, client_id: str, changes: dict[str, Any]) -> Flow | None:
        safe = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS}
        with self._lock:
            flow = self._owned(flow_id, client_id)
            if flow is None:
                return None
            data = flow.model_dump()
            data.update(safe)
            data["updated_at"] = datetime.now(UTC)
            updated = Flow.model_validate(data)
            self._flows[flow_id] = updated
        return updated.model_copy(deep=True)

    def delete_flow(self, flow_id: str, client_id: str) -> bool:
        with self._lock:
            if self._owned(flow_id, client_id) is None:
                return False
            del self._flows[flow_id]
        logger.info("Deleted flow %s", flow_id)
        return True

    def commit_deploy(self, flow_id: str, client_id: str, expected_version: int) -> Flow:
        with self._lock:
            flow = self._owned(flow_id, client_id)
            actual = flow.version if flow else None
            if actual != expected_version:
                raise PersistenceConflict(flow_id, expected_version, actual)
            committed = flow.model_copy(
                update={
                    "version": flow.version + 1,
                    "is_active": True,
                    "updated_at": datetime.now(UTC),
                },
            )
            self._flows[flow_id] = committed
        return committed.model_copy(deep=True)
