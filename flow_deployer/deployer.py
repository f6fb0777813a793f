"""Deployment orchestrator: compile a stored flow and push it to its agent.

Pipeline (strictly sequential, one push per deploy)::

    LOADED → DISCOVERING → COMPILING → MERGING → PUSHING → COMMITTED
                                                    ↘ FAILED

* Discovery failures are absorbed by ``remote_config.discover`` and never
  reach ``FAILED``; the deploy continues with only the flow's own tools.
* A failed push raises ``RemotePushFailed`` and nothing is committed.
* The flow's ``version``/``is_active`` are written last, after the remote
  acknowledged the push, under an optimistic check against the version
  read at the start.
* A set ``cancel_event`` aborts the deploy up until the push is sent.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum

from flow_deployer.compiler import compile_flow
from flow_deployer.errors import AgentNotLinked, DeployCancelled, FlowDeployError, FlowNotFound
from flow_deployer.models import Flow, ProviderKind
from flow_deployer.services.flow_store import FlowStore
from flow_deployer.services.metrics import metrics
from flow_deployer.services.remote_config import discover, push
from flow_deployer.services.retell_client import RetellClient, get_retell_client
from flow_deployer.tools.merge import merge_tools, remove_tools
from flow_deployer.tools.resolver import resolve_tools
from flow_deployer.tools.templates import (
    PROVIDER_TOOLS,
    ClientContext,
    bind,
    provider_tool_names,
)

logger = logging.getLogger(__name__)


class DeployStage(str, Enum):
    LOADED = "loaded"
    DISCOVERING = "discovering"
    COMPILING = "compiling"
    MERGING = "merging"
    PUSHING = "pushing"
    COMMITTED = "committed"
    FAILED = "failed"


@dataclass(frozen=True)
class DeployResult:
    """What a successful deploy applied."""

    prompt_preview: str
    tools_registered: list[str]
    version: int


@dataclass(frozen=True)
class FlowPreview:
    """A compiled flow that has not been pushed anywhere."""

    script: str
    tool_names: list[str]
    required_providers: list[ProviderKind]


class FlowDeployer:
    """Runs deploys and provider tool syncs against the remote agent runtime."""

    def __init__(self, store: FlowStore, client: RetellClient | None = None):
        self._store = store
        self._client = client or get_retell_client()

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _enter(flow_id: str, stage: DeployStage) -> DeployStage:
        logger.debug("Deploy %s → %s", flow_id, stage.value)
        return stage

    @staticmethod
    def _check_cancelled(flow_id: str, cancel_event: threading.Event | None) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise DeployCancelled(f"Deploy of flow {flow_id} was cancelled before the push")

    # ── Deploy ───────────────────────────────────────────────────────

    def deploy(
        self,
        flow_id: str,
        context: ClientContext,
        cancel_event: threading.Event | None = None,
    ) -> DeployResult:
        """Compile the flow, merge its tools into the agent's, push, and commit.

        Raises:
            FlowNotFound: the flow is missing or owned by another client.
            AgentNotLinked: the flow has no agent; no network call is made.
            DeployCancelled: *cancel_event* was set before the push.
            RemotePushFailed: the remote write failed; nothing was committed.
            PersistenceConflict: the flow changed while deploying; the remote
                push already happened.
        """
        t0 = time.perf_counter()
        stage = DeployStage.LOADED
        try:
            flow = self._store.get_flow(flow_id, context.client_id)
            if flow is None:
                raise FlowNotFound(flow_id)
            if not flow.agent_id:
                raise AgentNotLinked(flow_id)
            expected_version = flow.version
            self._check_cancelled(flow_id, cancel_event)

            stage = self._enter(flow_id, DeployStage.DISCOVERING)
            remote = discover(self._client, flow.agent_id)

            stage = self._enter(flow_id, DeployStage.COMPILING)
            compiled = compile_flow(flow.nodes)
            flow_tools = resolve_tools(compiled.required_providers, flow.nodes, context)

            stage = self._enter(flow_id, DeployStage.MERGING)
            merged = merge_tools(remote.existing_tools, flow_tools)
            self._check_cancelled(flow_id, cancel_event)

            stage = self._enter(flow_id, DeployStage.PUSHING)
            push(self._client, remote.binding, merged, compiled.script)
            committed = self._store.commit_deploy(flow_id, context.client_id, expected_version)
            stage = self._enter(flow_id, DeployStage.COMMITTED)

        except FlowDeployError as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            logger.warning(
                "Deploy of flow %s %s during %s: %s",
                flow_id, DeployStage.FAILED.value, stage.value, exc,
            )
            metrics.record_deploy(type(exc).__name__, latency_ms=elapsed)
            raise

        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_deploy(DeployStage.COMMITTED.value, latency_ms=elapsed)
        tool_names = [tool["name"] for tool in flow_tools]
        logger.info(
            "Deployed flow %s to agent %s as version %d (%d flow tool(s), %d total%s)",
            flow_id,
            flow.agent_id,
            committed.version,
            len(flow_tools),
            len(merged),
            ", discovery degraded" if remote.degraded else "",
        )
        return DeployResult(
            prompt_preview=compiled.script,
            tools_registered=tool_names,
            version=committed.version,
        )

    def preview(self, flow: Flow, context: ClientContext) -> FlowPreview:
        """Compile *flow* and resolve its tools without touching the network."""
        compiled = compile_flow(flow.nodes)
        tools = resolve_tools(compiled.required_providers, flow.nodes, context)
        return FlowPreview(
            script=compiled.script,
            tool_names=[tool["name"] for tool in tools],
            required_providers=list(compiled.required_providers),
        )

    # ── Provider tool sync ───────────────────────────────────────────

    def register_provider_tools(
        self, agent_id: str, provider: ProviderKind, context: ClientContext,
    ) -> list[str]:
        """Add (or refresh) *provider*'s template tools on the agent.

        Leaves the instruction script alone.  If the agent's current tools
        cannot be read, nothing is pushed and an empty list is returned,
        since a push would replace tools that could not be seen.
        """
        remote = discover(self._client, agent_id)
        if remote.degraded:
            logger.warning("Skipping %s tool registration for agent %s", provider.value, agent_id)
            return []

        tools = [bind(template, context) for template in PROVIDER_TOOLS[provider]]
        push(self._client, remote.binding, merge_tools(remote.existing_tools, tools))
        return [tool["name"] for tool in tools]

    def unregister_provider_tools(self, agent_id: str, provider: ProviderKind) -> list[str]:
        """Remove *provider*'s template tools from the agent.

        Returns the names that were actually removed.
        """
        remote = discover(self._client, agent_id)
        if remote.degraded:
            logger.warning("Skipping %s tool removal for agent %s", provider.value, agent_id)
            return []

        names = provider_tool_names(provider)
        remaining = remove_tools(remote.existing_tools, names)
        removed = [
            tool["name"] for tool in remote.existing_tools if tool.get("name") in set(names)
        ]
        if not removed:
            return []
        push(self._client, remote.binding, remaining)
        return removed
