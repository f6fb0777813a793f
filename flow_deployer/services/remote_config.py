"""Discover and update a remote agent's tool configuration.

A Retell agent keeps its LLM configuration in one of two places:

* **llm-bound** — ``response_engine.llm_id`` points at a separate LLM
  object that owns ``general_tools``; it is read and patched on its own.
* **inline** — ``response_engine.llm`` embeds the LLM configuration in the
  agent record, which is patched instead.

``discover`` resolves which shape applies and returns the tools currently
configured.  Discovery never raises: if either read fails or returns
nothing usable, the existing tools are treated as empty and the result is
flagged ``degraded`` so a deploy can go ahead with only its own tools.

``push`` is the single write of a deploy and raises ``RemotePushFailed``
on any failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Union

import httpx

from flow_deployer.errors import RemotePushFailed
from flow_deployer.services.retell_client import RetellAPIError, RetellClient
from flow_deployer.tools.templates import ToolDescriptor

logger = logging.getLogger(__name__)

# Anything a failed or malformed read can raise.
_READ_ERRORS = (RetellAPIError, httpx.HTTPError, ValueError, TypeError, AttributeError)


@dataclass(frozen=True)
class LlmBinding:
    agent_id: str
    llm_id: str


@dataclass(frozen=True)
class InlineBinding:
    agent_id: str


RemoteBinding = Union[LlmBinding, InlineBinding]


@dataclass(frozen=True)
class RemoteConfig:
    """What discovery found on the remote agent."""

    binding: RemoteBinding
    existing_tools: list[ToolDescriptor] = field(default_factory=list)
    degraded: bool = False


def _tool_list(config: dict[str, Any], *keys: str) -> list[ToolDescriptor]:
    """Return the first list found under *keys* (dict entries only)."""
    for key in keys:
        value = config.get(key)
        if isinstance(value, list):
            return [tool for tool in value if isinstance(tool, dict)]
    return []


def _degraded(binding: RemoteBinding, reason: str) -> RemoteConfig:
    logger.warning(
        "Remote discovery degraded for agent %s (%s); continuing with no existing tools",
        binding.agent_id, reason,
    )
    return RemoteConfig(binding=binding, existing_tools=[], degraded=True)


def discover(client: RetellClient, agent_id: str) -> RemoteConfig:
    """Probe the remote agent for its binding shape and current tools."""
    try:
        agent = client.get_agent(agent_id)
        engine = agent.get("response_engine")
    except _READ_ERRORS as exc:
        return _degraded(InlineBinding(agent_id), f"agent read failed: {exc}")

    if not isinstance(engine, dict):
        return _degraded(InlineBinding(agent_id), "no response_engine on agent")

    llm_id = engine.get("llm_id")
    if llm_id:
        binding = LlmBinding(agent_id=agent_id, llm_id=llm_id)
        try:
            llm = client.get_llm(llm_id)
            tools = _tool_list(llm, "general_tools", "tools")
        except _READ_ERRORS as exc:
            return _degraded(binding, f"llm {llm_id} read failed: {exc}")
        logger.info("Agent %s is llm-bound (%s) with %d tool(s)", agent_id, llm_id, len(tools))
        return RemoteConfig(binding=binding, existing_tools=tools)

    inline = engine.get("llm")
    if isinstance(inline, dict):
        tools = _tool_list(inline, "tools", "general_tools")
        logger.info("Agent %s has an inline llm with %d tool(s)", agent_id, len(tools))
        return RemoteConfig(binding=InlineBinding(agent_id), existing_tools=tools)

    return _degraded(InlineBinding(agent_id), "response_engine has no llm configuration")


def push(
    client: RetellClient,
    binding: RemoteBinding,
    tools: list[ToolDescriptor],
    script: str | None = None,
) -> None:
    """Write *tools* (and *script*, when given) to the remote agent.

    Issues exactly one request, chosen by the binding shape.
    """
    llm_payload: dict[str, Any] = {}
    if script is not None:
        llm_payload["general_prompt"] = script
    llm_payload["general_tools"] = tools

    try:
        if isinstance(binding, LlmBinding):
            client.update_llm(binding.llm_id, llm_payload)
        elif isinstance(binding, InlineBinding):
            client.update_agent(
                binding.agent_id,
                {"response_engine": {"type": "retell-llm", "llm": llm_payload}},
            )
        else:
            raise TypeError(f"Unknown remote binding: {binding!r}")
    except RetellAPIError as exc:
        logger.error("Retell update failed for %s: %s", binding, exc)
        raise RemotePushFailed(
            "Failed to deploy flow to Retell", status_code=exc.status_code,
        ) from exc

    logger.info("Pushed %d tool(s) to %s", len(tools), binding)
