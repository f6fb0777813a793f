"""Expand compiled providers and dynamic flow nodes into tool descriptors."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from flow_deployer.models import FlowNode, ProviderKind, TransferNode, WebhookNode
from flow_deployer.tools.templates import (
    PROVIDER_TOOLS,
    ClientContext,
    ToolDescriptor,
    bind,
    transfer_tool_name,
    webhook_tool_name,
)

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT_MS = 5000


def webhook_tool(index: int, node: WebhookNode) -> ToolDescriptor:
    """Build the ``flow_webhook_<index>`` descriptor for a webhook node."""
    return {
        "type": "custom",
        "name": webhook_tool_name(index),
        "description": node.data.text or f"Send data to webhook endpoint #{index}",
        "url": node.data.webhook_url,
        "method": node.data.webhook_method or "POST",
        "speak_during_execution": True,
        "execution_message_description": "One moment while I process that",
        "speak_after_execution": True,
        "timeout_ms": WEBHOOK_TIMEOUT_MS,
        "parameters": {
            "type": "object",
            "properties": {
                "caller_name": {"type": "string", "description": "The caller's name"},
                "caller_phone": {"type": "string", "description": "The caller's phone number"},
                "caller_email": {
                    "type": "string",
                    "description": "The caller's email if provided",
                },
                "notes": {
                    "type": "string",
                    "description": "Any relevant notes from the conversation",
                },
            },
            "required": [],
        },
    }


def transfer_tool(index: int, node: TransferNode) -> ToolDescriptor:
    """Build the ``transfer_call_<index>`` warm-transfer descriptor."""
    number = node.data.transfer_number
    return {
        "type": "transfer_call",
        "name": transfer_tool_name(index),
        "description": (
            f"Transfer the call: {node.data.text}"
            if node.data.text
            else f"Transfer the call to {number}"
        ),
        "transfer_destination": {"type": "predefined", "number": number},
        "transfer_option": {
            "type": "warm_transfer",
            "show_transferee_as_caller": False,
            "on_hold_music": "ringtone",
        },
        "speak_during_execution": True,
        "execution_message_description": "Let the caller know you are transferring them now.",
        "execution_message_type": "prompt",
    }


def resolve_tools(
    required_providers: Iterable[ProviderKind],
    nodes: list[FlowNode],
    context: ClientContext,
) -> list[ToolDescriptor]:
    """Return the flow's tool descriptors with no duplicate names.

    Order: provider templates (in *required_providers* order, bound to
    *context*), then one webhook tool per webhook node with a URL, then one
    transfer tool per transfer node with a number.  Nodes missing those
    fields do not consume a counter slot.
    """
    tools: list[ToolDescriptor] = []
    names: set[str] = set()

    for provider in required_providers:
        for template in PROVIDER_TOOLS[ProviderKind(provider)]:
            if template["name"] in names:
                continue
            names.add(template["name"])
            tools.append(bind(template, context))

    webhook_idx = 0
    for node in nodes:
        if isinstance(node, WebhookNode) and node.data.webhook_url:
            webhook_idx += 1
            tools.append(webhook_tool(webhook_idx, node))

    transfer_idx = 0
    for node in nodes:
        if isinstance(node, TransferNode) and node.data.transfer_number:
            transfer_idx += 1
            tools.append(transfer_tool(transfer_idx, node))

    logger.debug(
        "Resolved %d tool(s) for client %s: %s",
        len(tools), context.client_id, [t["name"] for t in tools],
    )
    return tools
