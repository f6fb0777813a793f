"""Tests for tool templates, client binding and the tool resolver."""

from __future__ import annotations

from flow_deployer.models import ProviderKind, parse_nodes
from flow_deployer.tools.resolver import WEBHOOK_TIMEOUT_MS, resolve_tools
from flow_deployer.tools.templates import (
    CALENDLY_TOOLS,
    ClientContext,
    bind,
    provider_tool_names,
)

CTX = ClientContext(client_id="client-42")


def _nodes(*nodes: dict):
    return parse_nodes([{"id": f"n{i}", **node} for i, node in enumerate(nodes, start=1)])


def _names(tools):
    return [tool["name"] for tool in tools]


class TestBind:
    def test_appends_client_id_to_url(self):
        bound = bind(CALENDLY_TOOLS[0], CTX)
        assert bound["url"].endswith("/api/tools/calendly/availability?client_id=client-42")

    def test_adds_auth_header_when_key_configured(self):
        bound = bind(CALENDLY_TOOLS[0], ClientContext(client_id="c", tools_api_key="secret"))
        assert bound["header"] == {"Authorization": "Bearer secret"}

    def test_no_header_without_key(self):
        bound = bind(CALENDLY_TOOLS[0], CTX)
        assert "header" not in bound

    def test_template_is_not_mutated(self):
        original_url = CALENDLY_TOOLS[0]["url"]
        bind(CALENDLY_TOOLS[0], ClientContext(client_id="c", tools_api_key="k"))
        assert CALENDLY_TOOLS[0]["url"] == original_url
        assert "header" not in CALENDLY_TOOLS[0]


class TestProviderTools:
    def test_each_provider_expands_its_templates(self):
        assert provider_tool_names(ProviderKind.GOOGLE) == ["check_availability", "book_appointment"]
        assert provider_tool_names(ProviderKind.CALENDLY) == [
            "check_calendly_availability",
            "book_calendly_appointment",
        ]
        assert provider_tool_names(ProviderKind.HUBSPOT) == ["lookup_caller"]

    def test_resolves_in_provider_order_and_binds(self):
        tools = resolve_tools([ProviderKind.HUBSPOT, ProviderKind.CALENDLY], [], CTX)
        assert _names(tools) == [
            "lookup_caller",
            "check_calendly_availability",
            "book_calendly_appointment",
        ]
        assert all("client_id=client-42" in tool["url"] for tool in tools)

    def test_repeated_provider_is_added_once(self):
        tools = resolve_tools([ProviderKind.GOOGLE, ProviderKind.GOOGLE], [], CTX)
        assert _names(tools) == ["check_availability", "book_appointment"]

    def test_accepts_provider_strings(self):
        tools = resolve_tools(["hubspot"], [], CTX)
        assert _names(tools) == ["lookup_caller"]


class TestWebhookTools:
    def test_names_count_only_webhooks_with_urls(self):
        nodes = _nodes(
            {"type": "webhook", "data": {"webhookUrl": "https://a"}},
            {"type": "message", "data": {"text": "x"}},
            {"type": "webhook", "data": {}},
            {"type": "webhook", "data": {"webhookUrl": "https://b"}},
        )
        tools = resolve_tools([], nodes, CTX)
        assert _names(tools) == ["flow_webhook_1", "flow_webhook_2"]
        assert [t["url"] for t in tools] == ["https://a", "https://b"]

    def test_webhook_descriptor_shape(self):
        nodes = _nodes({"type": "webhook", "data": {"webhookUrl": "https://a", "webhookMethod": "GET"}})
        (tool,) = resolve_tools([], nodes, CTX)
        assert tool["type"] == "custom"
        assert tool["method"] == "GET"
        assert tool["timeout_ms"] == WEBHOOK_TIMEOUT_MS
        assert tool["speak_during_execution"] is True
        assert tool["speak_after_execution"] is True
        assert set(tool["parameters"]["properties"]) == {
            "caller_name",
            "caller_phone",
            "caller_email",
            "notes",
        }
        assert tool["description"] == "Send data to webhook endpoint #1"

    def test_webhook_method_defaults_to_post(self):
        (tool,) = resolve_tools([], _nodes({"type": "webhook", "data": {"webhookUrl": "https://a"}}), CTX)
        assert tool["method"] == "POST"

    def test_webhook_urls_are_not_client_bound(self):
        (tool,) = resolve_tools([], _nodes({"type": "webhook", "data": {"webhookUrl": "https://a"}}), CTX)
        assert tool["url"] == "https://a"


class TestTransferTools:
    def test_transfer_descriptor(self):
        nodes = _nodes({"type": "transfer", "data": {"transferNumber": "+15550000000"}})
        (tool,) = resolve_tools([], nodes, CTX)
        assert tool["name"] == "transfer_call_1"
        assert tool["type"] == "transfer_call"
        assert tool["transfer_destination"] == {"type": "predefined", "number": "+15550000000"}
        assert tool["transfer_option"]["type"] == "warm_transfer"
        assert tool["transfer_option"]["on_hold_music"] == "ringtone"
        assert tool["description"] == "Transfer the call to +15550000000"

    def test_transfer_description_uses_node_text(self):
        nodes = _nodes({"type": "transfer", "data": {"transferNumber": "+1", "text": "to sales"}})
        (tool,) = resolve_tools([], nodes, CTX)
        assert tool["description"] == "Transfer the call: to sales"

    def test_transfer_without_number_consumes_no_slot(self):
        nodes = _nodes(
            {"type": "transfer", "data": {}},
            {"type": "transfer", "data": {"transferNumber": "+1"}},
            {"type": "transfer", "data": {"transferNumber": "+2"}},
        )
        tools = resolve_tools([], nodes, CTX)
        assert _names(tools) == ["transfer_call_1", "transfer_call_2"]
        assert tools[1]["transfer_destination"]["number"] == "+2"


class TestOrdering:
    def test_providers_then_webhooks_then_transfers(self):
        nodes = _nodes(
            {"type": "transfer", "data": {"transferNumber": "+1"}},
            {"type": "crm_lookup", "data": {}},
            {"type": "webhook", "data": {"webhookUrl": "https://a"}},
        )
        tools = resolve_tools([ProviderKind.HUBSPOT], nodes, CTX)
        assert _names(tools) == ["lookup_caller", "flow_webhook_1", "transfer_call_1"]
        assert len(set(_names(tools))) == len(tools)
