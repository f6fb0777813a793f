"""Tool descriptor templates for each integration provider.

Descriptors follow the Retell custom-tool JSON shape.  Provider tool URLs
point back at this portal's tool endpoints; ``bind`` scopes a template to
one client before it is pushed to a remote agent.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from flow_deployer.config import APP_URL, RETELL_TOOLS_API_KEY
from flow_deployer.models import ProviderKind

ToolDescriptor = dict[str, Any]

# ── Tool names ──────────────────────────────────────────────────────

CHECK_AVAILABILITY_TOOLS: dict[ProviderKind, str] = {
    ProviderKind.GOOGLE: "check_availability",
    ProviderKind.CALENDLY: "check_calendly_availability",
}
BOOK_APPOINTMENT_TOOLS: dict[ProviderKind, str] = {
    ProviderKind.GOOGLE: "book_appointment",
    ProviderKind.CALENDLY: "book_calendly_appointment",
}
CRM_LOOKUP_TOOL = "lookup_caller"


def webhook_tool_name(index: int) -> str:
    """Name of the *index*-th (1-based) webhook tool in a flow."""
    return f"flow_webhook_{index}"


def transfer_tool_name(index: int) -> str:
    """Name of the *index*-th (1-based) transfer tool in a flow."""
    return f"transfer_call_{index}"


# ── Provider templates ──────────────────────────────────────────────

CALENDAR_TOOLS: list[ToolDescriptor] = [
    {
        "type": "custom",
        "name": CHECK_AVAILABILITY_TOOLS[ProviderKind.GOOGLE],
        "description": (
            "Check available appointment slots for a given date. "
            "Use this when a caller wants to schedule an appointment."
        ),
        "url": f"{APP_URL}/api/tools/calendar/availability",
        "method": "POST",
        "speak_during_execution": True,
        "execution_message_description": (
            "Let the caller know you are checking the calendar for available times"
        ),
        "speak_after_execution": True,
        "timeout_ms": 5000,
        "parameters": {
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "The date to check availability for, in YYYY-MM-DD format",
                },
                "duration_minutes": {
                    "type": "number",
                    "description": "How long the appointment should be in minutes. Default 60.",
                },
            },
            "required": ["date"],
        },
        "response_variables": {
            "available_slots": "$.slots",
            "earliest_slot": "$.earliest",
        },
    },
    {
        "type": "custom",
        "name": BOOK_APPOINTMENT_TOOLS[ProviderKind.GOOGLE],
        "description": (
            "Book an appointment at a specific time. "
            "Use this after the caller confirms a time slot."
        ),
        "url": f"{APP_URL}/api/tools/calendar/book",
        "method": "POST",
        "speak_during_execution": True,
        "execution_message_description": "Let the caller know you are booking the appointment",
        "speak_after_execution": True,
        "timeout_ms": 5000,
        "parameters": {
            "type": "object",
            "properties": {
                "start_time": {
                    "type": "string",
                    "description": "ISO 8601 datetime for appointment start",
                },
                "end_time": {
                    "type": "string",
                    "description": "ISO 8601 datetime for appointment end",
                },
                "summary": {"type": "string", "description": "Brief title for the appointment"},
                "attendee_name": {"type": "string", "description": "The caller's name"},
                "attendee_phone": {"type": "string", "description": "The caller's phone number"},
                "attendee_email": {
                    "type": "string",
                    "description": "The caller's email (if provided)",
                },
            },
            "required": ["start_time", "end_time"],
        },
        "response_variables": {
            "booking_confirmed": "$.success",
            "event_time": "$.event_time",
        },
    },
]

CALENDLY_TOOLS: list[ToolDescriptor] = [
    {
        "type": "custom",
        "name": CHECK_AVAILABILITY_TOOLS[ProviderKind.CALENDLY],
        "description": (
            "Check available appointment slots on Calendly for a given date. "
            "Use this when a caller wants to schedule an appointment via Calendly."
        ),
        "url": f"{APP_URL}/api/tools/calendly/availability",
        "method": "POST",
        "speak_during_execution": True,
        "execution_message_description": (
            "Let the caller know you are checking Calendly for available times"
        ),
        "speak_after_execution": True,
        "timeout_ms": 5000,
        "parameters": {
            "type": "object",
            "properties": {
                "date": {
                    "type": "string",
                    "description": "The date to check availability for, in YYYY-MM-DD format",
                },
            },
            "required": ["date"],
        },
        "response_variables": {
            "available_slots": "$.slots",
            "earliest_slot": "$.earliest",
        },
    },
    {
        "type": "custom",
        "name": BOOK_APPOINTMENT_TOOLS[ProviderKind.CALENDLY],
        "description": (
            "Book an appointment via Calendly. "
            "Use this after the caller confirms a time slot."
        ),
        "url": f"{APP_URL}/api/tools/calendly/book",
        "method": "POST",
        "speak_during_execution": True,
        "execution_message_description": (
            "Let the caller know you are booking the appointment on Calendly"
        ),
        "speak_after_execution": True,
        "timeout_ms": 5000,
        "parameters": {
            "type": "object",
            "properties": {
                "event_type_uri": {
                    "type": "string",
                    "description": "The Calendly event type URI to book",
                },
                "start_time": {
                    "type": "string",
                    "description": "ISO 8601 datetime for appointment start",
                },
                "invitee_name": {"type": "string", "description": "The caller's name"},
                "invitee_email": {
                    "type": "string",
                    "description": "The caller's email (if provided)",
                },
                "invitee_phone": {"type": "string", "description": "The caller's phone number"},
            },
            "required": ["event_type_uri", "start_time"],
        },
        "response_variables": {
            "booking_confirmed": "$.success",
            "booking_url": "$.booking_url",
        },
    },
]

HUBSPOT_TOOLS: list[ToolDescriptor] = [
    {
        "type": "custom",
        "name": CRM_LOOKUP_TOOL,
        "description": (
            "Look up a caller's information by their phone number. "
            "Use this at the start of the call to personalize the conversation."
        ),
        "url": f"{APP_URL}/api/tools/hubspot/lookup",
        "method": "POST",
        "speak_during_execution": False,
        "speak_after_execution": True,
        "timeout_ms": 5000,
        "parameters": {
            "type": "object",
            "properties": {
                "caller_phone_number": {
                    "type": "string",
                    "description": "The caller's phone number in E.164 format",
                },
            },
            "required": ["caller_phone_number"],
        },
        "response_variables": {
            "caller_found": "$.found",
            "caller_name": "$.caller_name",
            "caller_company": "$.company",
        },
    },
]

PROVIDER_TOOLS: dict[ProviderKind, list[ToolDescriptor]] = {
    ProviderKind.GOOGLE: CALENDAR_TOOLS,
    ProviderKind.CALENDLY: CALENDLY_TOOLS,
    ProviderKind.HUBSPOT: HUBSPOT_TOOLS,
}


def provider_tool_names(provider: ProviderKind) -> list[str]:
    """Names of every template tool contributed by *provider*."""
    return [tool["name"] for tool in PROVIDER_TOOLS[provider]]


# ── Client binding ──────────────────────────────────────────────────


@dataclass(frozen=True)
class ClientContext:
    """Who a set of tools is being bound for.

    ``client_id`` lets the portal's tool endpoints pick the right OAuth
    tokens; ``tools_api_key`` authenticates the remote agent's calls.
    """

    client_id: str
    tools_api_key: str | None = None

    @classmethod
    def for_client(cls, client_id: str) -> ClientContext:
        """Build a context using the configured tools API key."""
        return cls(client_id=client_id, tools_api_key=RETELL_TOOLS_API_KEY)


def bind(descriptor: ToolDescriptor, context: ClientContext) -> ToolDescriptor:
    """Return a copy of *descriptor* scoped to the client in *context*.

    The template itself is never mutated.
    """
    bound = copy.deepcopy(descriptor)
    url = bound.get("url")
    if url:
        sep = "&" if "?" in url else "?"
        bound["url"] = f"{url}{sep}{urlencode({'client_id': context.client_id})}"
    if context.tools_api_key:
        bound["header"] = {"Authorization": f"Bearer {context.tools_api_key}"}
    return bound
