"""Typed conversation-flow model.

A flow is an ordered list of nodes.  Each node is one variant of a tagged
union discriminated on ``type``, and each variant owns its own ``data``
payload model.  The JSON shape matches what the flow editor stores::

    {"id": "n1", "type": "webhook",
     "data": {"text": "...", "webhookUrl": "https://...", "webhookMethod": "POST"}}

Keys inside ``data`` that belong to another variant are ignored, so a node
whose type was changed in the editor still validates.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class NodeType(str, Enum):
    """Every node variant the compiler understands."""

    MESSAGE = "message"
    QUESTION = "question"
    CONDITION = "condition"
    TRANSFER = "transfer"
    END = "end"
    CHECK_AVAILABILITY = "check_availability"
    BOOK_APPOINTMENT = "book_appointment"
    CRM_LOOKUP = "crm_lookup"
    WEBHOOK = "webhook"


class ProviderKind(str, Enum):
    """Integration categories whose tool templates the resolver expands."""

    GOOGLE = "google"
    CALENDLY = "calendly"
    HUBSPOT = "hubspot"


SchedulingProvider = Literal["google", "calendly"]
WebhookMethod = Literal["POST", "GET"]


# ── Per-variant payloads ─────────────────────────────────────────────


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: str | None = None


class QuestionOption(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str = ""
    next_node_id: str | None = Field(None, alias="nextNodeId")


class MessageData(_Payload):
    next_node_id: str | None = Field(None, alias="nextNodeId")


class QuestionData(_Payload):
    options: list[QuestionOption] = Field(default_factory=list)
    next_node_id: str | None = Field(None, alias="nextNodeId")


class ConditionData(_Payload):
    condition: str | None = None
    true_node_id: str | None = Field(None, alias="trueNodeId")
    false_node_id: str | None = Field(None, alias="falseNodeId")


class TransferData(_Payload):
    transfer_number: str | None = Field(None, alias="transferNumber")


class EndData(_Payload):
    pass


class SchedulingData(_Payload):
    provider: SchedulingProvider = "google"
    next_node_id: str | None = Field(None, alias="nextNodeId")


class CrmLookupData(_Payload):
    next_node_id: str | None = Field(None, alias="nextNodeId")


class WebhookData(_Payload):
    webhook_url: str | None = Field(None, alias="webhookUrl")
    webhook_method: WebhookMethod = Field("POST", alias="webhookMethod")
    next_node_id: str | None = Field(None, alias="nextNodeId")


# ── Node variants ────────────────────────────────────────────────────


class _Node(BaseModel):
    id: str = Field(..., min_length=1)


class MessageNode(_Node):
    type: Literal["message"] = "message"
    data: MessageData = Field(default_factory=MessageData)


class QuestionNode(_Node):
    type: Literal["question"] = "question"
    data: QuestionData = Field(default_factory=QuestionData)


class ConditionNode(_Node):
    type: Literal["condition"] = "condition"
    data: ConditionData = Field(default_factory=ConditionData)


class TransferNode(_Node):
    type: Literal["transfer"] = "transfer"
    data: TransferData = Field(default_factory=TransferData)


class EndNode(_Node):
    type: Literal["end"] = "end"
    data: EndData = Field(default_factory=EndData)


class CheckAvailabilityNode(_Node):
    type: Literal["check_availability"] = "check_availability"
    data: SchedulingData = Field(default_factory=SchedulingData)


class BookAppointmentNode(_Node):
    type: Literal["book_appointment"] = "book_appointment"
    data: SchedulingData = Field(default_factory=SchedulingData)


class CrmLookupNode(_Node):
    type: Literal["crm_lookup"] = "crm_lookup"
    data: CrmLookupData = Field(default_factory=CrmLookupData)


class WebhookNode(_Node):
    type: Literal["webhook"] = "webhook"
    data: WebhookData = Field(default_factory=WebhookData)


FlowNode = Annotated[
    Union[
        MessageNode,
        QuestionNode,
        ConditionNode,
        TransferNode,
        EndNode,
        CheckAvailabilityNode,
        BookAppointmentNode,
        CrmLookupNode,
        WebhookNode,
    ],
    Field(discriminator="type"),
]

_NODE_LIST = TypeAdapter(list[FlowNode])


def validate_unique_node_ids(nodes: list[Any]) -> list[Any]:
    """Raise ``ValueError`` if two nodes share an ``id``."""
    seen: set[str] = set()
    for node in nodes:
        if node.id in seen:
            raise ValueError(f"Duplicate node id: {node.id!r}")
        seen.add(node.id)
    return nodes


def parse_nodes(raw: list[dict[str, Any]]) -> list[FlowNode]:
    """Validate a list of editor JSON nodes into typed ``FlowNode`` objects."""
    return validate_unique_node_ids(_NODE_LIST.validate_python(raw))


def dump_nodes(nodes: list[FlowNode]) -> list[dict[str, Any]]:
    """Serialise typed nodes back to the editor's camelCase JSON shape."""
    return _NODE_LIST.dump_python(nodes, mode="json", by_alias=True, exclude_none=True)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Flow(BaseModel):
    """A client-owned conversation flow plus its deployment bookkeeping.

    ``version`` and ``is_active`` are only ever changed by a confirmed
    deploy (see ``FlowStore.commit_deploy``); editing leaves them alone.
    ``edges`` are carried for the editor and are not read by the compiler.
    """

    id: str
    client_id: str
    agent_id: str | None = None
    name: str
    nodes: list[FlowNode] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)
    version: int = 1
    is_active: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("nodes")
    @classmethod
    def _unique_node_ids(cls, nodes: list[FlowNode]) -> list[FlowNode]:
        return validate_unique_node_ids(nodes)
