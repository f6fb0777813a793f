"""Compile an ordered list of flow nodes into an agent instruction script.

The compiler is a pure function: the same nodes always produce the same
script and the same ordered set of required providers.  Nodes are walked in
list order and numbered by position; branch fields (``nextNodeId``,
``trueNodeId``/``falseNodeId``, per-option targets) are carried by the
model but never followed here.

Dynamic tool names (``flow_webhook_<n>``, ``transfer_call_<n>``) are counted
per call in a local ``_CompileState`` so concurrent compilations never
share counters.  ``flow_deployer.tools.resolver`` applies the same counting
rule, which is what keeps the names in the script and the pushed tool
descriptors in step.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from flow_deployer import prompts
from flow_deployer.models import (
    BookAppointmentNode,
    CheckAvailabilityNode,
    ConditionNode,
    CrmLookupNode,
    EndNode,
    FlowNode,
    MessageNode,
    NodeType,
    ProviderKind,
    QuestionNode,
    TransferNode,
    WebhookNode,
)
from flow_deployer.tools.templates import (
    BOOK_APPOINTMENT_TOOLS,
    CHECK_AVAILABILITY_TOOLS,
    transfer_tool_name,
    webhook_tool_name,
)


@dataclass(frozen=True)
class CompiledFlow:
    """Result of compiling a flow."""

    script: str
    required_providers: tuple[ProviderKind, ...] = ()


@dataclass
class _CompileState:
    # dict keeps first-seen order, which keeps tool ordering deterministic
    providers: dict[ProviderKind, None] = field(default_factory=dict)
    webhook_count: int = 0
    transfer_count: int = 0

    def require(self, provider: ProviderKind) -> None:
        self.providers.setdefault(provider, None)


def _step(step: int, text: str | None, default: str, suffix: str = "") -> str:
    line = f"{step}. {text or default}"
    return f"{line} {suffix}" if suffix else line


# ── Per-variant emitters ─────────────────────────────────────────────


def _emit_message(node: MessageNode, step: int, state: _CompileState) -> list[str]:
    return [f'{step}. Say: "{node.data.text or ""}"']


def _emit_question(node: QuestionNode, step: int, state: _CompileState) -> list[str]:
    lines = [f'{step}. Ask: "{node.data.text or ""}"']
    if node.data.options:
        lines.extend(
            prompts.QUESTION_OPTION_LINE.format(label=opt.label) for opt in node.data.options
        )
    else:
        lines.append(prompts.QUESTION_OPEN_LINE)
    return lines


def _emit_condition(node: ConditionNode, step: int, state: _CompileState) -> list[str]:
    return [
        f"{step}. Evaluate: {node.data.condition or prompts.CONDITION_DEFAULT}",
        prompts.CONDITION_YES_LINE,
        prompts.CONDITION_NO_LINE,
    ]


def _emit_transfer(node: TransferNode, step: int, state: _CompileState) -> list[str]:
    if not node.data.transfer_number:
        return [_step(step, node.data.text, prompts.TRANSFER_DEFAULT)]

    state.transfer_count += 1
    tool = transfer_tool_name(state.transfer_count)
    return [
        _step(
            step,
            node.data.text,
            prompts.TRANSFER_WITH_TOOL_DEFAULT,
            prompts.TRANSFER_WITH_TOOL_SUFFIX.format(tool=tool),
        )
    ]


def _emit_end(node: EndNode, step: int, state: _CompileState) -> list[str]:
    return [_step(step, node.data.text, prompts.END_DEFAULT)]


def _emit_check_availability(
    node: CheckAvailabilityNode, step: int, state: _CompileState,
) -> list[str]:
    provider = ProviderKind(node.data.provider)
    state.require(provider)
    tool = CHECK_AVAILABILITY_TOOLS[provider]
    return [
        _step(
            step,
            node.data.text,
            prompts.CHECK_AVAILABILITY_DEFAULT,
            prompts.CHECK_AVAILABILITY_SUFFIX.format(tool=tool),
        )
    ]


def _emit_book_appointment(
    node: BookAppointmentNode, step: int, state: _CompileState,
) -> list[str]:
    provider = ProviderKind(node.data.provider)
    state.require(provider)
    tool = BOOK_APPOINTMENT_TOOLS[provider]
    return [
        _step(
            step,
            node.data.text,
            prompts.BOOK_APPOINTMENT_DEFAULT,
            prompts.BOOK_APPOINTMENT_SUFFIX.format(tool=tool),
        )
    ]


def _emit_crm_lookup(node: CrmLookupNode, step: int, state: _CompileState) -> list[str]:
    state.require(ProviderKind.HUBSPOT)
    return [
        _step(step, node.data.text, prompts.CRM_LOOKUP_DEFAULT, prompts.CRM_LOOKUP_SUFFIX)
    ]


def _emit_webhook(node: WebhookNode, step: int, state: _CompileState) -> list[str]:
    if not node.data.webhook_url:
        return [_step(step, node.data.text, prompts.WEBHOOK_DEFAULT)]

    state.webhook_count += 1
    tool = webhook_tool_name(state.webhook_count)
    return [
        _step(
            step,
            node.data.text,
            prompts.WEBHOOK_WITH_TOOL_DEFAULT,
            prompts.WEBHOOK_WITH_TOOL_SUFFIX.format(tool=tool),
        )
    ]


_EMITTERS: dict[NodeType, Callable[..., list[str]]] = {
    NodeType.MESSAGE: _emit_message,
    NodeType.QUESTION: _emit_question,
    NodeType.CONDITION: _emit_condition,
    NodeType.TRANSFER: _emit_transfer,
    NodeType.END: _emit_end,
    NodeType.CHECK_AVAILABILITY: _emit_check_availability,
    NodeType.BOOK_APPOINTMENT: _emit_book_appointment,
    NodeType.CRM_LOOKUP: _emit_crm_lookup,
    NodeType.WEBHOOK: _emit_webhook,
}

# A new NodeType without an emitter fails at import, not at deploy time.
_missing = set(NodeType) - set(_EMITTERS)
if _missing:
    raise RuntimeError(f"No compiler emitter for node types: {sorted(t.value for t in _missing)}")


# ── Public API ───────────────────────────────────────────────────────


def compile_flow(nodes: list[FlowNode]) -> CompiledFlow:
    """Compile *nodes* into a numbered instruction script.

    Returns an empty script and no providers for an empty node list.
    """
    if not nodes:
        return CompiledFlow(script="")

    state = _CompileState()
    lines = [prompts.PREAMBLE, prompts.FLOW_HEADER]

    for step, node in enumerate(nodes, start=1):
        emit = _EMITTERS[NodeType(node.type)]
        lines.extend(emit(node, step, state))

    lines.append("")
    lines.append("GUIDELINES:")
    lines.extend(prompts.GUIDELINES)

    return CompiledFlow(
        script="\n".join(lines),
        required_providers=tuple(state.providers),
    )
