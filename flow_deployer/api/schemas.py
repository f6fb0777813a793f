"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from flow_deployer.models import FlowNode, ProviderKind, validate_unique_node_ids


class FlowCreateRequest(BaseModel):
    """New flow from the flow editor."""

    name: str = Field(..., max_length=200, description="Display name of the flow")
    agent_id: str | None = Field(None, description="Remote agent the flow deploys to")
    nodes: list[FlowNode] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, name: str) -> str:
        name = name.strip()
        if not name:
            raise ValueError("Flow name is required")
        return name

    @field_validator("nodes")
    @classmethod
    def _unique_node_ids(cls, nodes: list[FlowNode]) -> list[FlowNode]:
        return validate_unique_node_ids(nodes)


class FlowUpdateRequest(BaseModel):
    """Partial update.  Unknown keys (``id``, ``version``, …) are ignored."""

    name: str | None = Field(None, max_length=200)
    agent_id: str | None = None
    nodes: list[FlowNode] | None = None
    edges: list[dict[str, Any]] | None = None

    # Only agent_id may be cleared; an explicit null on the others is rejected.
    @field_validator("name", "nodes", "edges")
    @classmethod
    def _not_null(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return value

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, name: str) -> str:
        if not name.strip():
            raise ValueError("Flow name cannot be blank")
        return name.strip()

    @field_validator("nodes")
    @classmethod
    def _unique_node_ids(cls, nodes: list[FlowNode]) -> list[FlowNode]:
        return validate_unique_node_ids(nodes)


class DeployResponse(BaseModel):
    """Result of a successful deploy."""

    success: bool = True
    prompt_preview: str = Field(..., description="The instruction script that was pushed")
    tools_registered: list[str] = Field(..., description="Flow tool names pushed to the agent")
    version: int = Field(..., description="Flow version after the deploy")


class PreviewResponse(BaseModel):
    """A compiled flow that was not deployed."""

    prompt_preview: str
    tools: list[str]
    required_providers: list[ProviderKind]


class ProviderToolsResponse(BaseModel):
    """Tools added to or removed from an agent for one provider."""

    provider: ProviderKind
    tools: list[str]


class DeleteResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "flow-deployer"
