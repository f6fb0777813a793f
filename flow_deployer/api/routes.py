"""FastAPI route definitions for the flow deployer API.

Authentication is handled upstream; the authenticated caller's client
scope arrives in the ``X-Client-ID`` header and every flow lookup is
restricted to it.
"""

from __future__ import annotations

import asyncio
import logging
import threading

from fastapi import APIRouter, HTTPException, Request

from flow_deployer.api.schemas import (
    DeleteResponse,
    DeployResponse,
    FlowCreateRequest,
    FlowUpdateRequest,
    HealthResponse,
    PreviewResponse,
    ProviderToolsResponse,
)
from flow_deployer.deployer import FlowDeployer
from flow_deployer.errors import (
    AgentNotLinked,
    FlowNotFound,
    PersistenceConflict,
    RemotePushFailed,
)
from flow_deployer.models import Flow, ProviderKind
from flow_deployer.services.flow_store import FlowStore
from flow_deployer.tools.templates import ClientContext

logger = logging.getLogger(__name__)

router = APIRouter()

_GENERIC_ERROR = "An unexpected error occurred"


def _get_store(request: Request) -> FlowStore:
    """Retrieve the flow store created during the FastAPI lifespan."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(
            status_code=503,
            detail="The service is still starting up. Please try again in a moment.",
        )
    return store


def _get_deployer(request: Request) -> FlowDeployer:
    """Retrieve the deployer created during the FastAPI lifespan."""
    deployer = getattr(request.app.state, "deployer", None)
    if deployer is None:
        raise HTTPException(
            status_code=503,
            detail="The service is still starting up. Please try again in a moment.",
        )
    return deployer


def _get_client_id(request: Request) -> str:
    client_id = request.headers.get("X-Client-ID", "").strip()
    if not client_id:
        raise HTTPException(status_code=401, detail="Missing client scope")
    return client_id


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "?")


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.get("/conversation-flows", response_model=list[Flow])
async def list_flows(http_request: Request):
    """List the caller's flows, newest first."""
    client_id = _get_client_id(http_request)
    return _get_store(http_request).list_flows(client_id)


@router.post("/conversation-flows", response_model=Flow, status_code=201)
async def create_flow(request: FlowCreateRequest, http_request: Request):
    """Create a flow.  New flows start inactive at version 1."""
    client_id = _get_client_id(http_request)
    return _get_store(http_request).create_flow(
        client_id,
        request.name,
        agent_id=request.agent_id,
        nodes=request.nodes,
        edges=request.edges,
    )


@router.get("/conversation-flows/{flow_id}", response_model=Flow)
async def get_flow(flow_id: str, http_request: Request):
    client_id = _get_client_id(http_request)
    flow = _get_store(http_request).get_flow(flow_id, client_id)
    if flow is None:
        raise HTTPException(status_code=404, detail="Flow not found")
    return flow


@router.patch("/conversation-flows/{flow_id}", response_model=Flow)
async def update_flow(flow_id: str, request: FlowUpdateRequest, http_request: Request):
    """Edit a flow's name, agent link, nodes or edges.

    Editing never changes ``version`` or ``is_active``; only a deploy does.
    """
    client_id = _get_client_id(http_request)
    changes = request.model_dump(exclude_unset=True)
    if "nodes" in changes:
        changes["nodes"] = request.nodes
    flow = _get_store(http_request).update_flow(flow_id, client_id, changes)
    if flow is None:
        raise HTTPException(status_code=404, detail="Flow not found")
    return flow


@router.delete("/conversation-flows/{flow_id}", response_model=DeleteResponse)
async def delete_flow(flow_id: str, http_request: Request):
    client_id = _get_client_id(http_request)
    if not _get_store(http_request).delete_flow(flow_id, client_id):
        raise HTTPException(status_code=404, detail="Flow not found")
    return DeleteResponse()


@router.post("/conversation-flows/{flow_id}/preview", response_model=PreviewResponse)
async def preview_flow(flow_id: str, http_request: Request):
    """Compile a stored flow without deploying it."""
    client_id = _get_client_id(http_request)
    flow = _get_store(http_request).get_flow(flow_id, client_id)
    if flow is None:
        raise HTTPException(status_code=404, detail="Flow not found")

    preview = _get_deployer(http_request).preview(flow, ClientContext.for_client(client_id))
    return PreviewResponse(
        prompt_preview=preview.script,
        tools=preview.tool_names,
        required_providers=preview.required_providers,
    )


@router.post("/conversation-flows/{flow_id}/deploy", response_model=DeployResponse)
async def deploy_flow(flow_id: str, http_request: Request):
    """Compile the flow and push it to its linked agent.

    **Implementation note**: the deploy makes blocking HTTP calls, so it
    runs in a worker thread via ``asyncio.to_thread``.  If this request is
    cancelled first, the deploy's cancel event is set so the worker stops
    before issuing the push.
    """
    deployer = _get_deployer(http_request)
    client_id = _get_client_id(http_request)
    request_id = _request_id(http_request)
    cancel_event = threading.Event()

    try:
        result = await asyncio.to_thread(
            deployer.deploy,
            flow_id,
            ClientContext.for_client(client_id),
            cancel_event,
        )
    except asyncio.CancelledError:
        cancel_event.set()
        logger.warning("[%s] Deploy of flow %s cancelled by client", request_id, flow_id)
        raise
    except FlowNotFound as e:
        raise HTTPException(status_code=404, detail="Flow not found") from e
    except AgentNotLinked as e:
        raise HTTPException(status_code=400, detail="Flow must be linked to an agent") from e
    except PersistenceConflict as e:
        logger.warning("[%s] %s", request_id, e)
        raise HTTPException(
            status_code=409,
            detail="The flow changed during deployment. Please deploy again.",
        ) from e
    except RemotePushFailed as e:
        # Underlying detail stays in the server log.
        logger.error("[%s] Deploy of flow %s failed: %s", request_id, flow_id, e)
        raise HTTPException(status_code=502, detail="Failed to deploy flow") from e
    except Exception as e:
        logger.exception("[%s] Error deploying flow %s", request_id, flow_id)
        raise HTTPException(status_code=500, detail=_GENERIC_ERROR) from e

    return DeployResponse(
        prompt_preview=result.prompt_preview,
        tools_registered=result.tools_registered,
        version=result.version,
    )


@router.post("/agents/{agent_id}/tools/{provider}", response_model=ProviderToolsResponse)
async def register_provider_tools(agent_id: str, provider: ProviderKind, http_request: Request):
    """Add a connected provider's tools to an agent (called after OAuth connect)."""
    deployer = _get_deployer(http_request)
    client_id = _get_client_id(http_request)
    try:
        names = await asyncio.to_thread(
            deployer.register_provider_tools,
            agent_id,
            provider,
            ClientContext.for_client(client_id),
        )
    except RemotePushFailed as e:
        logger.error("[%s] Tool registration failed: %s", _request_id(http_request), e)
        raise HTTPException(status_code=502, detail="Failed to update agent tools") from e
    return ProviderToolsResponse(provider=provider, tools=names)


@router.delete("/agents/{agent_id}/tools/{provider}", response_model=ProviderToolsResponse)
async def unregister_provider_tools(agent_id: str, provider: ProviderKind, http_request: Request):
    """Remove a disconnected provider's tools from an agent."""
    deployer = _get_deployer(http_request)
    _get_client_id(http_request)
    try:
        names = await asyncio.to_thread(deployer.unregister_provider_tools, agent_id, provider)
    except RemotePushFailed as e:
        logger.error("[%s] Tool removal failed: %s", _request_id(http_request), e)
        raise HTTPException(status_code=502, detail="Failed to update agent tools") from e
    return ProviderToolsResponse(provider=provider, tools=names)
