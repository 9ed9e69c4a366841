"""FastAPI router for agent endpoints."""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from agent.core import AgentLoop
from agent.exceptions import ApprovalRequired, ParseError, ProviderError, SecurityDenied
from agent.schemas import (
    AgentResponse,
    ApprovalPending,
    ChatRequest,
    ChatResponse,
    HealthStatus,
    MemorySaveRequest,
    MemorySearchResult,
    ToolDefinition,
)
from providers import AVAILABLE_PROVIDERS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["agent"])

DEFAULT_SESSION = "default"

AgentFactory = Callable[[str], AgentLoop]

# Initialized in main.py
_agent_factory: Optional[AgentFactory] = None
_sessions: Dict[str, AgentLoop] = {}
_locks: Dict[str, asyncio.Lock] = {}
_loaded: Set[str] = set()


class ResumeRequest(BaseModel):
    """Request schema for resuming a suspended turn."""

    session_id: Optional[str] = None
    verbose: bool = False


def initialize_router(factory: AgentFactory) -> None:
    """Install the factory that builds one agent per session."""
    global _agent_factory
    _agent_factory = factory
    _sessions.clear()
    _locks.clear()
    _loaded.clear()


async def shutdown_router() -> None:
    """Close session stores and forget all sessions."""
    for agent in _sessions.values():
        close = getattr(agent.session.store, "close", None)
        if close is not None:
            await close()
    _sessions.clear()
    _locks.clear()
    _loaded.clear()


async def get_agent(session_id: Optional[str] = None) -> AgentLoop:
    """Get or create the agent for a session.

    The agent is registered before its persisted state is loaded, so
    concurrent first requests share one agent and wait for the load.
    """
    session_id = session_id or DEFAULT_SESSION

    if session_id not in _sessions:
        if _agent_factory is None:
            raise HTTPException(status_code=503, detail="Agent not initialized")

        _sessions[session_id] = _agent_factory(session_id)
        _locks[session_id] = asyncio.Lock()
        logger.info(f"Created session {session_id}")

    agent = _sessions[session_id]
    if session_id not in _loaded:
        async with _locks[session_id]:
            if session_id not in _loaded:
                await agent.session.load()
                _loaded.add(session_id)

    return agent


def session_lock(agent: AgentLoop) -> asyncio.Lock:
    """Lock serializing all state changes of one session."""
    return _locks[agent.session.session_id]


async def _run_turn(
    session_id: str,
    turn: Callable[[], Awaitable[AgentResponse]],
    verbose: bool,
) -> Union[ChatResponse, JSONResponse]:
    """Run one agent turn, mapping agent errors to HTTP responses."""
    try:
        async with _locks[session_id]:
            result = await turn()
    except ApprovalRequired as e:
        pending = ApprovalPending(session_id=session_id, pending=e.pending)
        return JSONResponse(status_code=202, content=pending.model_dump())
    except SecurityDenied as e:
        raise HTTPException(status_code=403, detail=e.reason)
    except ProviderError as e:
        logger.error(f"Provider error in session {session_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return ChatResponse(
        response=result.content,
        tool_calls=result.tool_calls if verbose else [],
        session_id=session_id,
    )


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    """Check whether the agent can serve requests.

    Returns:
        Health status including the default provider and tools
    """
    if _agent_factory is None:
        return HealthStatus(status="unhealthy", provider="", tools_available=[], sessions=0)

    agent = await get_agent(DEFAULT_SESSION)
    return HealthStatus(
        status="healthy",
        provider=agent.provider.name,
        tools_available=[tool.name for tool in agent.get_tools()],
        sessions=len(_sessions),
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest) -> Union[ChatResponse, JSONResponse]:
    """Send a message and wait for the final answer.

    Args:
        request: Chat request with message and session

    Returns:
        The answer, or 202 with pending action ids when approval is needed
    """
    session_id = request.session_id or DEFAULT_SESSION
    agent = await get_agent(session_id)
    logger.info(f"Chat request [{session_id}]: {request.message[:100]}")
    return await _run_turn(session_id, lambda: agent.chat_verbose(request.message), request.verbose)


@router.post("/chat/resume", response_model=ChatResponse)
async def resume_chat(request: ResumeRequest) -> Union[ChatResponse, JSONResponse]:
    """Continue a turn after its pending actions were approved or denied."""
    session_id = request.session_id or DEFAULT_SESSION
    agent = await get_agent(session_id)
    if not agent.awaiting_approval:
        raise HTTPException(status_code=409, detail="No turn is waiting for approval")
    return await _run_turn(session_id, agent.resume, request.verbose)


@router.get("/approvals")
async def list_approvals(
    session_id: Optional[str] = None,
    agent: AgentLoop = Depends(get_agent),
) -> Dict[str, Any]:
    return {"session_id": session_id or DEFAULT_SESSION, "pending": agent.pending_approvals()}

@router.post("/approvals/{action_id}/approve")
async def approve_action(action_id: str, agent: AgentLoop = Depends(get_agent)) -> Dict[str, str]:
    async with session_lock(agent):
        try:
            agent.approve(action_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"No pending action with ID: {action_id}")
    return {"status": "approved", "action_id": action_id}


@router.post("/approvals/{action_id}/deny")
async def deny_action(action_id: str, agent: AgentLoop = Depends(get_agent)) -> Dict[str, str]:
    async with session_lock(agent):
        try:
            agent.deny(action_id)
        except KeyError:
            raise HTTPException(status_code=404, detail=f"No pending action with ID: {action_id}")
    return {"status": "denied", "action_id": action_id}


@router.post("/memory")
async def save_memory(request: MemorySaveRequest) -> Dict[str, str]:
    """Store a long-term memory for a session."""
    agent = await get_agent(request.session_id)
    async with session_lock(agent):
        memory_id = await agent.memory.save(request.content, request.metadata)
    return {"id": memory_id}


@router.get("/memory/search", response_model=List[MemorySearchResult])
async def search_memory(
    q: str = Query(min_length=1),
    limit: int = Query(default=5, ge=1, le=100),
    agent: AgentLoop = Depends(get_agent),
) -> List[MemorySearchResult]:
    """Rank a session's memories against a query."""
    # Recall updates access counts
    async with session_lock(agent):
        return await agent.memory.recall(q, limit)


@router.delete("/memory/{memory_id}")
async def delete_memory(memory_id: str, agent: AgentLoop = Depends(get_agent)) -> Dict[str, str]:
    async with session_lock(agent):
        deleted = await agent.memory.delete(memory_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Memory not found")
    return {"status": "deleted", "id": memory_id}


@router.get("/tools")
async def list_tools(agent: AgentLoop = Depends(get_agent)) -> Dict[str, List[ToolDefinition]]:
    """List the tools the agent can call."""
    return {"tools": agent.get_tools()}


@router.get("/providers")
async def list_providers() -> Dict[str, List[str]]:
    return {"providers": list(AVAILABLE_PROVIDERS)}


@router.get("/history")
async def get_history(
    session_id: Optional[str] = None,
    agent: AgentLoop = Depends(get_agent),
) -> Dict[str, Any]:
    return {
        "session_id": session_id or DEFAULT_SESSION,
        "messages": [msg.model_dump(mode="json") for msg in agent.get_history()],
    }


@router.delete("/history")
async def clear_history(agent: AgentLoop = Depends(get_agent)) -> Dict[str, str]:
    async with session_lock(agent):
        agent.clear_history()
        await agent.conversation.save()
    return {"status": "cleared"}


@router.get("/config")
async def get_config(agent: AgentLoop = Depends(get_agent)) -> Dict[str, Any]:
    return agent.get_config()


@router.put("/config")
async def update_config(
    body: Dict[str, Any],
    agent: AgentLoop = Depends(get_agent),
) -> Dict[str, Any]:
    """Replace the session's agent settings."""
    async with session_lock(agent):
        try:
            agent.update_config(json.dumps(body))
        except ParseError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return agent.get_config()


@router.put("/security")
async def update_security(
    body: Dict[str, Any],
    agent: AgentLoop = Depends(get_agent),
) -> Dict[str, Any]:
    """Replace the session's security policy."""
    async with session_lock(agent):
        try:
            agent.update_security_config(json.dumps(body))
        except ParseError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return agent.security.config.model_dump(mode="json")
