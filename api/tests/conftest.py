"""Test configuration and fixtures for API tests."""

import asyncio
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from agent.config import AgentConfig, MemoryConfig
from agent.core import AgentLoop
from api.main import app
from api.router import initialize_router, shutdown_router
from security import SecurityConfig
from storage import InMemoryStore


class ScriptedProvider:
    """Provider returning canned replies in order."""

    name = "scripted"

    def __init__(self, responses: List[str], fallback: str = "Done."):
        self.responses = list(responses)
        self.fallback = fallback

    async def chat(self, messages, options):
        if self.responses:
            return self.responses.pop(0)
        return self.fallback


@pytest.fixture
def make_client():
    """Build a TestClient whose sessions use a scripted provider.

    The application lifespan is not entered, so nothing touches the
    on-disk database.
    """

    def _make(
        responses: Optional[List[str]] = None,
        security: Optional[Dict[str, Any]] = None,
        provider: Any = None,
    ) -> TestClient:
        def factory(session_id: str) -> AgentLoop:
            return AgentLoop.create(
                config=AgentConfig(memory=MemoryConfig(embedding_provider="local")),
                security_config=SecurityConfig(**(security or {})),
                session_id=session_id,
                provider=provider or ScriptedProvider(responses or []),
                store=InMemoryStore(),
            )

        initialize_router(factory)
        return TestClient(app)

    yield _make

    asyncio.run(shutdown_router())


@pytest.fixture
def client(make_client):
    """Client whose agent answers every message with plain text."""
    return make_client(["Hello from the agent."])
