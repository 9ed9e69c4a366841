"""FastAPI application entry point for the agent API."""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agent.config import AgentConfig
from agent.core import AgentLoop
from api.router import initialize_router, router, shutdown_router
from security import SecurityConfig
from storage import SQLiteStore

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

DATA_DIR = os.getenv("AGENT_DATA_DIR", "data")


def create_session_agent(session_id: str) -> AgentLoop:
    """Build an isolated agent for one session.

    Each session gets fresh settings, its own security state and its own
    namespace in the shared SQLite database.
    """
    store = SQLiteStore(os.path.join(DATA_DIR, "agent.db"), namespace=session_id)
    return AgentLoop.create(
        config=AgentConfig(),
        security_config=SecurityConfig(),
        session_id=session_id,
        store=store,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown."""
    logger.info("Starting agent API...")
    os.makedirs(DATA_DIR, exist_ok=True)
    initialize_router(create_session_agent)
    logger.info("Agent API started successfully")

    yield

    logger.info("Shutting down agent API...")
    await shutdown_router()
    logger.info("Agent API shut down successfully")


# Create FastAPI application
app = FastAPI(
    title="Tool-Use Agent API",
    description="Conversational agent with tool calling, long-term memory and a security gate",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Add CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/ping")
async def ping():
    """Simple ping endpoint for basic health checks."""
    return {"status": "pong", "message": "Agent API is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=os.getenv("API_HOST", "127.0.0.1"),
        port=int(os.getenv("API_PORT", "8000")),
        reload=False,
        log_level="info",
        access_log=True,
    )
