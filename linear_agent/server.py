"""FastAPI server for the Linear task agent.

Run with:
    uv run uvicorn linear_agent.server:app --host 0.0.0.0 --port 8000

Then point the Telegram webhook at ``https://<host>/webhook`` (passing
``secret_token`` when ``WEBHOOK_SECRET`` is set).
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse

from linear_agent.agent import TaskAgent
from linear_agent.api.routes import router
from linear_agent.briefing import BriefingService
from linear_agent.config import ORG_NAME, SERVER_HOST, SERVER_PORT, STATE_PATH
from linear_agent.handlers import MessageHandler
from linear_agent.memory import ConversationMemory
from linear_agent.scheduler import BriefingScheduler
from linear_agent.services.linear_client import LinearClient
from linear_agent.services.metrics import metrics
from linear_agent.services.store import JsonStateStore
from linear_agent.services.telegram import TelegramClient

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Build the clients, the agent graph and the scheduler once."""
    store = JsonStateStore(STATE_PATH)
    linear = LinearClient()
    telegram = TelegramClient()
    agent = TaskAgent(linear, ConversationMemory(store))
    briefing = BriefingService(linear, store)

    application.state.handler = MessageHandler(agent, linear, telegram, briefing)
    scheduler = BriefingScheduler(briefing, telegram)
    scheduler.start()
    logger.info("Agent ready (state: %s).", STATE_PATH)
    yield
    scheduler.stop()
    metrics.flush()
    linear.close()
    telegram.close()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Linear Task Agent",
    description="Telegram chat agent that keeps Linear up to date and sends a daily briefing.",
    version="1.0.0",
    lifespan=lifespan,
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info("[%s] %s %s", request_id, request.method, request.url.path)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


app.include_router(router)


@app.get("/", response_class=PlainTextResponse)
async def root(request: Request):
    """Status page with the webhook URL to register."""
    base = str(request.base_url).rstrip("/")
    return f"{ORG_NAME} agent is running.\n\nSet your Telegram webhook to: POST {base}/webhook"


if __name__ == "__main__":
    logger.info("Starting Linear agent server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run("linear_agent.server:app", host=SERVER_HOST, port=SERVER_PORT)
