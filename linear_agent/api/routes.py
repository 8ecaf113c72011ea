"""FastAPI route definitions: Telegram webhook and health check."""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, BackgroundTasks, Header, HTTPException, Request

from linear_agent.api.schemas import HealthResponse, WebhookAck
from linear_agent.config import TELEGRAM_CHAT_ID, WEBHOOK_SECRET
from linear_agent.services.telegram import parse_update

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_handler(request: Request):
    """Retrieve the message handler built during the FastAPI lifespan."""
    handler = getattr(request.app.state, "handler", None)
    if handler is None:
        raise HTTPException(
            status_code=503,
            detail="The agent is still starting up. Please try again in a moment.",
        )
    return handler


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/webhook", response_model=WebhookAck)
async def telegram_webhook(
    http_request: Request,
    background_tasks: BackgroundTasks,
    x_telegram_bot_api_secret_token: str | None = Header(default=None),
):
    """Receive a Telegram update and process it after responding.

    Telegram retries updates that aren't answered within ~60s, and an agent
    turn can take longer than that, so the turn runs as a background task
    and the webhook answers immediately.

    Updates without text and messages from any chat other than the
    configured one are acknowledged and dropped.
    """
    request_id = getattr(http_request.state, "request_id", "?")

    if WEBHOOK_SECRET and not hmac.compare_digest(
        (x_telegram_bot_api_secret_token or "").encode(), WEBHOOK_SECRET.encode(),
    ):
        logger.warning("[%s] Webhook secret mismatch", request_id)
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        body = await http_request.json()
        message = parse_update(body) if isinstance(body, dict) else None
    except (ValueError, KeyError, TypeError, AttributeError):
        logger.warning("[%s] Ignoring malformed update", request_id)
        return WebhookAck()

    if message is None:
        return WebhookAck()

    if message.chat_id != TELEGRAM_CHAT_ID:
        logger.info("[%s] Ignoring message from unknown chat: %s", request_id, message.chat_id)
        return WebhookAck()

    handler = _get_handler(http_request)
    background_tasks.add_task(handler.handle, message)
    return WebhookAck(queued=True)
