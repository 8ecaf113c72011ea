"""Pydantic schemas for the FastAPI endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class WebhookAck(BaseModel):
    """Body returned to Telegram for every accepted webhook call.

    Telegram only looks at the status code; a 200 stops it from retrying.
    """

    ok: bool = True
    queued: bool = Field(False, description="Whether the update was handed to the agent")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = "ok"
    service: str = "linear-agent"
