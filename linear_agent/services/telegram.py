"""Telegram Bot API helpers: update parsing, message sending, typing indicator.

Sends are best-effort.  A failed send is logged and counted in metrics but
never raised, because the caller is usually already on an error path and
has nobody else to report to.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from linear_agent.config import TELEGRAM_BOT_TOKEN
from linear_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

API_BASE = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4096
REQUEST_TIMEOUT_SECONDS = 15.0


@dataclass(frozen=True)
class InboundMessage:
    """The parts of a Telegram update the agent cares about."""

    chat_id: str
    text: str
    message_id: int | None = None
    first_name: str = "Unknown"


def parse_update(body: dict[str, Any]) -> InboundMessage | None:
    """Extract a text message from a webhook update.

    Returns ``None`` for updates without usable text (stickers, joins,
    callback queries, …).
    """
    message = body.get("message") or body.get("edited_message")
    if not message or not message.get("text"):
        return None
    return InboundMessage(
        chat_id=str(message["chat"]["id"]),
        text=message["text"],
        message_id=message.get("message_id"),
        first_name=(message.get("from") or {}).get("first_name") or "Unknown",
    )


def split_message(text: str, max_len: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split *text* into chunks of at most *max_len* characters.

    Prefers to cut at the last newline inside the chunk, as long as that
    newline sits in the back half; otherwise cuts hard at *max_len*.
    Leading whitespace of each following chunk is dropped.
    """
    if len(text) <= max_len:
        return [text]
    chunks: list[str] = []
    remaining = text
    while remaining:
        if len(remaining) <= max_len:
            chunks.append(remaining)
            break
        split_at = remaining.rfind("\n", 0, max_len + 1)
        if split_at < max_len * 0.5:
            split_at = max_len
        chunks.append(remaining[:split_at])
        remaining = remaining[split_at:].lstrip()
    return chunks


class TelegramClient:
    """Minimal Bot API client over httpx."""

    def __init__(self, token: str | None = None, base_url: str = API_BASE):
        self._token = token or TELEGRAM_BOT_TOKEN
        self._client = httpx.Client(
            base_url=f"{base_url}/bot{self._token}",
            timeout=REQUEST_TIMEOUT_SECONDS,
        )

    def _call(self, method: str, payload: dict[str, Any]) -> bool:
        try:
            with metrics.timed("telegram", method):
                response = self._client.post(f"/{method}", json=payload)
                response.raise_for_status()
            return True
        except httpx.HTTPError as exc:
            logger.warning("Telegram %s failed: %s", method, exc)
            return False

    def send_message(self, chat_id: str, text: str) -> bool:
        """Send *text*, split into API-sized chunks.  Returns ``True`` if all
        chunks were accepted."""
        ok = True
        for chunk in split_message(text):
            ok = self._call("sendMessage", {"chat_id": chat_id, "text": chunk}) and ok
        return ok

    def send_typing(self, chat_id: str) -> bool:
        """Show the "typing…" indicator in the chat."""
        return self._call("sendChatAction", {"chat_id": chat_id, "action": "typing"})

    def close(self) -> None:
        self._client.close()
