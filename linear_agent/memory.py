"""Rolling conversation history kept in the state store.

Only the human-readable side of each turn is stored: the user's text and
the agent's final reply.  Tool calls and tool results never leave the turn
that produced them.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from linear_agent.config import MAX_HISTORY_PAIRS
from linear_agent.models import ConversationTurn
from linear_agent.services.store import JsonStateStore

logger = logging.getLogger(__name__)

HISTORY_KEY = "conversation_history"


class ConversationMemory:
    """FIFO window of the last ``max_pairs`` user/assistant exchanges."""

    def __init__(
        self,
        store: JsonStateStore,
        max_pairs: int = MAX_HISTORY_PAIRS,
        key: str = HISTORY_KEY,
    ) -> None:
        if max_pairs < 1:
            raise ValueError("max_pairs must be at least 1")
        self._store = store
        self._max_pairs = max_pairs
        self._key = key

    @property
    def max_pairs(self) -> int:
        return self._max_pairs

    def load(self) -> list[ConversationTurn]:
        """Return stored turns oldest-first; anything unreadable counts as empty."""
        raw = self._store.get(self._key)
        if not raw:
            return []
        if not isinstance(raw, list):
            logger.warning("Conversation history has unexpected shape, starting fresh")
            return []
        try:
            return [ConversationTurn.model_validate(entry) for entry in raw]
        except ValidationError:
            logger.warning("Conversation history is corrupt, starting fresh")
            return []

    def append(self, user_text: str, assistant_text: str) -> list[ConversationTurn]:
        """Add one exchange, drop the oldest beyond the window, persist."""
        turns = [
            *self.load(),
            ConversationTurn(role="user", content=user_text),
            ConversationTurn(role="assistant", content=assistant_text),
        ]
        trimmed = turns[-(self._max_pairs * 2):]
        self._store.put(self._key, [t.model_dump() for t in trimmed])
        return trimmed

    def clear(self) -> None:
        self._store.delete(self._key)
