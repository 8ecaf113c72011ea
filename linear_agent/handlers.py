"""Processes one inbound chat message: bot commands or an agent turn.

Runs as a FastAPI background task after the webhook has already answered
Telegram, so nothing here may raise.  Any failure becomes a short message
in the chat.
"""

from __future__ import annotations

import asyncio
import logging

from linear_agent.agent import TaskAgent
from linear_agent.briefing import BriefingService, send_daily_briefing
from linear_agent.config import LINEAR_TEAM_KEY, ORG_NAME
from linear_agent.services.linear_client import LinearClient
from linear_agent.services.telegram import InboundMessage, TelegramClient

logger = logging.getLogger(__name__)

HELP_TEXT = "\n".join(
    [
        "COMMANDS:",
        "/briefing - Get your daily briefing now",
        "/clear - Reset conversation history",
        "/help - This message",
        "",
        "Or just text me naturally:",
        '- "Mark YAK-42 as done"',
        '- "Add a blocked label to YAK-15"',
        '- "Create a task: fix login bug, high priority"',
        '- "Assign YAK-20 to Sam"',
        '- "Create a new project called Client Portal"',
        '- "What should I work on today?"',
    ]
)


def _start_text(chat_id: str) -> str:
    return (
        f"{ORG_NAME} agent is live.\n\n"
        f"Your chat ID: {chat_id}\n\n"
        "Just text me like normal:\n"
        '- "Finished the auth flow, YAK-42 is done"\n'
        '- "Block YAK-15, waiting on client assets"\n'
        '- "Create a new task: set up staging environment"\n'
        "- \"What's on my plate?\"\n\n"
        "I'll handle the Linear updates for you."
    )


class MessageHandler:
    """Wires the Linear snapshot, the agent and Telegram together for one message."""

    def __init__(
        self,
        agent: TaskAgent,
        linear: LinearClient,
        telegram: TelegramClient,
        briefing: BriefingService,
        team_key: str = LINEAR_TEAM_KEY,
    ) -> None:
        self._agent = agent
        self._linear = linear
        self._telegram = telegram
        self._briefing = briefing
        self._team_key = team_key

    async def _send(self, chat_id: str, text: str) -> None:
        await asyncio.to_thread(self._telegram.send_message, chat_id, text)

    async def handle(self, message: InboundMessage) -> None:
        try:
            if message.text.startswith("/"):
                await self.handle_command(message)
                return

            await asyncio.to_thread(self._telegram.send_typing, message.chat_id)
            snapshot = await self._linear.fetch_snapshot(self._team_key)
            reply = await asyncio.to_thread(self._agent.run_turn, message.text, snapshot)
            await self._send(message.chat_id, reply)
        except Exception as exc:
            logger.exception("Error processing message %s", message.message_id)
            await self._send(
                message.chat_id,
                f"Something broke: {exc}\n\nTry again or check the server logs.",
            )

    async def handle_command(self, message: InboundMessage) -> None:
        command = message.text.split()[0].lower()
        # "/help@MyBot" in group chats
        command = command.split("@", 1)[0]

        if command == "/start":
            await self._send(message.chat_id, _start_text(message.chat_id))
        elif command == "/briefing":
            await self._send(message.chat_id, "Generating your briefing...")
            await send_daily_briefing(self._briefing, self._telegram, message.chat_id)
        elif command == "/clear":
            await asyncio.to_thread(self._agent.memory.clear)
            await self._send(message.chat_id, "Conversation history cleared. Fresh start.")
        elif command == "/help":
            await self._send(message.chat_id, HELP_TEXT)
        else:
            await self._send(
                message.chat_id,
                f"Unknown command: {command}\n\nTry /help for available commands, or just text me naturally.",
            )
