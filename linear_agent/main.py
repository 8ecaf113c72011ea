"""CLI entry point for the Linear task agent.

A terminal chat loop against the same agent the Telegram webhook uses,
for testing and development.  For production, run the FastAPI server
(linear_agent/server.py).

Usage:
    uv run python -m linear_agent.main              # chat (quiet)
    uv run python -m linear_agent.main --debug      # chat, show API calls
    uv run python -m linear_agent.main --briefing   # print today's briefing and exit
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from linear_agent.agent import TaskAgent
from linear_agent.briefing import BriefingService
from linear_agent.config import LINEAR_TEAM_KEY, OWNER_NAME, STATE_PATH
from linear_agent.memory import ConversationMemory
from linear_agent.services.linear_client import LinearClient
from linear_agent.services.store import JsonStateStore

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("linear_agent").setLevel(logging.DEBUG if debug else logging.INFO)


def _print_briefing(linear: LinearClient, store: JsonStateStore) -> None:
    result = BriefingService(linear, store).run()
    print(f"\n[{result.source}]\n{result.text}\n")


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Linear task agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    parser.add_argument(
        "--briefing", action="store_true",
        help="Compile today's briefing, print it and exit",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    store = JsonStateStore(STATE_PATH)
    linear = LinearClient()

    if args.briefing:
        try:
            _print_briefing(linear, store)
        finally:
            linear.close()
        return

    print("\n" + "=" * 60)
    print("  Linear Task Agent - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'clear' to reset history.")
    print("=" * 60 + "\n")

    agent = TaskAgent(linear, ConversationMemory(store))

    while True:
        try:
            user_input = input(f"{OWNER_NAME}: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nBye.")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "q"):
            print("\nBye.")
            break

        if user_input.lower() in ("new", "clear"):
            agent.memory.clear()
            print("\n>> Conversation history cleared.\n")
            continue

        try:
            snapshot = asyncio.run(linear.fetch_snapshot(LINEAR_TEAM_KEY))
            reply = agent.run_turn(user_input, snapshot)
            print(f"\nAgent: {reply}\n")
        except KeyboardInterrupt:
            print("\n\nBye.")
            break
        except Exception as e:
            logger.exception("Error processing message")
            print(f"\nAgent: Something broke: {e}")
            print("       Try again, or type 'clear' to start fresh.\n")

    linear.close()


if __name__ == "__main__":
    main()
