"""Centralized configuration for the Linear task agent.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/linear-agent/<VARIABLE_NAME>``.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415 (lazy import)

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/linear-agent/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise OSError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /linear-agent/{name} (AWS)."
    )


# ── LLM ─────────────────────────────────────────────────────────────
ANTHROPIC_API_KEY: str = _require_env("ANTHROPIC_API_KEY")
MODEL_NAME: str = os.getenv("MODEL_NAME", "claude-opus-4-6")

# ── Linear ──────────────────────────────────────────────────────────
LINEAR_API_KEY: str = _require_env("LINEAR_API_KEY")
LINEAR_API_URL: str = "https://api.linear.app/graphql"
LINEAR_TEAM_KEY: str = os.getenv("LINEAR_TEAM_KEY", "YAK")

# ── Telegram ────────────────────────────────────────────────────────
TELEGRAM_BOT_TOKEN: str = _require_env("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_ID: str = _require_env("TELEGRAM_CHAT_ID")
WEBHOOK_SECRET: str | None = os.getenv("WEBHOOK_SECRET") or None

# ── Agent behaviour ─────────────────────────────────────────────────
OWNER_NAME: str = os.getenv("OWNER_NAME", "Zach")
ORG_NAME: str = os.getenv("ORG_NAME", "Yak Dev")
MAX_HISTORY_PAIRS: int = int(os.getenv("MAX_HISTORY_PAIRS", "20"))
MAX_TOOL_ITERATIONS: int = int(os.getenv("MAX_TOOL_ITERATIONS", "10"))

# ── Persisted state / daily briefing ────────────────────────────────
STATE_PATH: str = os.getenv("STATE_PATH", "data/state.json")
STALE_THRESHOLD: int = int(os.getenv("STALE_THRESHOLD", "3"))
BRIEFING_CRON: str = os.getenv("BRIEFING_CRON", "0 8 * * *")
SCHEDULER_TIMEZONE: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")
BRIEFING_ARCHIVE_DIR: str | None = os.getenv("BRIEFING_ARCHIVE_DIR") or None

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
