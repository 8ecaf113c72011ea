"""Daily briefing with change-detection caching.

Each run fingerprints the active issues and compares the hash with the one
stored by the previous run:

* **changed (or first run)**: ask Claude for a fresh briefing, store it
  with ``unchanged_count = 0``.
* **unchanged**: skip Claude, bump ``unchanged_count`` and resend the cached
  briefing, or ``STALE_MESSAGE`` once the count reaches the threshold.  The
  cached briefing text is kept either way; the stale message is never
  stored.
* **no active issues**: send ``NO_ISSUES_MESSAGE`` and leave the cache alone.

The fingerprint only covers fields that matter for planning (status,
priority, assignee, project, labels, due date).  Editing a description
does not trigger a new briefing.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage
from pydantic import ValidationError

from linear_agent.config import (
    ANTHROPIC_API_KEY,
    BRIEFING_ARCHIVE_DIR,
    LINEAR_TEAM_KEY,
    MODEL_NAME,
    STALE_THRESHOLD,
)
from linear_agent.models import Issue, SummaryCacheRecord
from linear_agent.prompts import get_briefing_prompt
from linear_agent.services.linear_client import LinearClient
from linear_agent.services.metrics import metrics
from linear_agent.services.store import JsonStateStore
from linear_agent.services.telegram import TelegramClient

logger = logging.getLogger(__name__)

CACHE_KEY = "briefing_cache"
NO_ISSUES_MESSAGE = "No active issues in Linear. Either you're crushing it or something is wrong."
STALE_MESSAGE = "SNAP OUT OF IT, LOCK IN!"


# ── Fingerprint ──────────────────────────────────────────────────────


def normalize_issue(issue: Issue) -> dict[str, Any]:
    return {
        "id": issue.identifier,
        "status": issue.state.name if issue.state else None,
        "priority": issue.priority,
        "assignee": issue.assignee.name if issue.assignee else None,
        "project": issue.project.name if issue.project else None,
        "labels": sorted(label.name for label in issue.labels),
        "dueDate": issue.due_date.isoformat() if issue.due_date else None,
    }


def fingerprint_issues(issues: Iterable[Issue]) -> str:
    """SHA-256 over the normalised issues, independent of input order."""
    normalized = sorted((normalize_issue(i) for i in issues), key=lambda n: n["id"])
    canonical = json.dumps(normalized, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ── Cache record ─────────────────────────────────────────────────────


class BriefingCache:
    """Reads and writes the single :class:`SummaryCacheRecord`."""

    def __init__(self, store: JsonStateStore, key: str = CACHE_KEY) -> None:
        self._store = store
        self._key = key

    def load(self) -> SummaryCacheRecord | None:
        raw = self._store.get(self._key)
        if raw is None:
            return None
        try:
            return SummaryCacheRecord.model_validate(raw)
        except ValidationError:
            logger.warning("Briefing cache record is corrupt, ignoring it")
            return None

    def save(self, record: SummaryCacheRecord) -> None:
        self._store.put(self._key, record.model_dump(mode="json"))


@dataclass(frozen=True)
class BriefingResult:
    text: str
    source: str  # "empty" | "generated" | "cached" | "stale"
    unchanged_count: int = 0
    fingerprint: str | None = None


# ── Generation ───────────────────────────────────────────────────────


def _build_briefing_llm() -> ChatAnthropic:
    """Claude without tools, for one-shot briefing generation."""
    return ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.3,
        max_tokens=1024,
    )


def generate_briefing(issues: list[Issue], llm=None) -> str:
    """Ask Claude for a fresh briefing over *issues*."""
    llm = llm or _build_briefing_llm()
    with metrics.timed("anthropic", "briefing_invoke"):
        response = llm.invoke([HumanMessage(content=get_briefing_prompt(issues))])
    content = response.content
    if isinstance(content, str):
        text = content
    else:
        text = "\n".join(
            b.get("text", "") for b in content if isinstance(b, dict) and b.get("type") == "text"
        )
    text = text.strip()
    if not text:
        raise ValueError("Claude returned an empty briefing")
    return text


# ── Service ──────────────────────────────────────────────────────────


class BriefingService:
    """Fetches active issues and decides what today's briefing says."""

    def __init__(
        self,
        client: LinearClient,
        store: JsonStateStore,
        *,
        llm=None,
        team_key: str = LINEAR_TEAM_KEY,
        stale_threshold: int = STALE_THRESHOLD,
        archive_dir: str | Path | None = BRIEFING_ARCHIVE_DIR,
    ) -> None:
        self._client = client
        self._cache = BriefingCache(store)
        self._llm = llm
        self._team_key = team_key
        self._stale_threshold = stale_threshold
        self._archive_dir = Path(archive_dir) if archive_dir else None

    @property
    def cache(self) -> BriefingCache:
        return self._cache

    def fetch_issues(self) -> list[Issue]:
        return self._client.fetch_active_issues(self._team_key)

    def compile(self, issues: list[Issue], today: date | None = None) -> BriefingResult:
        """Apply the cache decision to *issues* and return what to send."""
        today = today or datetime.now(UTC).date()

        if not issues:
            logger.info("[Briefing] No active issues, skipping cache")
            result = BriefingResult(text=NO_ISSUES_MESSAGE, source="empty")
            self._archive(result.text, today)
            return result

        current = fingerprint_issues(issues)
        record = self._cache.load()

        if record is not None and record.fingerprint == current:
            unchanged = record.unchanged_count + 1
            logger.info("[Briefing] Tasks unchanged for %d run(s). Skipping Claude.", unchanged)
            if unchanged >= self._stale_threshold:
                logger.info("[Briefing] Stale for %d runs, sending the wake-up call", unchanged)
                result = BriefingResult(STALE_MESSAGE, "stale", unchanged, current)
            else:
                result = BriefingResult(record.cached_text, "cached", unchanged, current)
            self._cache.save(
                SummaryCacheRecord(
                    fingerprint=current,
                    cached_text=record.cached_text,
                    unchanged_count=unchanged,
                    last_run=today,
                )
            )
            self._archive(result.text, today)
            return result

        logger.info(
            "[Briefing] %s Generating a fresh briefing…",
            "Tasks changed since last run." if record else "No cache found.",
        )
        text = generate_briefing(issues, self._llm)
        self._cache.save(
            SummaryCacheRecord(fingerprint=current, cached_text=text, unchanged_count=0, last_run=today)
        )
        result = BriefingResult(text, "generated", 0, current)
        self._archive(result.text, today)
        return result

    def run(self, today: date | None = None) -> BriefingResult:
        return self.compile(self.fetch_issues(), today)

    def _archive(self, text: str, today: date) -> None:
        """Write ``latest.txt`` and ``archive/<date>.txt`` when archiving is on."""
        if self._archive_dir is None:
            return
        try:
            (self._archive_dir / "archive").mkdir(parents=True, exist_ok=True)
            (self._archive_dir / "latest.txt").write_text(text, encoding="utf-8")
            (self._archive_dir / "archive" / f"{today.isoformat()}.txt").write_text(text, encoding="utf-8")
        except OSError:
            logger.exception("[Briefing] Failed to archive briefing to %s", self._archive_dir)


async def send_daily_briefing(
    service: BriefingService,
    telegram: TelegramClient,
    chat_id: str,
) -> BriefingResult | None:
    """Scheduled entry point: compile the briefing and send it to *chat_id*.

    Never raises; failures are reported to the chat instead.
    """
    logger.info("[Briefing] Running…")
    try:
        issues = await asyncio.to_thread(service.fetch_issues)
    except Exception as exc:
        logger.exception("[Briefing] Failed to fetch Linear issues")
        await asyncio.to_thread(
            telegram.send_message, chat_id, f"Briefing failed, couldn't reach Linear: {exc}",
        )
        return None

    try:
        result = await asyncio.to_thread(service.compile, issues)
    except Exception as exc:
        logger.exception("[Briefing] Failed to compile briefing")
        await asyncio.to_thread(telegram.send_message, chat_id, f"Briefing failed: {exc}")
        return None

    await asyncio.to_thread(telegram.send_message, chat_id, result.text)
    logger.info("[Briefing] Sent (%s).", result.source)
    return result
