"""Shared pydantic models: the contract between the Linear client, the
executor, the agent loop and the briefing cache."""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, model_validator


class State(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: str  # backlog | unstarted | started | completed | canceled


class Label(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class Project(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class Member(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None
    display_name: str | None = None


class Team(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    key: str
    name: str


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str  # Linear-native ID
    identifier: str  # YAK-42
    title: str
    description: str | None = None
    priority: int = 0  # 0 = none, 1 = urgent … 4 = low
    priority_label: str | None = None
    due_date: date | None = None
    state: State | None = None
    assignee: Member | None = None
    project: Project | None = None
    labels: tuple[Label, ...] = ()
    url: str | None = None


class TrackerSnapshot(BaseModel):
    """Read-only view of the tracker used to ground one turn or one run.

    Built fresh per invocation and never mutated afterwards.
    """

    model_config = ConfigDict(frozen=True)

    team: Team
    issues: tuple[Issue, ...] = ()
    states: tuple[State, ...] = ()
    labels: tuple[Label, ...] = ()
    projects: tuple[Project, ...] = ()
    members: tuple[Member, ...] = ()

    @model_validator(mode="after")
    def _unique_identifiers(self) -> TrackerSnapshot:
        seen: set[str] = set()
        for issue in self.issues:
            key = issue.identifier.upper()
            if key in seen:
                raise ValueError(f"Duplicate issue identifier in snapshot: {issue.identifier}")
            seen.add(key)
        return self


class OperationOutcome(BaseModel):
    """Result of one operation: either a success payload or a failure reason."""

    model_config = ConfigDict(frozen=True)

    status: Literal["success", "failure"]
    payload: dict[str, Any] = {}
    error: str | None = None

    @classmethod
    def success(cls, **payload: Any) -> OperationOutcome:
        return cls(status="success", payload=payload)

    @classmethod
    def failure(cls, reason: str) -> OperationOutcome:
        return cls(status="failure", error=reason)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_tool_result(self) -> dict[str, Any]:
        """Shape sent back to the model as the tool result body."""
        if self.ok:
            return {"success": True, **self.payload}
        return {"error": self.error}


class ConversationTurn(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["user", "assistant"]
    content: str


class SummaryCacheRecord(BaseModel):
    """The single cached briefing, overwritten on every scheduled run."""

    model_config = ConfigDict(frozen=True)

    fingerprint: str
    cached_text: str
    unchanged_count: int = 0
    last_run: date | None = None
