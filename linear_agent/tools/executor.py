"""Executes model-requested operations against Linear.

Every call goes through :meth:`OperationExecutor.execute`, which validates
the parameters against the registry, resolves human references ("yak-42",
"in progress", "sam") to entities in the turn's :class:`TrackerSnapshot`,
performs a single mutation and returns an :class:`OperationOutcome`.

Nothing raises past ``execute``: resolution problems and API errors both
come back as failure outcomes so the model can correct itself or tell the
user what went wrong.

Matching rules
--------------
* issues, states and labels: exact, case-insensitive
* projects and members: case-insensitive substring, first match wins.  Two
  members called "Sam Lee" and "Samir Khan" both match "sam"; whichever
  Linear lists first is used.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from linear_agent.models import (
    Issue,
    Label,
    Member,
    OperationOutcome,
    Project,
    State,
    TrackerSnapshot,
)
from linear_agent.services.linear_client import LinearClient
from linear_agent.tools.registry import validate_parameters

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any], TrackerSnapshot], OperationOutcome]


# ── Resolution helpers ──────────────────────────────────────────────


def find_issue(identifier: str, snapshot: TrackerSnapshot) -> Issue | None:
    wanted = identifier.strip().upper()
    return next((i for i in snapshot.issues if i.identifier.upper() == wanted), None)


def find_state(name: str, snapshot: TrackerSnapshot) -> State | None:
    wanted = name.strip().lower()
    return next((s for s in snapshot.states if s.name.lower() == wanted), None)


def find_project(name: str, snapshot: TrackerSnapshot) -> Project | None:
    wanted = name.strip().lower()
    return next((p for p in snapshot.projects if wanted in p.name.lower()), None)


def find_member(name: str, snapshot: TrackerSnapshot) -> Member | None:
    wanted = name.strip().lower()
    for member in snapshot.members:
        if (member.name and wanted in member.name.lower()) or (
            member.display_name and wanted in member.display_name.lower()
        ):
            return member
    return None


def find_label(name: str, labels: tuple[Label, ...] | list[Label]) -> Label | None:
    wanted = name.strip().lower()
    return next((label for label in labels if label.name.lower() == wanted), None)


def _issue_not_found(identifier: str) -> OperationOutcome:
    return OperationOutcome.failure(f"Issue {identifier} not found in active issues.")


def _as_priority(value: Any) -> Any:
    # The schema says "number"; Linear's priority is an Int.
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class OperationExecutor:
    """Dispatches operations by name to their handlers.

    The Linear client is injected so tests can pass a fake one.  Labels
    created through ``add_label`` are remembered for as long as the same
    snapshot is in use, so asking twice in one turn does not create two
    labels with the same name.  The label ids sent for each issue are kept
    the same way, because ``labelIds`` replaces the whole set and the
    snapshot still holds the labels from before the turn.

    That per-snapshot state lives on the executor, which the server shares
    between turns.  Two overlapping turns reset each other's label state;
    overlapping turns are not serialized anywhere else either.
    """

    def __init__(self, client: LinearClient) -> None:
        self._client = client
        self._handlers: dict[str, Handler] = {
            "update_issue_status": self._update_status,
            "update_issue_priority": self._update_priority,
            "add_comment": self._add_comment,
            "add_label": self._add_label,
            "create_issue": self._create_issue,
            "create_project": self._create_project,
            "assign_issue": self._assign_issue,
            "update_due_date": self._update_due_date,
        }
        self._label_snapshot: TrackerSnapshot | None = None
        self._created_labels: list[Label] = []
        self._applied_labels: dict[str, list[str]] = {}

    @property
    def operation_names(self) -> list[str]:
        return list(self._handlers)

    def execute(self, name: str, params: dict[str, Any], snapshot: TrackerSnapshot) -> OperationOutcome:
        """Run one operation.  Always returns an outcome, never raises."""
        handler = self._handlers.get(name)
        if handler is None:
            return OperationOutcome.failure(f"Unknown tool: {name}")

        error = validate_parameters(name, params)
        if error:
            return OperationOutcome.failure(error)

        try:
            return handler(params, snapshot)
        except Exception as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return OperationOutcome.failure(f'Tool "{name}" failed: {exc}')

    # ── Handlers ─────────────────────────────────────────────────────

    def _update_status(self, params: dict[str, Any], snapshot: TrackerSnapshot) -> OperationOutcome:
        issue = find_issue(params["issue_identifier"], snapshot)
        if issue is None:
            return _issue_not_found(params["issue_identifier"])

        state = find_state(params["status"], snapshot)
        if state is None:
            available = ", ".join(s.name for s in snapshot.states)
            return OperationOutcome.failure(f'State "{params["status"]}" not found. Available: {available}')

        updated = self._client.update_issue(issue.id, {"stateId": state.id})
        return OperationOutcome.success(
            issue=updated["identifier"],
            title=updated["title"],
            new_status=(updated.get("state") or {}).get("name"),
        )

    def _update_priority(self, params: dict[str, Any], snapshot: TrackerSnapshot) -> OperationOutcome:
        issue = find_issue(params["issue_identifier"], snapshot)
        if issue is None:
            return _issue_not_found(params["issue_identifier"])

        updated = self._client.update_issue(issue.id, {"priority": _as_priority(params["priority"])})
        return OperationOutcome.success(
            issue=updated["identifier"],
            title=updated["title"],
            new_priority=updated.get("priorityLabel"),
        )

    def _add_comment(self, params: dict[str, Any], snapshot: TrackerSnapshot) -> OperationOutcome:
        issue = find_issue(params["issue_identifier"], snapshot)
        if issue is None:
            return _issue_not_found(params["issue_identifier"])

        comment = self._client.create_comment(issue.id, params["comment"])
        return OperationOutcome.success(issue=issue.identifier, comment_preview=comment["body"][:100])

    def _add_label(self, params: dict[str, Any], snapshot: TrackerSnapshot) -> OperationOutcome:
        issue = find_issue(params["issue_identifier"], snapshot)
        if issue is None:
            return _issue_not_found(params["issue_identifier"])

        if snapshot is not self._label_snapshot:
            self._label_snapshot = snapshot
            self._created_labels = []
            self._applied_labels = {}

        label = find_label(params["label_name"], snapshot.labels) or find_label(
            params["label_name"], self._created_labels,
        )
        if label is None:
            label = self._client.create_label(snapshot.team.id, params["label_name"])
            self._created_labels.append(label)
            logger.info("Created label %r (%s)", label.name, label.id)

        current_ids = self._applied_labels.get(issue.id) or [existing.id for existing in issue.labels]
        if label.id in current_ids:
            return OperationOutcome.success(message=f'{issue.identifier} already has label "{label.name}"')

        label_ids = [*current_ids, label.id]
        updated = self._client.update_issue(issue.id, {"labelIds": label_ids})
        self._applied_labels[issue.id] = label_ids
        return OperationOutcome.success(
            issue=updated["identifier"],
            labels=[n["name"] for n in (updated.get("labels") or {}).get("nodes", [])],
        )

    def _create_issue(self, params: dict[str, Any], snapshot: TrackerSnapshot) -> OperationOutcome:
        fields: dict[str, Any] = {"teamId": snapshot.team.id, "title": params["title"]}
        if params.get("description"):
            fields["description"] = params["description"]
        if params.get("priority") is not None:
            fields["priority"] = _as_priority(params["priority"])
        if params.get("due_date"):
            fields["dueDate"] = params["due_date"]

        project_id = None
        if params.get("project_name"):
            project = find_project(params["project_name"], snapshot)
            if project is not None:
                project_id = project.id
                fields["projectId"] = project_id

        if params.get("status"):
            state = find_state(params["status"], snapshot)
            if state is not None:
                fields["stateId"] = state.id

        parent = self._client.create_issue(fields)
        result: dict[str, Any] = {
            "issue": parent["identifier"],
            "title": parent["title"],
            "url": parent.get("url"),
            "due_date": parent.get("dueDate"),
        }

        subtasks = params.get("subtasks") or []
        if not subtasks:
            return OperationOutcome.success(**result)

        # Children are created one by one with no rollback: a failure part-way
        # leaves the parent and earlier children in Linear.
        created: list[dict[str, Any]] = []
        for sub in subtasks:
            sub_fields: dict[str, Any] = {
                "teamId": snapshot.team.id,
                "title": sub["title"],
                "parentId": parent["id"],
            }
            if sub.get("description"):
                sub_fields["description"] = sub["description"]
            if sub.get("priority") is not None:
                sub_fields["priority"] = _as_priority(sub["priority"])
            if sub.get("due_date"):
                sub_fields["dueDate"] = sub["due_date"]
            if project_id:
                sub_fields["projectId"] = project_id

            try:
                child = self._client.create_issue(sub_fields)
            except Exception as exc:
                done = ", ".join(c["issue"] for c in created) or "none"
                return OperationOutcome.failure(
                    f'Created {parent["identifier"]} but subtask "{sub["title"]}" failed: {exc}. '
                    f"Subtasks already created: {done}."
                )
            created.append(
                {"issue": child["identifier"], "title": child["title"], "due_date": child.get("dueDate")}
            )

        return OperationOutcome.success(**result, subtasks=created)

    def _create_project(self, params: dict[str, Any], snapshot: TrackerSnapshot) -> OperationOutcome:
        project = self._client.create_project(
            params["name"], [snapshot.team.id], params.get("description"),
        )
        return OperationOutcome.success(project=project["name"], id=project["id"])

    def _assign_issue(self, params: dict[str, Any], snapshot: TrackerSnapshot) -> OperationOutcome:
        issue = find_issue(params["issue_identifier"], snapshot)
        if issue is None:
            return _issue_not_found(params["issue_identifier"])

        member = find_member(params["assignee_name"], snapshot)
        if member is None:
            available = ", ".join(m.name or m.display_name or m.id for m in snapshot.members)
            return OperationOutcome.failure(
                f'Team member "{params["assignee_name"]}" not found. Available: {available}'
            )

        updated = self._client.update_issue(issue.id, {"assigneeId": member.id})
        return OperationOutcome.success(
            issue=updated["identifier"],
            title=updated["title"],
            assignee=(updated.get("assignee") or {}).get("name"),
        )

    def _update_due_date(self, params: dict[str, Any], snapshot: TrackerSnapshot) -> OperationOutcome:
        issue = find_issue(params["issue_identifier"], snapshot)
        if issue is None:
            return _issue_not_found(params["issue_identifier"])

        raw = params.get("due_date")
        due_date = raw.strip() if isinstance(raw, str) and raw.strip() else None

        updated = self._client.update_issue(issue.id, {"dueDate": due_date})
        return OperationOutcome.success(
            issue=updated["identifier"],
            title=updated["title"],
            due_date=updated.get("dueDate") or "cleared",
        )
