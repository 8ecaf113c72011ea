"""Shared test fixtures for the Linear agent test suite."""

from __future__ import annotations

import os
from datetime import date
from itertools import count
from unittest.mock import MagicMock

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("LINEAR_API_KEY", "test-linear-key-456")
    os.environ.setdefault("TELEGRAM_BOT_TOKEN", "test-telegram-token-789")
    os.environ.setdefault("TELEGRAM_CHAT_ID", "12345")
    os.environ["METRICS_ENABLED"] = "false"
    os.environ.pop("WEBHOOK_SECRET", None)
    os.environ.pop("BRIEFING_ARCHIVE_DIR", None)


# ── Snapshot data ────────────────────────────────────────────────────


@pytest.fixture
def make_issue():
    """Factory for Issue models with sensible defaults."""
    from linear_agent.models import Issue, State

    def _make(identifier: str = "YAK-1", **overrides):
        fields = {
            "id": f"issue-{identifier.split('-')[-1]}",
            "identifier": identifier,
            "title": f"Task {identifier}",
            "state": State(id="state-todo", name="Todo", type="unstarted"),
        }
        fields.update(overrides)
        return Issue(**fields)

    return _make


@pytest.fixture
def snapshot():
    """A small YAK team: two active issues, four states, two labels."""
    from linear_agent.models import Issue, Label, Member, Project, State, Team, TrackerSnapshot

    states = (
        State(id="state-backlog", name="Backlog", type="backlog"),
        State(id="state-todo", name="Todo", type="unstarted"),
        State(id="state-started", name="In Progress", type="started"),
        State(id="state-done", name="Done", type="completed"),
    )
    bug = Label(id="label-bug", name="Bug")
    blocked = Label(id="label-blocked", name="Blocked")
    portal = Project(id="proj-portal", name="Client Portal")
    tools = Project(id="proj-tools", name="Internal Tools")
    sam = Member(id="member-sam", name="Sam Lee", display_name="sam")
    zach = Member(id="member-zach", name="Zach Yak", display_name="zach")

    return TrackerSnapshot(
        team=Team(id="team-1", key="YAK", name="Yak Dev"),
        issues=(
            Issue(
                id="issue-1",
                identifier="YAK-1",
                title="Fix auth flow",
                description="Login redirects loop on Safari",
                priority=2,
                priority_label="High",
                due_date=date(2026, 3, 1),
                state=states[2],
                assignee=zach,
                project=portal,
                labels=(bug,),
            ),
            Issue(
                id="issue-2",
                identifier="YAK-2",
                title="Write onboarding docs",
                priority=0,
                priority_label="No priority",
                state=states[1],
            ),
        ),
        states=states,
        labels=(bug, blocked),
        projects=(portal, tools),
        members=(sam, zach),
    )


# ── Fake Linear client ───────────────────────────────────────────────

_PRIORITY_LABELS = {0: "No priority", 1: "Urgent", 2: "High", 3: "Medium", 4: "Low"}


class FakeLinearClient:
    """In-memory stand-in for LinearClient that records every mutation."""

    def __init__(self, snapshot):
        self.snapshot = snapshot
        self.updates: list[tuple[str, dict]] = []
        self.created_issues: list[dict] = []
        self.comments: list[tuple[str, str]] = []
        self.projects: list[dict] = []
        self.created_labels = []
        self.fail_on_title: str | None = None
        self._ids = count(100)

    # Queries

    def fetch_active_issues(self, team_key):
        return list(self.snapshot.issues)

    async def fetch_snapshot(self, team_key):
        return self.snapshot

    # Mutations

    def update_issue(self, issue_id, changes):
        self.updates.append((issue_id, dict(changes)))
        issue = next(i for i in self.snapshot.issues if i.id == issue_id)

        state_name = issue.state.name if issue.state else None
        if "stateId" in changes:
            state_name = next(s.name for s in self.snapshot.states if s.id == changes["stateId"])

        priority = changes.get("priority", issue.priority)

        assignee = issue.assignee.name if issue.assignee else None
        if "assigneeId" in changes:
            assignee = next(m.name for m in self.snapshot.members if m.id == changes["assigneeId"])

        all_labels = [*self.snapshot.labels, *self.created_labels]
        label_ids = changes.get("labelIds", [lbl.id for lbl in issue.labels])
        labels = [{"id": lbl.id, "name": lbl.name} for lbl in all_labels if lbl.id in label_ids]

        if "dueDate" in changes:
            due = changes["dueDate"]
        else:
            due = issue.due_date.isoformat() if issue.due_date else None

        return {
            "id": issue.id,
            "identifier": issue.identifier,
            "title": issue.title,
            "dueDate": due,
            "state": {"name": state_name},
            "priority": priority,
            "priorityLabel": _PRIORITY_LABELS.get(priority),
            "assignee": {"name": assignee} if assignee else None,
            "labels": {"nodes": labels},
            "project": {"name": issue.project.name} if issue.project else None,
        }

    def create_issue(self, fields):
        from linear_agent.services.linear_client import LinearAPIError

        if self.fail_on_title and fields["title"] == self.fail_on_title:
            raise LinearAPIError("Linear: title rejected")
        n = next(self._ids)
        self.created_issues.append(dict(fields))
        return {
            "id": f"issue-{n}",
            "identifier": f"YAK-{n}",
            "title": fields["title"],
            "url": f"https://linear.app/yak/issue/YAK-{n}",
            "dueDate": fields.get("dueDate"),
            "state": {"name": "Todo"},
        }

    def create_comment(self, issue_id, body):
        self.comments.append((issue_id, body))
        return {"id": f"comment-{len(self.comments)}", "body": body}

    def create_project(self, name, team_ids, description=None):
        project = {"id": f"proj-{next(self._ids)}", "name": name, "teamIds": team_ids, "description": description}
        self.projects.append(project)
        return {"id": project["id"], "name": name}

    def create_label(self, team_id, name):
        from linear_agent.models import Label

        label = Label(id=f"label-new-{len(self.created_labels) + 1}", name=name)
        self.created_labels.append(label)
        return label

    def close(self):
        pass


@pytest.fixture
def fake_linear(snapshot):
    return FakeLinearClient(snapshot)


@pytest.fixture
def store(tmp_path):
    from linear_agent.services.store import JsonStateStore

    return JsonStateStore(tmp_path / "state.json")


@pytest.fixture
def mock_linear_response():
    """Factory fixture for creating mock Linear GraphQL responses."""

    def _make(data: dict, status_code: int = 200):
        mock = MagicMock()
        mock.status_code = status_code
        mock.json.return_value = data
        mock.text = str(data)
        return mock

    return _make
