"""HTTP client for the Linear GraphQL API.

Linear API docs: https://developers.linear.app/docs/graphql/working-with-the-graphql-api
Requests authenticate with a personal API key in the ``Authorization`` header.

Read queries are retried with exponential backoff on timeouts, connection
errors and 5xx responses.  Mutations are sent exactly once: a retried
``issueCreate`` or ``commentCreate`` could duplicate data.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx

from linear_agent.config import LINEAR_API_KEY, LINEAR_API_URL
from linear_agent.models import Issue, Label, Member, Project, State, Team, TrackerSnapshot
from linear_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

# ── Retry configuration ─────────────────────────────────────────────
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 15.0

ACTIVE_STATE_TYPES = ["backlog", "unstarted", "started"]


# ── Queries ─────────────────────────────────────────────────────────

_ACTIVE_ISSUES = """
query ActiveIssues($teamKey: String!, $stateTypes: [String!]) {
  issues(
    filter: { team: { key: { eq: $teamKey } }, state: { type: { in: $stateTypes } } }
    first: 100
  ) {
    nodes {
      id identifier title description
      priority priorityLabel dueDate url
      state { id name type }
      project { id name }
      assignee { id name displayName }
      labels { nodes { id name } }
    }
  }
}
"""

_WORKFLOW_STATES = """
query WorkflowStates($teamKey: String!) {
  workflowStates(filter: { team: { key: { eq: $teamKey } } }) {
    nodes { id name type }
  }
}
"""

_TEAM = """
query Team($teamKey: String!) {
  teams(filter: { key: { eq: $teamKey } }) {
    nodes { id key name }
  }
}
"""

_LABELS = """
query Labels {
  issueLabels(first: 250) {
    nodes { id name }
  }
}
"""

_PROJECTS = """
query Projects {
  projects(first: 100) {
    nodes { id name }
  }
}
"""

_MEMBERS = """
query Members($teamKey: String!) {
  teams(filter: { key: { eq: $teamKey } }) {
    nodes { members { nodes { id name displayName } } }
  }
}
"""

# ── Mutations ───────────────────────────────────────────────────────

_UPDATE_ISSUE = """
mutation UpdateIssue($issueId: String!, $input: IssueUpdateInput!) {
  issueUpdate(id: $issueId, input: $input) {
    issue {
      id identifier title dueDate
      state { name }
      priority priorityLabel
      assignee { name }
      labels { nodes { id name } }
      project { name }
    }
  }
}
"""

_CREATE_ISSUE = """
mutation CreateIssue($input: IssueCreateInput!) {
  issueCreate(input: $input) {
    issue { id identifier title url dueDate state { name } }
  }
}
"""

_CREATE_COMMENT = """
mutation CreateComment($issueId: String!, $body: String!) {
  commentCreate(input: { issueId: $issueId, body: $body }) {
    comment { id body }
  }
}
"""

_CREATE_PROJECT = """
mutation CreateProject($input: ProjectCreateInput!) {
  projectCreate(input: $input) {
    project { id name }
  }
}
"""

_CREATE_LABEL = """
mutation CreateLabel($input: IssueLabelCreateInput!) {
  issueLabelCreate(input: $input) {
    issueLabel { id name }
  }
}
"""


class LinearAPIError(Exception):
    """Raised when a Linear call fails at the HTTP or GraphQL level."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


def issue_from_node(node: dict[str, Any]) -> Issue:
    """Convert a GraphQL issue node into an :class:`Issue`."""
    assignee = node.get("assignee")
    project = node.get("project")
    state = node.get("state")
    return Issue(
        id=node["id"],
        identifier=node["identifier"],
        title=node["title"],
        description=node.get("description"),
        priority=node.get("priority") or 0,
        priority_label=node.get("priorityLabel"),
        due_date=node.get("dueDate"),
        state=State(**state) if state else None,
        assignee=(
            Member(id=assignee["id"], name=assignee.get("name"), display_name=assignee.get("displayName"))
            if assignee
            else None
        ),
        project=Project(id=project["id"], name=project["name"]) if project else None,
        labels=tuple(Label(**label) for label in (node.get("labels") or {}).get("nodes", [])),
        url=node.get("url"),
    )


class LinearClient:
    """Thin wrapper around the Linear GraphQL endpoint.

    Query helpers return pydantic models; mutation helpers return the raw
    payload node from the response (the executor only reads a handful of
    fields from it).
    """

    def __init__(self, api_key: str | None = None, endpoint: str | None = None):
        self._api_key = api_key or LINEAR_API_KEY
        self._client = httpx.Client(
            headers={
                "Authorization": self._api_key,
                "Content-Type": "application/json",
            },
            timeout=REQUEST_TIMEOUT_SECONDS,
        )
        self._endpoint = endpoint or LINEAR_API_URL

    # ── Internal helpers ─────────────────────────────────────────────

    def _post(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        response = self._client.post(self._endpoint, json={"query": query, "variables": variables})
        if response.status_code >= 400:
            raise LinearAPIError(
                f"Linear API HTTP {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        body = response.json()
        if body.get("errors"):
            messages = ", ".join(e.get("message", "unknown error") for e in body["errors"])
            raise LinearAPIError(f"Linear: {messages}")
        return body["data"]

    def _query(self, operation: str, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a read query with exponential-backoff retries."""
        last_error: Exception | None = None
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                with metrics.timed("linear", operation):
                    return self._post(query, variables or {})
            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_error = exc
                logger.warning(
                    "Linear %s attempt %d/%d failed (%s). Retrying…",
                    operation, attempt, MAX_RETRIES, type(exc).__name__,
                )
            except LinearAPIError as exc:
                if exc.status_code and exc.status_code >= 500:
                    last_error = exc
                    logger.warning(
                        "Linear %s server error on attempt %d/%d. Retrying…",
                        operation, attempt, MAX_RETRIES,
                    )
                else:
                    raise

            if attempt < MAX_RETRIES:
                time.sleep(INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)))

        raise LinearAPIError(f"Linear {operation} failed after {MAX_RETRIES} attempts: {last_error}")

    def _mutate(self, operation: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """Run a mutation once.  Transport errors surface as LinearAPIError."""
        try:
            with metrics.timed("linear", operation):
                return self._post(query, variables)
        except httpx.HTTPError as exc:
            raise LinearAPIError(f"Linear {operation} failed: {exc}") from exc

    # ── Queries ──────────────────────────────────────────────────────

    def fetch_active_issues(self, team_key: str) -> list[Issue]:
        """Issues in backlog / unstarted / started states for *team_key*."""
        data = self._query(
            "issues", _ACTIVE_ISSUES, {"teamKey": team_key, "stateTypes": ACTIVE_STATE_TYPES},
        )
        return [issue_from_node(n) for n in data["issues"]["nodes"]]

    def fetch_workflow_states(self, team_key: str) -> list[State]:
        data = self._query("workflowStates", _WORKFLOW_STATES, {"teamKey": team_key})
        return [State(**n) for n in data["workflowStates"]["nodes"]]

    def fetch_team(self, team_key: str) -> Team:
        data = self._query("teams", _TEAM, {"teamKey": team_key})
        nodes = data["teams"]["nodes"]
        if not nodes:
            raise LinearAPIError(f"Team '{team_key}' not found in Linear")
        return Team(**nodes[0])

    def fetch_labels(self) -> list[Label]:
        data = self._query("issueLabels", _LABELS)
        return [Label(**n) for n in data["issueLabels"]["nodes"]]

    def fetch_projects(self) -> list[Project]:
        data = self._query("projects", _PROJECTS)
        return [Project(id=n["id"], name=n["name"]) for n in data["projects"]["nodes"]]

    def fetch_members(self, team_key: str) -> list[Member]:
        data = self._query("teamMembers", _MEMBERS, {"teamKey": team_key})
        nodes = data["teams"]["nodes"]
        if not nodes:
            return []
        return [
            Member(id=m["id"], name=m.get("name"), display_name=m.get("displayName"))
            for m in nodes[0]["members"]["nodes"]
        ]

    async def fetch_snapshot(self, team_key: str) -> TrackerSnapshot:
        """Fetch everything a turn needs, concurrently.

        All six reads must succeed; the first failure propagates and no
        partial snapshot is returned.
        """
        issues, states, labels, team, projects, members = await asyncio.gather(
            asyncio.to_thread(self.fetch_active_issues, team_key),
            asyncio.to_thread(self.fetch_workflow_states, team_key),
            asyncio.to_thread(self.fetch_labels),
            asyncio.to_thread(self.fetch_team, team_key),
            asyncio.to_thread(self.fetch_projects),
            asyncio.to_thread(self.fetch_members, team_key),
        )
        logger.info(
            "Snapshot for %s: %d issues, %d states, %d labels, %d projects, %d members",
            team_key, len(issues), len(states), len(labels), len(projects), len(members),
        )
        return TrackerSnapshot(
            team=team,
            issues=tuple(issues),
            states=tuple(states),
            labels=tuple(labels),
            projects=tuple(projects),
            members=tuple(members),
        )

    # ── Mutations ────────────────────────────────────────────────────

    def update_issue(self, issue_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        data = self._mutate("issueUpdate", _UPDATE_ISSUE, {"issueId": issue_id, "input": changes})
        return data["issueUpdate"]["issue"]

    def create_issue(self, fields: dict[str, Any]) -> dict[str, Any]:
        data = self._mutate("issueCreate", _CREATE_ISSUE, {"input": fields})
        return data["issueCreate"]["issue"]

    def create_comment(self, issue_id: str, body: str) -> dict[str, Any]:
        data = self._mutate("commentCreate", _CREATE_COMMENT, {"issueId": issue_id, "body": body})
        return data["commentCreate"]["comment"]

    def create_project(
        self,
        name: str,
        team_ids: list[str],
        description: str | None = None,
    ) -> dict[str, Any]:
        fields: dict[str, Any] = {"name": name, "teamIds": team_ids}
        if description:
            fields["description"] = description
        data = self._mutate("projectCreate", _CREATE_PROJECT, {"input": fields})
        return data["projectCreate"]["project"]

    def create_label(self, team_id: str, name: str) -> Label:
        data = self._mutate(
            "issueLabelCreate", _CREATE_LABEL, {"input": {"name": name, "teamId": team_id}},
        )
        return Label(**data["issueLabelCreate"]["issueLabel"])

    def close(self) -> None:
        self._client.close()
