"""Tests for the Linear GraphQL client: parsing, errors and retry policy."""

from __future__ import annotations

import asyncio
from datetime import date
from unittest.mock import patch

import httpx
import pytest

from linear_agent.models import Label, Member, Project, State, Team
from linear_agent.services.linear_client import (
    ACTIVE_STATE_TYPES,
    LinearAPIError,
    LinearClient,
    issue_from_node,
)

ISSUE_NODE = {
    "id": "issue-1",
    "identifier": "YAK-1",
    "title": "Fix auth flow",
    "description": None,
    "priority": 2,
    "priorityLabel": "High",
    "dueDate": "2026-03-01",
    "url": "https://linear.app/yak/issue/YAK-1",
    "state": {"id": "s1", "name": "In Progress", "type": "started"},
    "project": {"id": "p1", "name": "Client Portal"},
    "assignee": {"id": "u1", "name": "Zach Yak", "displayName": "zach"},
    "labels": {"nodes": [{"id": "l1", "name": "Bug"}]},
}


@pytest.fixture
def client():
    c = LinearClient(api_key="lin_api_test", endpoint="https://linear.test/graphql")
    yield c
    c.close()


@pytest.fixture
def no_sleep():
    with patch("linear_agent.services.linear_client.time.sleep") as sleep:
        yield sleep


class TestParsing:
    def test_issue_from_node(self):
        issue = issue_from_node(ISSUE_NODE)
        assert issue.identifier == "YAK-1"
        assert issue.due_date == date(2026, 3, 1)
        assert issue.state.type == "started"
        assert issue.assignee.display_name == "zach"
        assert issue.labels == (Label(id="l1", name="Bug"),)

    def test_sparse_node(self):
        issue = issue_from_node({"id": "i", "identifier": "YAK-9", "title": "t", "priority": None})
        assert issue.priority == 0
        assert issue.state is None and issue.assignee is None and issue.labels == ()


class TestQueries:
    def test_auth_header(self, client):
        assert client._client.headers["Authorization"] == "lin_api_test"

    def test_fetch_active_issues(self, client, mock_linear_response):
        body = {"data": {"issues": {"nodes": [ISSUE_NODE]}}}
        with patch.object(client._client, "post", return_value=mock_linear_response(body)) as post:
            issues = client.fetch_active_issues("YAK")

        assert [i.identifier for i in issues] == ["YAK-1"]
        sent = post.call_args.kwargs["json"]["variables"]
        assert sent == {"teamKey": "YAK", "stateTypes": ACTIVE_STATE_TYPES}

    def test_fetch_team_not_found(self, client, mock_linear_response):
        body = {"data": {"teams": {"nodes": []}}}
        with patch.object(client._client, "post", return_value=mock_linear_response(body)):
            with pytest.raises(LinearAPIError, match="not found"):
                client.fetch_team("NOPE")

    def test_fetch_members(self, client, mock_linear_response):
        body = {"data": {"teams": {"nodes": [{"members": {"nodes": [{"id": "u1", "name": "Sam Lee", "displayName": "sam"}]}}]}}}
        with patch.object(client._client, "post", return_value=mock_linear_response(body)):
            assert client.fetch_members("YAK") == [Member(id="u1", name="Sam Lee", display_name="sam")]

    def test_graphql_errors_raise_without_retry(self, client, mock_linear_response, no_sleep):
        body = {"errors": [{"message": "Entity not found"}], "data": None}
        with patch.object(client._client, "post", return_value=mock_linear_response(body)) as post:
            with pytest.raises(LinearAPIError, match="Linear: Entity not found"):
                client.fetch_labels()
        assert post.call_count == 1

    def test_client_error_not_retried(self, client, mock_linear_response, no_sleep):
        with patch.object(client._client, "post", return_value=mock_linear_response({}, status_code=401)) as post:
            with pytest.raises(LinearAPIError) as exc_info:
                client.fetch_projects()
        assert exc_info.value.status_code == 401
        assert post.call_count == 1
        no_sleep.assert_not_called()

    def test_server_error_retried(self, client, mock_linear_response, no_sleep):
        ok = mock_linear_response({"data": {"projects": {"nodes": [{"id": "p1", "name": "Portal"}]}}})
        with patch.object(
            client._client, "post", side_effect=[mock_linear_response({}, status_code=502), ok],
        ) as post:
            assert client.fetch_projects() == [Project(id="p1", name="Portal")]
        assert post.call_count == 2
        no_sleep.assert_called_once_with(1.0)

    def test_timeouts_exhaust_retries(self, client, no_sleep):
        with patch.object(client._client, "post", side_effect=httpx.ReadTimeout("slow")) as post:
            with pytest.raises(LinearAPIError, match="after 3 attempts"):
                client.fetch_workflow_states("YAK")
        assert post.call_count == 3
        assert [c.args[0] for c in no_sleep.call_args_list] == [1.0, 2.0]


class TestMutations:
    def test_update_issue_returns_node(self, client, mock_linear_response):
        node = {"id": "issue-1", "identifier": "YAK-1", "title": "Fix auth flow", "state": {"name": "Done"}}
        body = {"data": {"issueUpdate": {"issue": node}}}
        with patch.object(client._client, "post", return_value=mock_linear_response(body)) as post:
            assert client.update_issue("issue-1", {"stateId": "s-done"}) == node
        assert post.call_args.kwargs["json"]["variables"] == {"issueId": "issue-1", "input": {"stateId": "s-done"}}

    def test_create_label(self, client, mock_linear_response):
        body = {"data": {"issueLabelCreate": {"issueLabel": {"id": "l9", "name": "Blocked"}}}}
        with patch.object(client._client, "post", return_value=mock_linear_response(body)) as post:
            assert client.create_label("team-1", "Blocked") == Label(id="l9", name="Blocked")
        assert post.call_args.kwargs["json"]["variables"]["input"] == {"name": "Blocked", "teamId": "team-1"}

    def test_create_project_omits_empty_description(self, client, mock_linear_response):
        body = {"data": {"projectCreate": {"project": {"id": "p9", "name": "Portal"}}}}
        with patch.object(client._client, "post", return_value=mock_linear_response(body)) as post:
            client.create_project("Portal", ["team-1"])
        assert post.call_args.kwargs["json"]["variables"]["input"] == {"name": "Portal", "teamIds": ["team-1"]}

    def test_mutation_timeout_not_retried(self, client, no_sleep):
        with patch.object(client._client, "post", side_effect=httpx.ReadTimeout("slow")) as post:
            with pytest.raises(LinearAPIError, match="issueCreate failed"):
                client.create_issue({"teamId": "team-1", "title": "x"})
        assert post.call_count == 1
        no_sleep.assert_not_called()

    def test_mutation_server_error_not_retried(self, client, mock_linear_response, no_sleep):
        with patch.object(client._client, "post", return_value=mock_linear_response({}, status_code=500)) as post:
            with pytest.raises(LinearAPIError):
                client.create_comment("issue-1", "hello")
        assert post.call_count == 1


class TestSnapshot:
    def _patch_reads(self, client, **overrides):
        reads = {
            "fetch_active_issues": [issue_from_node(ISSUE_NODE)],
            "fetch_workflow_states": [State(id="s1", name="In Progress", type="started")],
            "fetch_labels": [Label(id="l1", name="Bug")],
            "fetch_team": Team(id="team-1", key="YAK", name="Yak Dev"),
            "fetch_projects": [Project(id="p1", name="Client Portal")],
            "fetch_members": [Member(id="u1", name="Zach Yak")],
        }
        patches = []
        for name, value in reads.items():
            if name in overrides:
                patches.append(patch.object(client, name, side_effect=overrides[name]))
            else:
                patches.append(patch.object(client, name, return_value=value))
        return patches

    def test_assembles_all_reads(self, client):
        patches = self._patch_reads(client)
        for p in patches:
            p.start()
        try:
            snapshot = asyncio.run(client.fetch_snapshot("YAK"))
        finally:
            for p in patches:
                p.stop()
        assert snapshot.team.key == "YAK"
        assert [i.identifier for i in snapshot.issues] == ["YAK-1"]
        assert len(snapshot.states) == len(snapshot.labels) == len(snapshot.projects) == len(snapshot.members) == 1

    def test_any_failure_fails_the_snapshot(self, client):
        patches = self._patch_reads(client, fetch_labels=LinearAPIError("Linear: rate limited"))
        for p in patches:
            p.start()
        try:
            with pytest.raises(LinearAPIError, match="rate limited"):
                asyncio.run(client.fetch_snapshot("YAK"))
        finally:
            for p in patches:
                p.stop()
