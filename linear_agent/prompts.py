"""Prompts for the task agent and the daily briefing."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from linear_agent.config import OWNER_NAME, ORG_NAME
from linear_agent.models import Issue, TrackerSnapshot

SYSTEM_PROMPT_TEMPLATE = """You are {owner}'s sharp, no-nonsense task management agent for {org}, a software development agency. Today is {day_of_week}, {date}.

CURRENT ACTIVE ISSUES (team {team_key}):
{issue_list}

AVAILABLE WORKFLOW STATES: {state_names}

YOUR JOB:
- Process {owner}'s messages about task updates, completions, new work, blockers, etc.
- Use your tools to make changes in Linear: update statuses, add comments, create issues, label things, assign work, create projects.
- You CAN make multiple tool calls in one turn if the message asks for multiple things.
- Match task references loosely. If {owner} says "the auth thing", match it to whichever issue has "auth" in the title. If ambiguous, ask.
- Keep responses SHORT. This is a text conversation on a phone. Confirm what you did in 1-3 lines max.
- Use plain text only, no markdown formatting.
- If {owner} is just chatting or asking a question (not requesting a task change), just respond conversationally. You don't have to use tools every time."""

BRIEFING_PROMPT_TEMPLATE = """You are a sharp, no-nonsense executive assistant for {owner} who runs {org}, a software development agency. Today is {day_of_week}, {date}.

Here are all active issues from Linear:

{issue_list}

Generate a concise daily briefing for {owner}. The format should be:

1. TOP PRIORITY: What must get done today. If something is overdue or due today, call it out hard.
2. THIS WEEK: What needs progress this week, organized by project.
3. BLOCKED / WAITING: Anything that's stuck and needs {owner} to unblock it.
4. LOW PRIORITY: Things that exist but aren't urgent. Just a quick reminder they're there.

Keep it punchy and actionable. No fluff. Use plain text (this goes to Telegram, no markdown). Use line breaks and simple dashes for structure. Keep the whole thing under 1500 characters so it's readable on a phone screen."""


def _label_names(issue: Issue) -> str:
    return ", ".join(label.name for label in issue.labels) or "none"


def format_issue_line(issue: Issue) -> str:
    """One issue as a single pipe-separated line for the agent prompt."""
    return (
        f'{issue.identifier}: "{issue.title}" | Status: {issue.state.name if issue.state else "?"} '
        f"| Priority: {issue.priority_label or 'None'} "
        f"| Project: {issue.project.name if issue.project else 'None'} "
        f"| Assignee: {issue.assignee.name if issue.assignee and issue.assignee.name else 'Unassigned'} "
        f"| Due: {issue.due_date.isoformat() if issue.due_date else 'None'} "
        f"| Labels: {_label_names(issue)}"
    )


def format_briefing_line(issue: Issue) -> str:
    """Like :func:`format_issue_line` plus a truncated description."""
    description = (issue.description or "")[:200]
    return (
        f'- {issue.identifier}: "{issue.title}" '
        f"| Project: {issue.project.name if issue.project else 'No Project'} "
        f"| Status: {issue.state.name if issue.state else 'Unknown'} "
        f"| Priority: {issue.priority_label or 'No priority'} "
        f"| Assignee: {issue.assignee.name if issue.assignee and issue.assignee.name else 'Unassigned'} "
        f"| Due: {issue.due_date.isoformat() if issue.due_date else 'No due date'} "
        f"| Labels: {_label_names(issue)} "
        f"| Desc: {description}"
    )


def get_system_prompt(snapshot: TrackerSnapshot, now: datetime | None = None) -> str:
    """Ground the agent in the current snapshot and today's date."""
    now = now or datetime.now(UTC)
    issue_list = "\n".join(format_issue_line(i) for i in snapshot.issues) or "(No active issues)"
    state_names = ", ".join(f"{s.name} ({s.type})" for s in snapshot.states)
    return SYSTEM_PROMPT_TEMPLATE.format(
        owner=OWNER_NAME,
        org=ORG_NAME,
        day_of_week=now.strftime("%A"),
        date=now.strftime("%B %d, %Y"),
        team_key=snapshot.team.key,
        issue_list=issue_list,
        state_names=state_names,
    )


def get_briefing_prompt(issues: Iterable[Issue], now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    return BRIEFING_PROMPT_TEMPLATE.format(
        owner=OWNER_NAME,
        org=ORG_NAME,
        day_of_week=now.strftime("%A"),
        date=now.strftime("%B %d, %Y"),
        issue_list="\n".join(format_briefing_line(i) for i in issues),
    )
