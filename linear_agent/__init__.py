"""Linear task agent: chat-driven updates to a Linear workspace over Telegram.

Architecture Overview
=====================

Every inbound Telegram message triggers one **turn**:

1. A fresh ``TrackerSnapshot`` (active issues, workflow states, labels,
   team, projects, members) is fetched from Linear's GraphQL API, all six
   reads concurrently.

2. A **LangGraph** StateGraph alternates between Claude (bound to the
   eight-operation catalog) and a tools node that runs each tool call
   through the ``OperationExecutor``.  The loop stops when Claude answers
   without tool calls, or after ``MAX_TOOL_ITERATIONS`` tool rounds.

3. The final reply is sent back to Telegram and the user/assistant pair is
   appended to a rolling history persisted in a JSON file.

Separately, an APScheduler cron job compiles a **daily briefing**.  A
fingerprint of the active issues decides whether Claude is called at all:
unchanged tasks reuse the cached briefing, and after ``STALE_THRESHOLD``
unchanged runs the owner gets a wake-up call instead.

Package Structure
-----------------
- ``linear_agent/agent.py``: LangGraph StateGraph and ``TaskAgent``
- ``linear_agent/briefing.py``: fingerprinting, briefing cache, scheduled send
- ``linear_agent/config.py``: configuration from env vars / SSM
- ``linear_agent/handlers.py``: bot commands and per-message orchestration
- ``linear_agent/memory.py``: rolling conversation history
- ``linear_agent/models.py``: shared pydantic models
- ``linear_agent/prompts.py``: agent and briefing prompts
- ``linear_agent/scheduler.py``: cron trigger for the briefing
- ``linear_agent/server.py``: FastAPI application
- ``linear_agent/main.py``: CLI chat interface
- ``linear_agent/services/``: Linear, Telegram, state store, metrics
- ``linear_agent/tools/``: operation catalog and executor
- ``linear_agent/api/``: FastAPI routes and Pydantic schemas
"""
