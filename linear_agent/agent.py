"""LangGraph tool-calling agent that turns chat messages into Linear updates.

Architecture:
  A two-node StateGraph:

    1. **chatbot**: Claude, bound to the operation catalog, sees the
       grounding prompt built from the turn's snapshot plus the
       conversation so far
    2. **tools**: runs every tool call from the last model response
       through the OperationExecutor, in order, and answers each one with
       exactly one ToolMessage

  Routing:
    chatbot → (tool calls and iterations < max?) → tools → chatbot (loop)
            → (otherwise)                        → END

  The iteration ceiling is a safety valve for a model that keeps asking
  for tools.  When it trips, the turn ends on whatever the last model
  response said, or on ``FALLBACK_REPLY`` if it said nothing.

  Memory:
    No LangGraph checkpointer.  Prior exchanges come from
    ``ConversationMemory`` and only the user text and final reply are
    written back, once per completed turn.
"""

from __future__ import annotations

import json
import logging
from typing import Annotated, Any

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, SystemMessage, ToolMessage
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from typing_extensions import TypedDict

from linear_agent.config import ANTHROPIC_API_KEY, MAX_TOOL_ITERATIONS, MODEL_NAME
from linear_agent.memory import ConversationMemory
from linear_agent.models import ConversationTurn, TrackerSnapshot
from linear_agent.prompts import get_system_prompt
from linear_agent.services.linear_client import LinearClient
from linear_agent.services.metrics import metrics
from linear_agent.tools.executor import OperationExecutor
from linear_agent.tools.registry import to_tool_schemas

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Done, but I couldn't generate a response. Something might be off."


# ── State schema ─────────────────────────────────────────────────────


class AgentState(TypedDict):
    """The state that flows through the graph.

    ``snapshot`` is read-only for the whole turn.  ``iterations`` counts
    completed tool rounds and is what the ceiling is checked against.
    """

    messages: Annotated[list[AnyMessage], add_messages]
    snapshot: TrackerSnapshot
    iterations: int


# ── LLM builder ─────────────────────────────────────────────────────


def _build_llm():
    """Build the Claude chat model with the operation catalog bound as tools."""
    llm = ChatAnthropic(
        model=MODEL_NAME,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.1,
        max_tokens=1024,
    )
    return llm.bind_tools(to_tool_schemas())


# ── Helpers ──────────────────────────────────────────────────────────


def history_to_messages(turns: list[ConversationTurn]) -> list[AnyMessage]:
    return [
        HumanMessage(content=t.content) if t.role == "user" else AIMessage(content=t.content)
        for t in turns
    ]


def extract_text(message: AnyMessage | None) -> str:
    """Join the text segments of a model response, in order.

    Anthropic responses arrive either as a plain string or as a list of
    content blocks mixing ``text`` and ``tool_use``.  Returns
    ``FALLBACK_REPLY`` when there is no text at all.
    """
    if message is None:
        return FALLBACK_REPLY
    content = message.content
    if isinstance(content, str):
        parts = [content]
    else:
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
    text = "\n".join(p for p in parts if p.strip())
    return text.strip() or FALLBACK_REPLY


def _tool_calls(message: AnyMessage) -> list[dict[str, Any]]:
    return list(getattr(message, "tool_calls", None) or [])


# ── Nodes ────────────────────────────────────────────────────────────


def _make_chatbot_node(llm_with_tools):
    """Create the chatbot node around an already-bound model."""

    def chatbot_node(state: AgentState) -> dict:
        system = SystemMessage(content=get_system_prompt(state["snapshot"]))
        with metrics.timed("anthropic", "llm_invoke"):
            response = llm_with_tools.invoke([system] + state["messages"])
        logger.debug(
            "chatbot responded with %d tool call(s) (iteration %d)",
            len(_tool_calls(response)), state.get("iterations", 0),
        )
        return {"messages": [response]}

    return chatbot_node


def _make_tools_node(executor: OperationExecutor):
    """Create the node that executes the last response's tool calls."""

    def tools_node(state: AgentState) -> dict:
        snapshot = state["snapshot"]
        results: list[ToolMessage] = []
        for call in _tool_calls(state["messages"][-1]):
            logger.info("Tool call: %s(%s)", call["name"], json.dumps(call.get("args", {}), default=str))
            outcome = executor.execute(call["name"], call.get("args") or {}, snapshot)
            body = json.dumps(outcome.to_tool_result(), default=str)
            logger.info("Tool result: %s", body)
            results.append(ToolMessage(content=body, tool_call_id=call["id"], name=call["name"]))
        return {"messages": results, "iterations": state.get("iterations", 0) + 1}

    return tools_node


# ── Conditional edge ─────────────────────────────────────────────────


def should_use_tools(state: AgentState, max_iterations: int = MAX_TOOL_ITERATIONS) -> str:
    """Route to tools while the model asks for them and the ceiling allows."""
    if not _tool_calls(state["messages"][-1]):
        return END
    if state.get("iterations", 0) >= max_iterations:
        logger.warning("Tool iteration ceiling (%d) reached, ending turn", max_iterations)
        return END
    return "tools"


# ── Graph assembly ───────────────────────────────────────────────────


def create_task_graph(
    client: LinearClient,
    llm=None,
    max_iterations: int = MAX_TOOL_ITERATIONS,
):
    """Build and compile the agent graph.

    ``llm`` must already have the tools bound; it defaults to
    :func:`_build_llm`.  Invoke with::

        graph.invoke(
            {"messages": [...], "snapshot": snapshot, "iterations": 0},
            config={"recursion_limit": 2 * max_iterations + 5},
        )
    """
    graph = StateGraph(AgentState)
    graph.add_node("chatbot", _make_chatbot_node(llm or _build_llm()))
    graph.add_node("tools", _make_tools_node(OperationExecutor(client)))

    graph.set_entry_point("chatbot")
    graph.add_conditional_edges(
        "chatbot",
        lambda state: should_use_tools(state, max_iterations),
        {"tools": "tools", END: END},
    )
    graph.add_edge("tools", "chatbot")

    compiled = graph.compile()
    logger.debug("Task agent compiled. Model: %s, max iterations: %d", MODEL_NAME, max_iterations)
    return compiled


class TaskAgent:
    """Runs one chat turn: history + snapshot in, reply text out.

    Errors from Claude or Linear propagate; memory is only written when the
    turn completes.
    """

    def __init__(
        self,
        client: LinearClient,
        memory: ConversationMemory,
        llm=None,
        max_iterations: int = MAX_TOOL_ITERATIONS,
    ) -> None:
        self._memory = memory
        self._max_iterations = max_iterations
        self._graph = create_task_graph(client, llm=llm, max_iterations=max_iterations)

    @property
    def memory(self) -> ConversationMemory:
        return self._memory

    def run_turn(self, user_text: str, snapshot: TrackerSnapshot) -> str:
        history = history_to_messages(self._memory.load())
        result = self._graph.invoke(
            {
                "messages": [*history, HumanMessage(content=user_text)],
                "snapshot": snapshot,
                "iterations": 0,
            },
            config={"recursion_limit": 2 * self._max_iterations + 5},
        )
        messages = result.get("messages", [])
        reply = extract_text(messages[-1] if messages else None)
        self._memory.append(user_text, reply)
        return reply
