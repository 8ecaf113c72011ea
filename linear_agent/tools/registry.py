"""Catalog of operations the agent may ask to run against Linear.

The catalog is plain data.  ``to_tool_schemas()`` renders it in the
Anthropic tool format that ``ChatAnthropic.bind_tools`` accepts, and
``validate_parameters()`` checks a model-issued tool call against it before
the executor touches anything.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

ALLOWED_TYPES = {"string", "number", "integer", "boolean", "array", "object"}

_PRIORITY_HELP = "Priority level: 0 = No priority, 1 = Urgent, 2 = High, 3 = Medium, 4 = Low"
_IDENTIFIER_HELP = "The issue identifier, e.g. 'YAK-42'"


class Parameter(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    description: str
    required: bool = False
    nullable: bool = False  # required but may be sent as null
    items: dict[str, Any] | None = None  # JSON schema for array elements

    def to_json_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.items is not None:
            schema["items"] = self.items
        return schema


class Operation(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Parameter]

    @property
    def required(self) -> list[str]:
        return [name for name, p in self.parameters.items() if p.required]

    def to_tool_schema(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {
                "type": "object",
                "properties": {n: p.to_json_schema() for n, p in self.parameters.items()},
                "required": self.required,
            },
        }


_SUBTASK_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "The subtask title"},
        "description": {"type": "string", "description": "Optional description for the subtask"},
        "due_date": {"type": "string", "description": "Optional due date for the subtask in YYYY-MM-DD format"},
        "priority": {"type": "number", "description": _PRIORITY_HELP},
    },
    "required": ["title"],
}


OPERATIONS: tuple[Operation, ...] = (
    Operation(
        name="update_issue_status",
        description=(
            "Update the status/state of a Linear issue. Use when the user says they finished, "
            "started, paused, or want to move a task to a different state."
        ),
        parameters={
            "issue_identifier": Parameter(type="string", description=_IDENTIFIER_HELP, required=True),
            "status": Parameter(
                type="string",
                description=(
                    "The exact workflow state name to move to. Must match one of the available "
                    "states provided in your context."
                ),
                required=True,
            ),
        },
    ),
    Operation(
        name="update_issue_priority",
        description="Change the priority of a Linear issue.",
        parameters={
            "issue_identifier": Parameter(type="string", description=_IDENTIFIER_HELP, required=True),
            "priority": Parameter(type="number", description=_PRIORITY_HELP, required=True),
        },
    ),
    Operation(
        name="add_comment",
        description="Add a comment to a Linear issue.",
        parameters={
            "issue_identifier": Parameter(type="string", description=_IDENTIFIER_HELP, required=True),
            "comment": Parameter(type="string", description="The comment text to add", required=True),
        },
    ),
    Operation(
        name="add_label",
        description=(
            "Add a label to a Linear issue. Creates the label if it doesn't exist yet. "
            "Good for marking things as blocked, urgent, bug, etc."
        ),
        parameters={
            "issue_identifier": Parameter(type="string", description=_IDENTIFIER_HELP, required=True),
            "label_name": Parameter(
                type="string",
                description="The label name to add (e.g. 'Blocked', 'Bug', 'Urgent')",
                required=True,
            ),
        },
    ),
    Operation(
        name="create_issue",
        description=(
            "Create a new Linear issue/task in the team workspace. Can optionally include "
            "subtasks (child issues) and a due date."
        ),
        parameters={
            "title": Parameter(type="string", description="The issue title", required=True),
            "description": Parameter(type="string", description="Optional longer description of the issue"),
            "project_name": Parameter(
                type="string", description="Optional name of an existing project to add this issue to",
            ),
            "priority": Parameter(type="number", description=f"{_PRIORITY_HELP}. Defaults to 0."),
            "status": Parameter(
                type="string",
                description=(
                    "Initial workflow state name. Defaults to the team's default state "
                    "(usually 'Todo' or 'Backlog')."
                ),
            ),
            "due_date": Parameter(
                type="string", description="Due date in YYYY-MM-DD format, e.g. '2026-03-01'. Optional.",
            ),
            "subtasks": Parameter(
                type="array",
                description=(
                    "Optional list of subtasks to create as child issues under this parent. "
                    "Each subtask inherits the parent's project and team."
                ),
                items=_SUBTASK_SCHEMA,
            ),
        },
    ),
    Operation(
        name="create_project",
        description="Create a new Linear project.",
        parameters={
            "name": Parameter(type="string", description="The project name", required=True),
            "description": Parameter(type="string", description="Optional project description"),
        },
    ),
    Operation(
        name="assign_issue",
        description="Assign (or reassign) a Linear issue to a team member.",
        parameters={
            "issue_identifier": Parameter(type="string", description=_IDENTIFIER_HELP, required=True),
            "assignee_name": Parameter(
                type="string",
                description="The name (or part of the name) of the team member to assign to",
                required=True,
            ),
        },
    ),
    Operation(
        name="update_due_date",
        description=(
            "Set or change the due date on an existing Linear issue. Can also clear the due date."
        ),
        parameters={
            "issue_identifier": Parameter(type="string", description=_IDENTIFIER_HELP, required=True),
            "due_date": Parameter(
                type="string",
                description=(
                    "The due date in YYYY-MM-DD format, e.g. '2026-03-01'. "
                    "Pass null or empty string to clear the due date."
                ),
                required=True,
                nullable=True,
            ),
        },
    ),
)


def _check_catalog(operations: tuple[Operation, ...]) -> dict[str, Operation]:
    by_name: dict[str, Operation] = {}
    for op in operations:
        if op.name in by_name:
            raise ValueError(f"Duplicate operation name: {op.name}")
        for pname, param in op.parameters.items():
            if param.type not in ALLOWED_TYPES:
                raise ValueError(f"{op.name}.{pname}: unsupported type {param.type!r}")
            if param.type == "array" and param.items is None:
                raise ValueError(f"{op.name}.{pname}: array parameter needs an item schema")
        by_name[op.name] = op
    return by_name


_BY_NAME = _check_catalog(OPERATIONS)


def list_operations() -> tuple[Operation, ...]:
    """All operations, in the order they are presented to the model."""
    return OPERATIONS


def get_operation(name: str) -> Operation | None:
    return _BY_NAME.get(name)


def to_tool_schemas() -> list[dict[str, Any]]:
    return [op.to_tool_schema() for op in OPERATIONS]


def _type_matches(expected: str, value: Any) -> bool:
    # bool is an int subclass; never accept it for numeric slots
    if expected == "string":
        return isinstance(value, str)
    if expected == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected == "integer":
        return isinstance(value, int) and not isinstance(value, bool)
    if expected == "boolean":
        return isinstance(value, bool)
    if expected == "array":
        return isinstance(value, list)
    return isinstance(value, dict)


def validate_parameters(name: str, params: dict[str, Any]) -> str | None:
    """Return an error message if *params* don't fit the schema, else ``None``.

    Optional parameters may be ``None``; required ones only when marked
    ``nullable`` (that is how the model clears a due date).
    """
    op = get_operation(name)
    if op is None:
        return f"Unknown tool: {name}"
    if not isinstance(params, dict):
        return f"Tool \"{name}\" expects an object of parameters."

    for required in op.required:
        if required not in params:
            return f"Missing required parameter \"{required}\" for {name}."
        if params[required] is None and not op.parameters[required].nullable:
            return f"Parameter \"{required}\" for {name} cannot be null."

    for pname, value in params.items():
        param = op.parameters.get(pname)
        if param is None:
            return f"Unknown parameter \"{pname}\" for {name}."
        if value is None:
            continue
        if not _type_matches(param.type, value):
            return f"Parameter \"{pname}\" for {name} must be of type {param.type}."
        if param.type == "array" and param.items:
            item_required = param.items.get("required", [])
            for i, item in enumerate(value):
                if not isinstance(item, dict) or any(k not in item for k in item_required):
                    return f"{pname}[{i}] for {name} must be an object with {', '.join(item_required)}."
    return None
