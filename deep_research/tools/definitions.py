from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ValidationError

from deep_research.models.messages import ToolCall
from deep_research.models.schemas import ReflectionToolInput, SearchToolInput


class ToolName(str, Enum):
    SEARCH = "search_tool"
    REFLECT = "reflection_tool"


class ToolDecodeError(ValueError):
    """A tool call named an undeclared tool or carried an invalid payload."""

    def __init__(self, tool_call: ToolCall, reason: str):
        self.tool_call = tool_call
        super().__init__(f"Cannot decode tool call '{tool_call.name}' ({tool_call.id}): {reason}")


@dataclass(frozen=True, slots=True)
class SearchInvocation:
    id: str
    query: str
    name: ToolName = ToolName.SEARCH


@dataclass(frozen=True, slots=True)
class ReflectionInvocation:
    id: str
    reflection: str
    name: ToolName = ToolName.REFLECT


ToolInvocation = Union[SearchInvocation, ReflectionInvocation]


def _function_tool(name: ToolName, description: str, schema: type[BaseModel]) -> dict[str, Any]:
    parameters = schema.model_json_schema()
    parameters.pop("title", None)
    parameters["additionalProperties"] = False
    return {
        "type": "function",
        "function": {
            "name": name.value,
            "description": description,
            "parameters": parameters,
        },
    }


SEARCH_TOOL = _function_tool(
    ToolName.SEARCH,
    "Search the web for information. Use specific, targeted queries.",
    SearchToolInput,
)

REFLECTION_TOOL = _function_tool(
    ToolName.REFLECT,
    "Reflect on the research so far and decide whether the research is complete.",
    ReflectionToolInput,
)

RESEARCH_TOOLS: list[dict[str, Any]] = [SEARCH_TOOL, REFLECTION_TOOL]


def _parse_arguments(tool_call: ToolCall, schema: type[BaseModel]) -> BaseModel:
    try:
        payload = json.loads(tool_call.arguments or "{}")
    except json.JSONDecodeError as exc:
        raise ToolDecodeError(tool_call, f"arguments are not valid JSON ({exc.msg})") from exc
    if not isinstance(payload, dict):
        raise ToolDecodeError(tool_call, "arguments must be a JSON object")
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise ToolDecodeError(tool_call, str(exc)) from exc


def decode_tool_call(tool_call: ToolCall) -> ToolInvocation:
    """Map a raw tool call onto its typed invocation."""
    try:
        name = ToolName(tool_call.name)
    except ValueError as exc:
        raise ToolDecodeError(tool_call, "unknown tool") from exc

    if name is ToolName.SEARCH:
        search_input = _parse_arguments(tool_call, SearchToolInput)
        return SearchInvocation(id=tool_call.id, query=search_input.query)

    reflection_input = _parse_arguments(tool_call, ReflectionToolInput)
    return ReflectionInvocation(id=tool_call.id, reflection=reflection_input.reflection)
