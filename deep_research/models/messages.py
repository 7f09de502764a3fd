from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from deep_research.config import MAX_SEARCH_CALLS


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation exactly as the completion service returned it."""

    id: str
    name: str
    arguments: str = "{}"


@dataclass(frozen=True, slots=True)
class Message:
    role: Role
    content: str = ""
    tool_call_id: str | None = None
    name: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, content: str, *, tool_call_id: str, name: str) -> "Message":
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id, name=name)


class Ledger:
    """Append-only message history for one conversation.

    Readers only ever see tuple snapshots, so earlier turns cannot be
    reordered or edited once appended.
    """

    def __init__(self, name: str):
        self.name = name
        self._messages: list[Message] = []

    def append(self, message: Message) -> None:
        if not isinstance(message, Message):
            raise TypeError(f"Ledger '{self.name}' only accepts Message, got {type(message).__name__}")
        self._messages.append(message)

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self.messages)


@dataclass
class ResearchState:
    """Working memory of one research phase."""

    search_budget: int = MAX_SEARCH_CALLS
    compressed_notes: list[str] = field(default_factory=list)
    search_calls: int = 0
    _brief: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.search_budget = min(max(self.search_budget, 0), MAX_SEARCH_CALLS)

    @property
    def brief(self) -> str:
        return self._brief or ""

    @brief.setter
    def brief(self, value: str) -> None:
        if self._brief is not None:
            raise RuntimeError("Research brief is already set")
        self._brief = value

    @property
    def has_brief(self) -> bool:
        return self._brief is not None

    @property
    def budget_exhausted(self) -> bool:
        return self.search_calls >= self.search_budget

    def record_search(self) -> int:
        """Count one dispatched search; refuses to go past the budget."""
        if self.budget_exhausted:
            raise RuntimeError(f"Search budget of {self.search_budget} calls already used")
        self.search_calls += 1
        return self.search_calls

    def add_notes(self, notes: list[str]) -> None:
        self.compressed_notes.extend(notes)
