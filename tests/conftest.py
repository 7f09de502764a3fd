"""Scripted stand-ins for the completion, structured-completion and search services."""
from __future__ import annotations

import asyncio
import re
from typing import Any, Sequence

import pytest

from deep_research.models.messages import Message, ToolCall
from deep_research.models.schemas import WebpageSummary

_CONTENT_RE = re.compile(r"<WEBPAGE_CONTENT>\n(.*?)\n</WEBPAGE_CONTENT>", re.DOTALL)


def document_in(prompt: str) -> str:
    """Pull the raw document text back out of a summarize prompt."""
    match = _CONTENT_RE.search(prompt)
    assert match, "summarize prompt does not embed the document"
    return match.group(1)


def search_call(call_id: str, query: str) -> ToolCall:
    return ToolCall(id=call_id, name="search_tool", arguments=f'{{"query": "{query}"}}')


def reflection_call(call_id: str, reflection: str) -> ToolCall:
    return ToolCall(
        id=call_id, name="reflection_tool", arguments=f'{{"reflection": "{reflection}"}}'
    )


class ScriptedCompletion:
    """Replays model turns in order and records every request."""

    def __init__(self, turns: Sequence[Message | Exception]):
        self.turns = list(turns)
        self.requests: list[dict[str, Any]] = []

    async def complete(self, messages, tools, *, parallel_tool_calls=False) -> Message:
        self.requests.append(
            {
                "messages": list(messages),
                "tools": list(tools),
                "parallel_tool_calls": parallel_tool_calls,
            }
        )
        if not self.turns:
            return Message.assistant("Research done.")
        turn = self.turns.pop(0)
        if isinstance(turn, Exception):
            raise turn
        return turn


class ScriptedStructured:
    """Answers structured requests from per-schema scripts.

    Summaries are derived from the document so ordering can be checked.
    """

    def __init__(self, responses: dict[type, list[Any]] | None = None):
        self.responses = {k: list(v) for k, v in (responses or {}).items()}
        self.calls: list[tuple[str, type, str]] = []

    async def complete_structured(self, prompt, response_model, *, caller="structured"):
        self.calls.append((caller, response_model, prompt))
        if response_model is WebpageSummary and response_model not in self.responses:
            return WebpageSummary(summary=f"summary of {document_in(prompt)}")
        item = self.responses[response_model].pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def callers(self) -> list[str]:
        return [caller for caller, _, _ in self.calls]


class FakeSearch:
    def __init__(self, documents: dict[str, list[str]] | None = None, default: list[str] | None = None):
        self.documents = documents or {}
        self.default = default if default is not None else ["page one", "page two"]
        self.queries: list[str] = []

    async def search(self, query: str, num_results: int | None = None) -> list[str]:
        self.queries.append(query)
        return list(self.documents.get(query, self.default))


class ConcurrencyProbe:
    """Structured service that tracks how many calls are in flight at once."""

    def __init__(self, delays: dict[str, float] | None = None, default_delay: float = 0.01):
        self.delays = delays or {}
        self.default_delay = default_delay
        self.active = 0
        self.peak = 0
        self.calls: list[str] = []
        self.cancelled = 0
        self.failures: dict[str, Exception] = {}
        self.gate: asyncio.Event | None = None

    async def complete_structured(self, prompt, response_model, *, caller="structured"):
        document = document_in(prompt)
        self.calls.append(document)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            if self.gate is not None:
                await self.gate.wait()
            await asyncio.sleep(self.delays.get(document, self.default_delay))
        except asyncio.CancelledError:
            self.cancelled += 1
            raise
        finally:
            self.active -= 1
        if document in self.failures:
            raise self.failures[document]
        return response_model(summary=f"sum-{document.removeprefix('doc-')}")


@pytest.fixture
def user_input():
    """Build an async line reader that returns None once the script runs out."""

    def build(lines: Sequence[str]):
        remaining = list(lines)
        reads: list[str | None] = []

        async def read() -> str | None:
            line = remaining.pop(0) if remaining else None
            reads.append(line)
            return line

        read.reads = reads  # type: ignore[attr-defined]
        return read

    return build
