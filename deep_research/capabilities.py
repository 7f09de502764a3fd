"""External service contracts consumed by the research agents.

Implementations are built once at startup (see ``llm_client`` and
``tools.exa_search``) and handed to the agents explicitly. Every method is a
coroutine, so cancelling the calling task cancels the in-flight request.
"""
from __future__ import annotations

from typing import Any, Protocol, Sequence, TypeVar

from pydantic import BaseModel

from deep_research.models.messages import Message

ModelT = TypeVar("ModelT", bound=BaseModel)


class CompletionService(Protocol):
    async def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        *,
        parallel_tool_calls: bool = False,
    ) -> Message:
        """Return the model's turn: free text, tool calls, or both."""
        ...


class StructuredCompletionService(Protocol):
    async def complete_structured(
        self,
        prompt: str,
        response_model: type[ModelT],
        *,
        caller: str = "structured",
    ) -> ModelT:
        """Return a validated ``response_model`` instance or raise a terminal error."""
        ...


class SearchService(Protocol):
    async def search(self, query: str, num_results: int | None = None) -> list[str]:
        """Return result document texts in ranking order."""
        ...
