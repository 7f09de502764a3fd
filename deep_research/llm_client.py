"""OpenAI-backed completion services for the research session."""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Sequence

import instructor
from openai import AsyncOpenAI

from deep_research.capabilities import ModelT
from deep_research.config import Settings
from deep_research.models.messages import Message, Role, ToolCall
from deep_research.services import logger as log_service


def _to_openai_messages(messages: Sequence[Message]) -> list[dict[str, Any]]:
    openai_messages: list[dict[str, Any]] = []
    for message in messages:
        if message.role is Role.ASSISTANT and message.tool_calls:
            openai_messages.append(
                {
                    "role": "assistant",
                    "content": message.content or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": call.arguments},
                        }
                        for call in message.tool_calls
                    ],
                }
            )
            continue

        if message.role is Role.TOOL:
            openai_messages.append(
                {
                    "role": "tool",
                    "tool_call_id": message.tool_call_id or "",
                    "content": message.content,
                }
            )
            continue

        openai_messages.append({"role": message.role.value, "content": message.content})

    return openai_messages


def _from_openai_response(response: Any) -> Message:
    choice = response.choices[0].message
    tool_calls = tuple(
        ToolCall(
            id=tc.id,
            name=tc.function.name,
            arguments=getattr(tc.function, "arguments", None) or "{}",
        )
        for tc in getattr(choice, "tool_calls", None) or []
    )
    return Message.assistant(getattr(choice, "content", None) or "", tool_calls)


def _usage_tokens(response: Any) -> tuple[int, int]:
    usage = getattr(response, "usage", None)
    return (
        getattr(usage, "prompt_tokens", 0) or 0,
        getattr(usage, "completion_tokens", 0) or 0,
    )


class OpenAICompletionService:
    """Tool-calling chat completions."""

    def __init__(self, client: AsyncOpenAI, model: str, *, caller: str = "web_research"):
        self._client = client
        self.model = model
        self.caller = caller

    async def complete(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        *,
        parallel_tool_calls: bool = False,
    ) -> Message:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": _to_openai_messages(messages),
        }
        if tools:
            kwargs["tools"] = list(tools)
            kwargs["tool_choice"] = "auto"
            kwargs["parallel_tool_calls"] = parallel_tool_calls

        t0 = time.monotonic()
        try:
            response = await self._client.chat.completions.create(**kwargs)
        except Exception as e:
            log_service.log_llm_call(
                model=self.model,
                caller=self.caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(e),
            )
            raise

        input_tokens, output_tokens = _usage_tokens(response)
        log_service.log_llm_call(
            model=self.model,
            caller=self.caller,
            duration_ms=int((time.monotonic() - t0) * 1000),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
        return _from_openai_response(response)


class InstructorStructuredService:
    """Schema-validated completions via instructor.

    instructor re-asks the model up to ``max_retries`` times when the output
    fails validation and then raises; callers only see success or that
    terminal error.
    """

    def __init__(self, client: Any, model: str, *, max_retries: int = 3):
        self._client = client
        self.model = model
        self.max_retries = max_retries

    async def complete_structured(
        self,
        prompt: str,
        response_model: type[ModelT],
        *,
        caller: str = "structured",
    ) -> ModelT:
        t0 = time.monotonic()
        try:
            result = await self._client.chat.completions.create(
                model=self.model,
                response_model=response_model,
                messages=[{"role": "user", "content": prompt}],
                max_retries=self.max_retries,
            )
        except Exception as e:
            log_service.log_llm_call(
                model=self.model,
                caller=caller,
                duration_ms=int((time.monotonic() - t0) * 1000),
                status="error",
                error=str(e),
            )
            raise

        log_service.log_llm_call(
            model=self.model,
            caller=caller,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
        return result


@dataclass
class LLMServices:
    completion: OpenAICompletionService
    structured: InstructorStructuredService
    summarizer: InstructorStructuredService


def build_llm_services(settings: Settings) -> LLMServices:
    """Construct the OpenAI clients once for the whole session."""
    kwargs: dict[str, Any] = {"api_key": settings.openai_api_key}
    if settings.openai_base_url.strip():
        kwargs["base_url"] = settings.openai_base_url.strip()
    openai_client = AsyncOpenAI(**kwargs)
    structured_client = instructor.from_openai(openai_client, mode=instructor.Mode.JSON_SCHEMA)

    return LLMServices(
        completion=OpenAICompletionService(openai_client, settings.research_model),
        structured=InstructorStructuredService(
            structured_client,
            settings.research_model,
            max_retries=settings.structured_output_max_retries,
        ),
        summarizer=InstructorStructuredService(
            structured_client,
            settings.summarization_model,
            max_retries=settings.structured_output_max_retries,
        ),
    )
