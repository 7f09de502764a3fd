from __future__ import annotations

from typing import Any

from loguru import logger

from deep_research.agents.summarizer import ResearchSummarizer
from deep_research.capabilities import CompletionService, SearchService
from deep_research.models.events import SessionEvent
from deep_research.models.messages import Ledger, Message, ResearchState
from deep_research.services import logger as log_service
from deep_research.services import streaming
from deep_research.services.prompt_store import render_prompt
from deep_research.tools.definitions import (
    RESEARCH_TOOLS,
    ReflectionInvocation,
    SearchInvocation,
    ToolInvocation,
    decode_tool_call,
)

BUDGET_EXHAUSTED_RESPONSE = (
    "Search budget exhausted ({budget} searches used). The search was not run; "
    "answer with the information already gathered."
)


class WebResearchAgent:
    """Drives the research conversation one model turn at a time.

    Each ``step`` asks the model for its next move, appends that turn to the
    research ledger and executes the requested tools one after another, so
    tool responses land in the ledger in the order the model asked for them.
    The search budget is enforced here: once it is spent, further search
    calls get a stub response and the phase is reported finished.
    """

    name = "web_research"

    def __init__(
        self,
        completion: CompletionService,
        search: SearchService,
        summarizer: ResearchSummarizer,
        ledger: Ledger,
        state: ResearchState,
        *,
        max_turns: int = 15,
        num_search_results: int | None = None,
    ):
        self.completion = completion
        self.search = search
        self.summarizer = summarizer
        self.ledger = ledger
        self.state = state
        self.max_turns = max_turns
        self.num_search_results = num_search_results
        self.turns = 0

    @property
    def system_prompt(self) -> str:
        return render_prompt("research.system_prompt", search_budget=self.state.search_budget)

    def _conversation(self) -> list[Message]:
        return [Message.system(self.system_prompt), *self.ledger.messages]

    async def _run_search(self, invocation: SearchInvocation) -> tuple[str, list[SessionEvent]]:
        events: list[SessionEvent] = []
        if self.state.budget_exhausted:
            logger.info(
                f"Skipping search {invocation.query!r}: budget of {self.state.search_budget} reached"
            )
            events.append(streaming.search_skipped(invocation.query, self.state.search_budget))
            return BUDGET_EXHAUSTED_RESPONSE.format(budget=self.state.search_budget), events

        call_number = self.state.record_search()
        events.append(
            streaming.search_started(invocation.query, call_number, self.state.search_budget)
        )
        documents = await self.search.search(invocation.query, self.num_search_results)
        content = await self.summarizer.summarize(documents, self.state)
        events.append(
            streaming.summaries_ready(
                invocation.query,
                documents=len(documents),
                notes_total=len(self.state.compressed_notes),
            )
        )
        log_service.log_research_step(
            "search",
            "completed",
            {"query": invocation.query, "call": call_number, "documents": len(documents)},
        )
        return content, events

    async def _run_tool(self, invocation: ToolInvocation) -> tuple[str, list[SessionEvent]]:
        if isinstance(invocation, SearchInvocation):
            return await self._run_search(invocation)
        if isinstance(invocation, ReflectionInvocation):
            return (
                f"Reflection recorded: {invocation.reflection}",
                [streaming.reflection_recorded(invocation.reflection)],
            )
        raise TypeError(f"Unhandled tool invocation: {invocation!r}")

    async def step(self) -> tuple[bool, list[SessionEvent]]:
        """Run one model turn and its tool calls.

        Returns ``(continue_research, events)``. Any capability or tool error
        propagates to the caller unchanged.
        """
        self.turns += 1
        turn = await self.completion.complete(
            self._conversation(),
            RESEARCH_TOOLS,
            parallel_tool_calls=False,
        )
        self.ledger.append(turn)

        events: list[SessionEvent] = [
            streaming.research_turn(self.turns, [call.name for call in turn.tool_calls])
        ]
        if not turn.tool_calls:
            logger.info(f"Research finished after {self.turns} turns")
            return False, events

        # Decode everything first so a malformed turn runs no tools at all.
        invocations = [decode_tool_call(call) for call in turn.tool_calls]

        for invocation in invocations:
            content, tool_events = await self._run_tool(invocation)
            events.extend(tool_events)
            self.ledger.append(
                Message.tool(content, tool_call_id=invocation.id, name=invocation.name.value)
            )

        if self.state.budget_exhausted:
            logger.info(f"Search budget of {self.state.search_budget} reached, ending research")
            return False, events
        if self.turns >= self.max_turns:
            logger.warning(f"Research stopped after reaching {self.max_turns} model turns")
            return False, events
        return True, events

    def stats(self) -> dict[str, Any]:
        return {
            "turns": self.turns,
            "search_calls": self.state.search_calls,
            "notes": len(self.state.compressed_notes),
        }
