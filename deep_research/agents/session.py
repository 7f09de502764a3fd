from __future__ import annotations

import time
from enum import Enum
from typing import AsyncGenerator, Awaitable, Callable

from loguru import logger

from deep_research.agents.summarizer import ResearchSummarizer
from deep_research.agents.web_research import WebResearchAgent
from deep_research.capabilities import (
    CompletionService,
    SearchService,
    StructuredCompletionService,
)
from deep_research.config import MAX_SEARCH_CALLS, MAX_SUMMARY_WORKERS, Settings
from deep_research.models.events import SessionEvent
from deep_research.models.messages import Ledger, Message, ResearchState
from deep_research.models.schemas import ClarifyWithUser, ResearchBrief, ResearchReport
from deep_research.services import logger as log_service
from deep_research.services import streaming
from deep_research.services.prompt_store import format_messages, format_notes, render_prompt

UserInput = Callable[[], Awaitable[str | None]]


class SessionState(str, Enum):
    AWAITING_CLARIFICATION = "awaiting_clarification"
    CLARIFIED = "clarified"
    RESEARCHING = "researching"
    REPORT_READY = "report_ready"
    ENDED = "ended"


class ResearchSession:
    """Runs one research session from the first user message to the report.

    Flow:
      1. Clarify: ask follow-up questions until the request is unambiguous
      2. Brief: turn the clarification conversation into a research brief
      3. Research: tool-calling loop of web searches and reflections
      4. Report: write the final report from the brief and compressed notes

    ``run`` is an async generator of SessionEvents. Errors from any external
    service end the session and propagate to the caller; no partial report
    is produced.
    """

    def __init__(
        self,
        *,
        completion: CompletionService,
        structured: StructuredCompletionService,
        search: SearchService,
        get_user_message: UserInput,
        summary_client: StructuredCompletionService | None = None,
        search_budget: int = MAX_SEARCH_CALLS,
        max_summary_workers: int = MAX_SUMMARY_WORKERS,
        max_research_turns: int = 15,
        num_search_results: int | None = None,
    ):
        self.structured = structured
        self.get_user_message = get_user_message
        self.clarify_ledger = Ledger("clarify")
        self.research_ledger = Ledger("research")
        self.research = ResearchState(search_budget=search_budget)
        self.summarizer = ResearchSummarizer(
            summary_client or structured,
            max_workers=max_summary_workers,
        )
        self.agent = WebResearchAgent(
            completion,
            search,
            self.summarizer,
            self.research_ledger,
            self.research,
            max_turns=max_research_turns,
            num_search_results=num_search_results,
        )
        self.state = SessionState.AWAITING_CLARIFICATION
        self.report: str | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        completion: CompletionService,
        structured: StructuredCompletionService,
        search: SearchService,
        get_user_message: UserInput,
        summary_client: StructuredCompletionService | None = None,
    ) -> "ResearchSession":
        return cls(
            completion=completion,
            structured=structured,
            search=search,
            get_user_message=get_user_message,
            summary_client=summary_client,
            search_budget=settings.effective_search_budget,
            max_summary_workers=settings.effective_summary_workers,
            max_research_turns=settings.max_research_turns,
            num_search_results=settings.exa_num_search_results,
        )

    def _expect(self, expected: SessionState) -> None:
        if self.state is not expected:
            raise RuntimeError(
                f"Session is {self.state.value}, expected {expected.value}"
            )

    def _transition(self, new_state: SessionState) -> None:
        log_service.log_research_step(
            "session_state",
            new_state.value,
            {"from": self.state.value},
        )
        self.state = new_state

    async def clarify(self) -> AsyncGenerator[SessionEvent, None]:
        """Exchange messages with the user until the request is clear.

        Ends with the state CLARIFIED, or ENDED when user input runs out.
        """
        self._expect(SessionState.AWAITING_CLARIFICATION)
        turn = 0
        while self.state is SessionState.AWAITING_CLARIFICATION:
            user_message = await self.get_user_message()
            if user_message is None:
                log_service.log_event("input_closed", "User input ended during clarification", turn=turn)
                self._transition(SessionState.ENDED)
                return
            user_message = user_message.strip()
            if not user_message:
                logger.warning("Ignoring empty user message")
                continue

            self.clarify_ledger.append(Message.user(user_message))
            turn += 1

            prompt = render_prompt(
                "clarify.prompt",
                messages=format_messages(self.clarify_ledger),
            )
            result = await self.structured.complete_structured(
                prompt, ClarifyWithUser, caller="clarify_with_user"
            )

            if result.need_clarification:
                self.clarify_ledger.append(Message.assistant(result.question))
                yield streaming.clarification_requested(result.question, turn)
                continue

            self.clarify_ledger.append(Message.assistant(result.verification))
            self._transition(SessionState.CLARIFIED)
            yield streaming.scope_confirmed(result.verification, turn)

    async def generate_brief(self) -> str:
        """Condense the clarification conversation into the research brief."""
        self._expect(SessionState.CLARIFIED)
        prompt = render_prompt(
            "brief.prompt",
            messages=format_messages(self.clarify_ledger),
        )
        result = await self.structured.complete_structured(
            prompt, ResearchBrief, caller="research_brief"
        )
        brief = result.research_brief

        self.research.brief = brief
        self.clarify_ledger.append(Message.assistant(brief))
        self.research_ledger.append(Message.user(brief))
        self._transition(SessionState.RESEARCHING)
        return brief

    async def run_research(self) -> AsyncGenerator[SessionEvent, None]:
        self._expect(SessionState.RESEARCHING)
        while True:
            continue_research, events = await self.agent.step()
            for event in events:
                yield event
            if not continue_research:
                break
        log_service.log_research_step("web_research", "completed", self.agent.stats())

    async def write_report(self) -> str:
        self._expect(SessionState.RESEARCHING)
        prompt = render_prompt(
            "report.prompt",
            research_brief=self.research.brief,
            findings=format_notes(self.research.compressed_notes),
        )
        result = await self.structured.complete_structured(
            prompt, ResearchReport, caller="research_report"
        )
        self.report = result.report
        self._transition(SessionState.REPORT_READY)
        return result.report

    async def run(self) -> AsyncGenerator[SessionEvent, None]:
        """Run every phase in order, yielding progress events."""
        t0 = time.monotonic()

        async for event in self.clarify():
            yield event
        if self.state is SessionState.ENDED:
            return

        brief = await self.generate_brief()
        yield streaming.brief_created(brief)

        async for event in self.run_research():
            yield event

        yield streaming.synthesis_started(len(self.research.compressed_notes))
        report = await self.write_report()

        yield streaming.research_complete(
            report,
            search_calls=self.research.search_calls,
            notes_count=len(self.research.compressed_notes),
            runtime_ms=int((time.monotonic() - t0) * 1000),
        )
