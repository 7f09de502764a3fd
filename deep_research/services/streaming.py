from __future__ import annotations

from deep_research.models.events import EventType, SessionEvent


def clarification_requested(question: str, turn: int) -> SessionEvent:
    """The model needs more detail before research can start."""
    return SessionEvent(
        event=EventType.CLARIFICATION_REQUESTED,
        data={"question": question, "turn": turn},
    )


def scope_confirmed(verification: str, turn: int) -> SessionEvent:
    return SessionEvent(
        event=EventType.SCOPE_CONFIRMED,
        data={"verification": verification, "turn": turn},
    )


def brief_created(brief: str) -> SessionEvent:
    return SessionEvent(event=EventType.BRIEF_CREATED, data={"brief": brief})


def research_turn(turn: int, tool_calls: list[str]) -> SessionEvent:
    return SessionEvent(
        event=EventType.RESEARCH_TURN,
        data={"turn": turn, "tool_calls": tool_calls},
    )


def search_started(query: str, search_call: int, budget: int) -> SessionEvent:
    return SessionEvent(
        event=EventType.SEARCH_STARTED,
        data={"query": query, "search_call": search_call, "budget": budget},
    )


def search_skipped(query: str, budget: int) -> SessionEvent:
    return SessionEvent(
        event=EventType.SEARCH_SKIPPED,
        data={"query": query, "budget": budget},
    )


def summaries_ready(query: str, documents: int, notes_total: int) -> SessionEvent:
    return SessionEvent(
        event=EventType.SUMMARIES_READY,
        data={"query": query, "documents": documents, "notes_total": notes_total},
    )


def reflection_recorded(reflection: str) -> SessionEvent:
    return SessionEvent(event=EventType.REFLECTION_RECORDED, data={"reflection": reflection})


def synthesis_started(notes_count: int) -> SessionEvent:
    return SessionEvent(event=EventType.SYNTHESIS_STARTED, data={"notes_count": notes_count})


def research_complete(
    report: str,
    *,
    search_calls: int,
    notes_count: int,
    runtime_ms: int,
) -> SessionEvent:
    return SessionEvent(
        event=EventType.RESEARCH_COMPLETE,
        data={
            "report": report,
            "search_calls": search_calls,
            "notes_count": notes_count,
            "runtime_ms": runtime_ms,
        },
    )
