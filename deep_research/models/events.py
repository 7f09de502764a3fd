from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    CLARIFICATION_REQUESTED = "clarification_requested"
    SCOPE_CONFIRMED = "scope_confirmed"
    BRIEF_CREATED = "brief_created"
    RESEARCH_TURN = "research_turn"
    SEARCH_STARTED = "search_started"
    SEARCH_SKIPPED = "search_skipped"
    SUMMARIES_READY = "summaries_ready"
    REFLECTION_RECORDED = "reflection_recorded"
    SYNTHESIS_STARTED = "synthesis_started"
    RESEARCH_COMPLETE = "research_complete"


@dataclass
class SessionEvent:
    event: EventType
    data: dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data)}\n\n"
