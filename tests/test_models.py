"""Tests for ledgers, research state and session events."""
import json

import pytest

from deep_research.models.events import EventType
from deep_research.models.messages import Ledger, Message, ResearchState, Role
from deep_research.models.schemas import WebpageSummary
from deep_research.services import streaming


class TestLedger:
    def test_append_keeps_order(self):
        ledger = Ledger("clarify")
        ledger.append(Message.user("one"))
        ledger.append(Message.assistant("two"))

        assert [m.content for m in ledger] == ["one", "two"]
        assert ledger.last == Message.assistant("two")
        assert len(ledger) == 2

    def test_snapshot_cannot_change_ledger(self):
        ledger = Ledger("research")
        ledger.append(Message.user("brief"))

        snapshot = ledger.messages
        with pytest.raises(AttributeError):
            snapshot.append(Message.user("sneaky"))  # type: ignore[attr-defined]
        with pytest.raises(AttributeError):
            snapshot[0].content = "edited"  # type: ignore[misc]

        assert ledger.messages == (Message.user("brief"),)

    def test_rejects_non_messages(self):
        with pytest.raises(TypeError):
            Ledger("research").append({"role": "user", "content": "hi"})  # type: ignore[arg-type]

    def test_tool_message_fields(self):
        message = Message.tool("result", tool_call_id="call_1", name="search_tool")

        assert message.role is Role.TOOL
        assert message.tool_call_id == "call_1"
        assert message.name == "search_tool"


class TestResearchState:
    def test_brief_is_set_once(self):
        state = ResearchState()
        assert state.brief == ""
        assert state.has_brief is False

        state.brief = "the brief"

        assert state.brief == "the brief"
        with pytest.raises(RuntimeError):
            state.brief = "another brief"

    def test_record_search_stops_at_budget(self):
        state = ResearchState(search_budget=2)

        assert state.record_search() == 1
        assert state.record_search() == 2
        assert state.budget_exhausted is True
        with pytest.raises(RuntimeError):
            state.record_search()
        assert state.search_calls == 2

    def test_budget_is_capped_at_five(self):
        assert ResearchState(search_budget=50).search_budget == 5


class TestEvents:
    def test_research_complete_event_structure(self):
        event = streaming.research_complete(
            "# Report", search_calls=3, notes_count=12, runtime_ms=900
        )

        assert event.event == EventType.RESEARCH_COMPLETE
        assert event.data == {
            "report": "# Report",
            "search_calls": 3,
            "notes_count": 12,
            "runtime_ms": 900,
        }

    def test_format_renders_sse_frame(self):
        event = streaming.search_started("artemis", search_call=2, budget=5)

        frame = event.format()

        assert frame.startswith("event: search_started\n")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload == {"query": "artemis", "search_call": 2, "budget": 5}


class TestWebpageSummary:
    def test_keeps_first_five_excerpts(self):
        summary = WebpageSummary(summary="s", key_excerpts=[f"quote {i}" for i in range(7)])

        assert summary.key_excerpts == [f"quote {i}" for i in range(5)]

    def test_accepts_oversized_model_json(self):
        payload = '{"summary": "s", "key_excerpts": ["a", "b", "c", "d", "e", "f"]}'

        assert WebpageSummary.model_validate_json(payload).key_excerpts == ["a", "b", "c", "d", "e"]
