from __future__ import annotations

import json

import pytest

from deep_research.models.messages import Message
from deep_research.services.prompt_store import (
    clear_prompt_cache,
    format_messages,
    format_notes,
    load_catalog,
    render_prompt,
)


def test_render_prompt_substitutes_template_values():
    prompt = render_prompt("summarize.prompt", raw_content="raw page text", today="2026-02-21")

    assert "raw page text" in prompt
    assert "2026-02-21" in prompt


def test_render_prompt_defaults_today():
    prompt = render_prompt("research.system_prompt", search_budget=5)

    assert "$today" not in prompt
    assert "at most 5 search_tool calls" in prompt


def test_render_prompt_raises_for_unknown_key():
    with pytest.raises(KeyError):
        render_prompt("missing.prompt.key")


def test_render_prompt_raises_for_missing_value():
    with pytest.raises(KeyError, match="research_brief"):
        render_prompt("report.prompt", findings="notes")


def test_format_messages_renders_role_and_content():
    rendered = format_messages([Message.user("What is \"Artemis\"?"), Message.assistant("A NASA program.")])

    assert json.loads(rendered) == [
        {"role": "user", "content": 'What is "Artemis"?'},
        {"role": "assistant", "content": "A NASA program."},
    ]


def test_format_notes_skips_empty_entries():
    assert format_notes(["one", "", "two"]) == "one\ntwo"


def test_load_catalog_rereads_changed_file(tmp_path):
    catalog = tmp_path / "prompts.json"
    catalog.write_text(json.dumps({"greeting": {"prompt": "hello"}}), encoding="utf-8")
    clear_prompt_cache()

    assert load_catalog(catalog)["greeting"]["prompt"] == "hello"

    catalog.write_text(json.dumps({"greeting": {"prompt": "hi again"}}), encoding="utf-8")
    clear_prompt_cache()

    assert load_catalog(catalog)["greeting"]["prompt"] == "hi again"
    clear_prompt_cache()


def test_load_catalog_rejects_non_object(tmp_path):
    catalog = tmp_path / "prompts.json"
    catalog.write_text("[]", encoding="utf-8")

    with pytest.raises(ValueError):
        load_catalog(catalog)
