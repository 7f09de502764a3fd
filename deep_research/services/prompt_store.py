from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from string import Template
from typing import Any, Iterable

from deep_research.models.messages import Message


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


@dataclass
class _CachedCatalog:
    path: Path
    mtime_ns: int
    prompts: dict[str, Any]


_cached: _CachedCatalog | None = None


def load_catalog(path: Path | None = None) -> dict[str, Any]:
    """Load the prompt catalog, re-reading it only when the file changes."""
    global _cached
    path = path or PROMPTS_PATH
    mtime_ns = path.stat().st_mtime_ns
    if _cached is not None and _cached.path == path and _cached.mtime_ns == mtime_ns:
        return _cached.prompts

    prompts = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(prompts, dict):
        raise ValueError(f"Prompt catalog must be a JSON object: {path}")
    _cached = _CachedCatalog(path=path, mtime_ns=mtime_ns, prompts=prompts)
    return prompts


def get_prompt_template(key: str) -> Template:
    """Look up a dotted key such as ``summarize.prompt``."""
    node: Any = load_catalog()
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(f"Prompt key not found: {key}")
        node = node[part]
    if not isinstance(node, str):
        raise TypeError(f"Prompt key must map to a string: {key}")
    return Template(node)


def render_prompt(key: str, **values: Any) -> str:
    """Render a catalog prompt; ``today`` defaults to the current ISO date."""
    values.setdefault("today", date.today().isoformat())
    try:
        return get_prompt_template(key).substitute(**values)
    except KeyError as exc:
        if str(exc.args[0]).startswith("Prompt key not found"):
            raise
        raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc


def format_messages(messages: Iterable[Message]) -> str:
    """Render a conversation as the JSON list the prompts embed."""
    return json.dumps(
        [{"role": m.role.value, "content": m.content} for m in messages],
        indent=2,
        ensure_ascii=False,
    )


def format_notes(notes: Iterable[str]) -> str:
    return "\n".join(note for note in notes if note)


def clear_prompt_cache() -> None:
    global _cached
    _cached = None
