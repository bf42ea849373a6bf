"""Render MCP tool-call results as display text."""
from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping

__all__ = [
    "EMPTY_RESULT_NOTICE",
    "format_result_content",
]

EMPTY_RESULT_NOTICE = "Tool returned no text content. Inspect full payload below:"


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def _as_dict(value: Any) -> Dict[str, Any]:
    """Coerce a pydantic model or mapping into a plain ``dict``; anything else is empty."""

    if hasattr(value, "model_dump"):
        try:
            value = value.model_dump(mode="json", by_alias=True, exclude_none=True)
        except Exception:  # pragma: no cover – exotic models
            return {}
    return dict(value) if isinstance(value, Mapping) else {}


def format_result_content(result: Any) -> str:
    """Return a human-readable rendering of a ``CallToolResult``.

    ``text`` chunks are trimmed (blank ones skipped), ``object`` chunks are
    dumped as indented JSON of their ``data`` and any other chunk type becomes
    a one-line placeholder.  When nothing renders, the whole payload is dumped
    after a notice.  Malformed input never raises.
    """

    payload = _as_dict(result)
    content = payload.get("content")
    if not isinstance(content, list):
        content = []

    sections: List[str] = []
    for raw_chunk in content:
        chunk = _as_dict(raw_chunk)
        kind = chunk.get("type") or "unknown"
        if kind == "text":
            text = chunk.get("text")
            text = text.strip() if isinstance(text, str) else ""
            if text:
                sections.append(text)
        elif kind == "object":
            data = chunk.get("data")
            sections.append(_dump({} if data is None else data))
        else:
            sections.append(f"[{kind} content not rendered]")

    if not sections:
        sections.append(EMPTY_RESULT_NOTICE)
        sections.append(_dump(payload))
    return "\n\n".join(sections)
