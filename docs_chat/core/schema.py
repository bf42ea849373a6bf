"""Primary-argument inference from a tool's advertised input schema."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

__all__ = [
    "PREFERRED_ARGUMENT_NAMES",
    "schema_properties",
    "infer_primary_argument",
]

PREFERRED_ARGUMENT_NAMES = ("query", "question")


def schema_properties(schema: Optional[Mapping[str, Any]]) -> Dict[str, Optional[str]]:
    """Return ``{property name: declared primitive type}`` for an object schema.

    Non-object schemas and malformed property entries yield an empty mapping
    or a ``None`` type respectively.
    """

    if not isinstance(schema, Mapping):
        return {}
    if schema.get("type", "object") != "object":
        return {}
    props = schema.get("properties")
    if not isinstance(props, Mapping):
        return {}

    kinds: Dict[str, Optional[str]] = {}
    for name, prop in props.items():
        kind = prop.get("type") if isinstance(prop, Mapping) else None
        kinds[str(name)] = kind if isinstance(kind, str) else None
    return kinds


def infer_primary_argument(schema: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Return the argument name that should receive the user's question.

    Order of preference: a property named ``query``; then ``question``; then
    the only property; then the only string-typed property.  Returns ``None``
    when none of these rules applies so callers keep their current default.
    """

    props = schema_properties(schema)
    for name in PREFERRED_ARGUMENT_NAMES:
        if name in props:
            return name
    if len(props) == 1:
        return next(iter(props))
    strings = [name for name, kind in props.items() if kind == "string"]
    if len(strings) == 1:
        return strings[0]
    return None
