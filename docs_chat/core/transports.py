"""Transport selection for MCP sessions.

:func:`build_attempts` turns a transport preference and the two candidate
endpoints into the ordered list of connection attempts a
:class:`~docs_chat.core.session.ChatSession` walks through.  Nothing is
constructed up front: each attempt carries a zero-argument factory that the
session invokes while iterating, so a transport that cannot even be built
fails as an attempt rather than failing the selection.

Public helpers
--------------
- :class:`TransportPreference` – recognised preference values.
- :func:`normalize_preference` – map free-form input to a preference.
- :func:`build_attempts` – ordered attempts for a preference.
- :func:`strip_sse_suffix` – derive the streamable URL from an SSE URL.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional

from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client

__all__ = [
    "TransportPreference",
    "TransportAttempt",
    "normalize_preference",
    "build_attempts",
    "auth_headers",
    "strip_sse_suffix",
]

_SSE_SUFFIX = re.compile(r"/sse/?$", re.IGNORECASE)


class TransportPreference(str, Enum):
    """Which wire transport(s) a session may use."""

    AUTO = "auto"
    STREAMABLE = "streamable"
    SSE = "sse"


@dataclass(frozen=True)
class TransportAttempt:
    """One connection attempt: a label for logs/UI and a transport factory.

    ``create()`` returns a fresh, not yet entered async context manager that
    yields the read/write streams for :class:`mcp.ClientSession` (plus, for
    streamable HTTP, a session-id getter).
    """

    transport: TransportPreference
    label: str
    create: Callable[[], AsyncContextManager[Any]]


def normalize_preference(value: Optional[str | TransportPreference]) -> TransportPreference:
    """Return the preference named by *value*, defaulting to ``AUTO``."""

    if isinstance(value, TransportPreference):
        return value
    try:
        return TransportPreference((value or "").strip().lower())
    except ValueError:
        return TransportPreference.AUTO


def auth_headers(api_key: Optional[str]) -> Dict[str, str]:
    """Return the HTTP headers carrying *api_key*."""

    return {"X-API-Key": api_key} if api_key else {}


def strip_sse_suffix(url: Optional[str]) -> Optional[str]:
    """Return *url* without a trailing ``/sse`` path segment."""

    if not url:
        return url
    return _SSE_SUFFIX.sub("", url)


def build_attempts(
    preference: Optional[str | TransportPreference],
    streamable_url: str,
    sse_url: str,
    headers: Optional[Dict[str, str]] = None,
) -> List[TransportAttempt]:
    """Return the ordered transport attempts for *preference*.

    A forced preference yields exactly one attempt.  ``auto`` (or anything
    unrecognised) yields streamable HTTP first, then SSE; streamable HTTP is
    the newer protocol and wins the tie.
    """

    pref = normalize_preference(preference)
    hdrs = dict(headers or {})
    attempts: List[TransportAttempt] = []

    if pref in (TransportPreference.STREAMABLE, TransportPreference.AUTO):
        attempts.append(
            TransportAttempt(
                transport=TransportPreference.STREAMABLE,
                label=f"streamable-http @ {streamable_url}",
                create=lambda: streamablehttp_client(streamable_url, headers=hdrs),
            )
        )

    if pref in (TransportPreference.SSE, TransportPreference.AUTO):
        attempts.append(
            TransportAttempt(
                transport=TransportPreference.SSE,
                label=f"sse @ {sse_url}",
                create=lambda: sse_client(sse_url, headers=hdrs),
            )
        )

    return attempts
