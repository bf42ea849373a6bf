"""Connection and target-management core.

Re-exports the session client, the target registry and the result formatter
so front ends can import them from one place.
"""
from __future__ import annotations

from .formatting import format_result_content  # noqa: F401
from .session import ChatSession, SessionState  # noqa: F401
from .targets import TargetManager, load_targets  # noqa: F401
