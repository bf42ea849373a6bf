"""docs-chat: terminal and browser chat client for an MCP documentation assistant."""
from __future__ import annotations

__version__ = "0.1.0"
