"""Shared fixtures: environment isolation and in-memory MCP fakes."""
from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest
from mcp import types

from docs_chat.core.session import ChatSession
from docs_chat.core.transports import TransportAttempt, TransportPreference
from docs_chat.data_models import DEFAULT_TOOL_NAME, SessionConfig
from docs_chat.settings import get_settings

_ENV_VARS = (
    "MCP_SSE_URL",
    "MCP_SERVER_URL",
    "MCP_STREAMABLE_URL",
    "MCP_API_KEY",
    "CISCO_DOCS_API_KEY",
    "X_API_KEY",
    "MCP_TOOL_NAME",
    "MCP_TRANSPORT",
    "MCP_EXTRA_ARGS",
    "MCP_PRODUCT",
    "DOCS_PRODUCT",
    "MCP_TARGETS",
    "MCP_CLOSE_TIMEOUT",
    "MCP_LOG_LEVEL",
    "CHATBOT_HOST",
    "CHATBOT_PORT",
    "PORT",
    "CHATBOT_TARGET",
    "CHATBOT_PRODUCT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Run every test without ambient docs-chat configuration."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()  # type: ignore[attr-defined]
    yield
    get_settings.cache_clear()  # type: ignore[attr-defined]


def make_tool(name: str = DEFAULT_TOOL_NAME, properties: Optional[Dict[str, Any]] = None) -> types.Tool:
    schema = {"type": "object", "properties": properties if properties is not None else {"query": {"type": "string"}}}
    return types.Tool(name=name, description="test tool", inputSchema=schema)


class FakeTransport:  # noqa: D101 – test helper
    def __init__(self, kind: str, server: "FakeServer") -> None:
        self.kind = kind
        self.server = server
        self.closed = False

    async def __aenter__(self):
        if self.kind in self.server.fail_on_enter:
            raise ConnectionError(f"{self.kind} unreachable")
        return (self.kind, self.kind)

    async def __aexit__(self, *exc_info) -> bool:
        self.closed = True
        if self.kind in self.server.hang_on_exit:
            await asyncio.sleep(3600)
        if self.kind in self.server.fail_on_exit:
            raise RuntimeError(f"{self.kind} teardown exploded")
        return False


class FakeClientSession:  # noqa: D101 – test helper
    def __init__(self, read_stream, write_stream, client_info=None, *, server: "FakeServer") -> None:
        self.kind = read_stream
        self.server = server
        self.client_info = client_info
        self.closed = False
        self.calls: List[tuple[str, Dict[str, Any]]] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> bool:
        self.closed = True
        return False

    async def initialize(self) -> None:
        self.server.initialize_calls += 1
        # Yield to the loop so concurrent callers can interleave.
        for _ in range(3):
            await asyncio.sleep(0)
        if self.kind in self.server.fail_on_initialize:
            raise ConnectionError(f"{self.kind} handshake failed")

    async def list_tools(self) -> types.ListToolsResult:
        return types.ListToolsResult(tools=list(self.server.tools))

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> types.CallToolResult:
        self.calls.append((name, arguments))
        self.server.calls.append((name, arguments))
        return types.CallToolResult(content=[types.TextContent(type="text", text=self.server.answer)])


class FakeServer:
    """Scriptable stand-in for the remote MCP service.

    ``attempt_builder`` and ``session_factory`` plug into :class:`ChatSession`;
    every transport and client session built is recorded for assertions.
    """

    def __init__(
        self,
        *,
        tools: Optional[List[types.Tool]] = None,
        fail_on_enter: tuple[str, ...] = (),
        fail_on_initialize: tuple[str, ...] = (),
        fail_on_exit: tuple[str, ...] = (),
        hang_on_exit: tuple[str, ...] = (),
        answer: str = "  The answer.  ",
    ) -> None:
        self.tools = tools if tools is not None else [make_tool()]
        self.fail_on_enter = fail_on_enter
        self.fail_on_initialize = fail_on_initialize
        self.fail_on_exit = fail_on_exit
        self.hang_on_exit = hang_on_exit
        self.answer = answer
        self.attempt_sequences = 0
        self.initialize_calls = 0
        self.transports: List[FakeTransport] = []
        self.sessions: List[FakeClientSession] = []
        self.calls: List[tuple[str, Dict[str, Any]]] = []

    def _create(self, kind: str) -> FakeTransport:
        transport = FakeTransport(kind, self)
        self.transports.append(transport)
        return transport

    def attempt_builder(self, config: SessionConfig) -> List[TransportAttempt]:
        self.attempt_sequences += 1
        return [
            TransportAttempt(TransportPreference.STREAMABLE, "streamable-http @ fake", lambda: self._create("streamable")),
            TransportAttempt(TransportPreference.SSE, "sse @ fake", lambda: self._create("sse")),
        ]

    def session_factory(self, read_stream, write_stream, client_info=None) -> FakeClientSession:
        session = FakeClientSession(read_stream, write_stream, client_info, server=self)
        self.sessions.append(session)
        return session

    def make_session(self, name: str = "test", **config: Any) -> ChatSession:
        config.setdefault("api_key", "secret")
        return ChatSession(
            SessionConfig(**config),
            name=name,
            attempt_builder=self.attempt_builder,
            client_session_factory=self.session_factory,
        )


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()
