"""Session client owning one MCP connection to one documentation endpoint.

A :class:`ChatSession` connects lazily, trying each transport attempt from
:func:`~docs_chat.core.transports.build_attempts` in order, discovers the
configured tool and infers which argument receives the user's question.
Concurrent callers of :meth:`ChatSession.connect` share a single in-flight
attempt sequence.

The transport and :class:`mcp.ClientSession` contexts of a live connection are
entered and exited by one dedicated background task (see :class:`_Connection`):
the SDK transports run anyio task groups whose cancel scopes cannot be exited
from a different task than the one that entered them, and HTTP front ends
connect and close from different request tasks.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import AsyncExitStack
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from mcp import ClientSession
from mcp import types

from docs_chat.core.schema import infer_primary_argument
from docs_chat.core.transports import TransportAttempt, auth_headers, build_attempts
from docs_chat.data_models import SessionConfig
from docs_chat.errors import (
    AllTransportsFailedError,
    ConfigurationError,
    DocsChatError,
    EmptyQuestionError,
    ToolNotFoundError,
    describe_error,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_PRIMARY_ARG",
    "SessionState",
    "ChatSession",
    "default_attempts",
]

DEFAULT_PRIMARY_ARG = "query"

AttemptBuilder = Callable[[SessionConfig], List[TransportAttempt]]
ClientSessionFactory = Callable[..., Any]


class SessionState(str, Enum):
    """Lifecycle of a :class:`ChatSession`."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


def default_attempts(config: SessionConfig) -> List[TransportAttempt]:
    """Return the transport attempts for *config* with its API key header."""

    return build_attempts(
        config.transport,
        config.streamable_url,
        config.sse_url,
        auth_headers(config.api_key),
    )


def _clean_filter(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


class _Connection:
    """A live MCP session whose contexts are owned by one background task.

    :meth:`open` starts the owner task, which enters the transport and the
    client session, runs the MCP handshake and then parks until
    :meth:`aclose` asks it to unwind.  A failure while opening unwinds
    whatever was entered (client first, then transport) before the error is
    reported.
    """

    def __init__(
        self,
        attempt: TransportAttempt,
        client_session_factory: ClientSessionFactory,
        client_info: types.Implementation,
    ) -> None:
        self.label = attempt.label
        self.session: Any = None
        self._attempt = attempt
        self._client_session_factory = client_session_factory
        self._client_info = client_info
        self._stop = asyncio.Event()
        self._ready: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def alive(self) -> bool:
        """``False`` once the owner task has exited, whether closed or dropped."""
        return self._task is not None and not self._task.done()

    async def open(self) -> Any:
        self._task = asyncio.create_task(self._hold(), name=f"mcp-connection[{self.label}]")
        try:
            self.session = await self._ready
        except BaseException:
            if not self._task.done():
                self._task.cancel()
                await asyncio.wait({self._task})
            raise
        return self.session

    async def _hold(self) -> None:
        try:
            async with AsyncExitStack() as stack:
                streams = await stack.enter_async_context(self._attempt.create())
                read_stream, write_stream = streams[0], streams[1]
                session = await stack.enter_async_context(
                    self._client_session_factory(read_stream, write_stream, client_info=self._client_info)
                )
                await session.initialize()
                if not self._ready.done():
                    self._ready.set_result(session)
                await self._stop.wait()
        except Exception as exc:
            if not self._ready.done():
                self._ready.set_exception(exc)
            elif self._stop.is_set():
                logger.warning("Ignoring teardown error for %s: %s", self.label, describe_error(exc))
            else:
                logger.warning("Connection %s dropped: %s", self.label, describe_error(exc))
        finally:
            if not self._ready.done():
                self._ready.cancel()

    async def aclose(self, timeout: float) -> None:
        """Ask the owner task to unwind; cancel it if it has not finished within *timeout*."""

        self._stop.set()
        task = self._task
        if task is None or task.done():
            return
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if not done:
            logger.warning("Timed out closing %s after %.1fs; cancelling", self.label, timeout)
            task.cancel()
            await asyncio.wait({task}, timeout=timeout)


class ChatSession:
    """Client for one documentation target.

    Parameters
    config
        Connection settings.  Only the product filter may change afterwards
        (see :meth:`set_product_filter`).
    name
        Target name, used as a prefix in log messages.
    attempt_builder
        Returns the ordered transport attempts for *config*; defaults to
        :func:`default_attempts`.
    client_session_factory
        Builds the MCP client session from a transport's read/write streams;
        defaults to :class:`mcp.ClientSession`.
    """

    def __init__(
        self,
        config: SessionConfig,
        *,
        name: str = "default",
        attempt_builder: AttemptBuilder = default_attempts,
        client_session_factory: ClientSessionFactory = ClientSession,
    ) -> None:
        self.config = config
        self.name = name
        self._attempt_builder = attempt_builder
        self._client_session_factory = client_session_factory
        self._product_filter = _clean_filter(config.product)
        self._connection: Optional[_Connection] = None
        self._connecting: Optional[asyncio.Task[None]] = None
        self._tool: Optional[types.Tool] = None
        self._primary_arg_key = DEFAULT_PRIMARY_ARG
        # Bumped by close(); a connect started under an older value is discarded.
        self._epoch = 0

    def _live_connection(self) -> Optional[_Connection]:
        """Return the current connection, forgetting it if its owner task has exited."""

        connection = self._connection
        if connection is not None and not connection.alive:
            logger.warning("[%s] Lost connection %s; reconnecting on next use", self.name, connection.label)
            self._connection = None
            self._tool = None
            connection = None
        return connection

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        if self._live_connection() is not None:
            return SessionState.CONNECTED
        if self._connecting is not None:
            return SessionState.CONNECTING
        return SessionState.DISCONNECTED

    @property
    def is_connected(self) -> bool:
        return self._live_connection() is not None

    @property
    def connection_label(self) -> str:
        """Label of the transport that connected, or ``""`` when disconnected."""
        connection = self._live_connection()
        return connection.label if connection is not None else ""

    @property
    def tool_name(self) -> str:
        return self.config.tool_name

    @property
    def tool(self) -> Optional[types.Tool]:
        return self._tool

    @property
    def primary_arg_key(self) -> str:
        return self._primary_arg_key

    def get_product_filter(self) -> Optional[str]:
        return self._product_filter

    def set_product_filter(self, value: Optional[str]) -> Optional[str]:
        """Store *value* trimmed; blank values clear the filter.  Returns the new filter."""

        self._product_filter = _clean_filter(value)
        return self._product_filter

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect if needed.

        Returns immediately when connected.  Concurrent callers share one
        attempt sequence and all observe its outcome; after a failure the
        session is back to ``DISCONNECTED`` and the next call starts afresh.
        """

        if self._live_connection() is not None:
            return
        if self._connecting is None:
            self._connecting = asyncio.create_task(
                self._connect_internal(self._epoch), name=f"connect[{self.name}]"
            )
        await asyncio.shield(self._connecting)

    async def _connect_internal(self, epoch: int) -> None:
        try:
            if not self.config.api_key:
                raise ConfigurationError(
                    "Missing API key. Set MCP_API_KEY (or CISCO_DOCS_API_KEY) before using the chatbot."
                )

            connection = await self._open_first_available()
            try:
                tool = await self._find_tool(connection.session)
            except BaseException:
                await connection.aclose(self.config.close_timeout)
                raise

            if epoch != self._epoch:
                await connection.aclose(self.config.close_timeout)
                raise DocsChatError("Session was closed while connecting.")

            self._tool = tool
            self._primary_arg_key = infer_primary_argument(tool.inputSchema) or self._primary_arg_key
            self._connection = connection
            logger.info(
                "[%s] Connected via %s; tool %s takes the question as %r",
                self.name,
                connection.label,
                tool.name,
                self._primary_arg_key,
            )
        finally:
            self._connecting = None

    async def _open_first_available(self) -> _Connection:
        attempts = self._attempt_builder(self.config)
        if not attempts:
            raise ConfigurationError(
                'No transport attempts configured. Set MCP_TRANSPORT to "sse" or "streamable".'
            )

        client_info = types.Implementation(name=self.config.client_name, version=self.config.client_version)
        last_error: Optional[Exception] = None
        for attempt in attempts:
            connection = _Connection(attempt, self._client_session_factory, client_info)
            try:
                await connection.open()
            except Exception as exc:
                last_error = exc
                logger.warning(
                    '[%s] Transport "%s" failed: %s', self.name, attempt.label, describe_error(exc)
                )
                continue
            return connection

        raise AllTransportsFailedError(last_error) from last_error

    async def _find_tool(self, session: Any) -> types.Tool:
        listing = await session.list_tools()
        tools = list(getattr(listing, "tools", None) or [])
        for tool in tools:
            if tool.name == self.config.tool_name:
                return tool
        available = [tool.name for tool in tools]
        logger.error(
            "[%s] Tool %r not advertised; server offers: %s",
            self.name,
            self.config.tool_name,
            ", ".join(available) or "(none)",
        )
        raise ToolNotFoundError(self.config.tool_name, available)

    async def close(self) -> None:
        """Release the connection.  Idempotent; teardown errors are swallowed.

        An in-flight connect is abandoned: it releases whatever it opened
        instead of publishing it, and this call waits (at most
        ``close_timeout`` seconds) for that to happen.
        """

        self._epoch += 1
        pending = self._connecting
        if pending is not None:
            done, _ = await asyncio.wait({pending}, timeout=self.config.close_timeout)
            if pending in done and not pending.cancelled():
                pending.exception()  # reported to the connect() callers
            elif not done:
                logger.warning("[%s] Connect still in flight after %.1fs; it will be discarded",
                               self.name, self.config.close_timeout)

        connection, self._connection = self._connection, None
        self._tool = None
        if connection is None:
            return
        try:
            await connection.aclose(self.config.close_timeout)
        except Exception:
            logger.debug("[%s] Error while closing %s", self.name, connection.label, exc_info=True)
        else:
            logger.info("[%s] Closed %s", self.name, connection.label)

    # ------------------------------------------------------------------
    # Tool calls
    # ------------------------------------------------------------------

    def build_arguments(self, question: str, overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """Merge static args < *overrides* < question < product filter (unless ``product`` is already set)."""

        args: Dict[str, Any] = {**self.config.static_args, **(overrides or {})}
        args[self._primary_arg_key] = question
        if self._product_filter and "product" not in args:
            args["product"] = self._product_filter
        return args

    async def ask(self, question: str, overrides: Optional[Mapping[str, Any]] = None) -> types.CallToolResult:
        """Call the configured tool with *question* and return the raw result.

        Connects on first use.  Tool-level errors reported by the server
        (``isError`` results) are returned unchanged for the caller to render.
        """

        trimmed = (question or "").strip()
        if not trimmed:
            raise EmptyQuestionError()

        if self._live_connection() is None:
            await self.connect()
        connection = self._live_connection()
        if connection is None:
            raise DocsChatError("Client is not connected.")

        arguments = self.build_arguments(trimmed, overrides)
        logger.debug("[%s] Calling %s with %s", self.name, self.config.tool_name, arguments)
        return await connection.session.call_tool(self.config.tool_name, arguments)
