"""Named targets and the registry multiplexing one :class:`ChatSession` per target.

A *target* is an independently configured documentation endpoint (URLs,
credential, tool, filter).  Targets either come from the ``MCP_TARGETS`` JSON
array or, when none are configured, from two built-in defaults that share the
ambient configuration.

Public helpers
--------------
- :func:`parse_json_object` / :func:`load_targets` – lenient JSON settings parsing.
- :func:`resolve_session_config` – explicit option → ambient setting → built-in default.
- :class:`TargetManager` – lazy, cached, name-addressed sessions.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from docs_chat.core.session import ChatSession
from docs_chat.core.transports import TransportPreference, strip_sse_suffix
from docs_chat.data_models import (
    DEFAULT_SSE_URL,
    DEFAULT_STREAMABLE_URL,
    DEFAULT_TOOL_NAME,
    SessionConfig,
    TargetDefinition,
    TargetOptions,
    TargetSummary,
)
from docs_chat.errors import NoTargetsError, UnknownTargetError
from docs_chat.settings import Settings

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_TARGET_NAMES",
    "parse_json_object",
    "default_targets",
    "load_targets",
    "resolve_session_config",
    "TargetManager",
]

DEFAULT_TARGET_NAMES = ("docs", "docs-sse")

TargetEntry = Union[TargetDefinition, Mapping[str, Any], None]
SessionFactory = Callable[..., ChatSession]


def parse_json_object(raw: Optional[str], label: str) -> Dict[str, Any]:
    """Parse *raw* as a JSON object; malformed or non-object input yields ``{}``."""

    if not raw or not raw.strip():
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("%s is not valid JSON. Ignoring value.", label)
        return {}
    if not isinstance(value, dict):
        logger.warning("%s must be a JSON object. Ignoring value.", label)
        return {}
    return value


def default_targets() -> List[TargetDefinition]:
    """Return the two built-in targets used when ``MCP_TARGETS`` is not set.

    Both read the ambient configuration; the second always uses SSE.
    """

    primary, sse_only = DEFAULT_TARGET_NAMES
    return [
        TargetDefinition(name=primary),
        TargetDefinition(name=sse_only, options=TargetOptions(transport=TransportPreference.SSE.value)),
    ]


def load_targets(settings: Settings) -> List[TargetDefinition]:
    """Return target definitions from ``MCP_TARGETS``, or the defaults.

    Malformed JSON, a non-array value or an array without a single valid
    entry falls back to :func:`default_targets` with a warning; invalid
    entries are skipped individually.
    """

    raw = (settings.targets or "").strip()
    if not raw:
        return default_targets()

    try:
        entries = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("MCP_TARGETS is not valid JSON. Using default targets.")
        return default_targets()
    if not isinstance(entries, list):
        logger.warning("MCP_TARGETS must be a JSON array. Using default targets.")
        return default_targets()

    targets: List[TargetDefinition] = []
    for index, entry in enumerate(entries, start=1):
        if not isinstance(entry, Mapping):
            logger.warning("Ignoring MCP_TARGETS entry #%d: expected an object", index)
            continue
        try:
            targets.append(TargetDefinition.from_entry(entry, fallback_name=f"target-{index}"))
        except ValidationError as exc:
            logger.warning("Ignoring MCP_TARGETS entry #%d: %s", index, exc)

    if not targets:
        logger.warning("MCP_TARGETS contains no usable targets. Using default targets.")
        return default_targets()
    return targets


def resolve_session_config(definition: TargetDefinition, ambient: Optional[Settings] = None) -> SessionConfig:
    """Build the :class:`SessionConfig` for *definition*.

    Each option resolves to the target's explicit value, then (only when the
    target opts in) the ambient setting, then the built-in default.  The
    streamable URL additionally falls back to the SSE URL minus its ``/sse``
    suffix.
    """

    opts = definition.options
    env = ambient if definition.use_ambient_config else None

    def pick(field: str) -> Any:
        explicit = getattr(opts, field)
        if explicit is not None:
            return explicit
        return getattr(env, field) if env is not None else None

    sse_url = pick("sse_url") or DEFAULT_SSE_URL
    streamable_url = pick("streamable_url") or strip_sse_suffix(sse_url) or DEFAULT_STREAMABLE_URL

    static_args = opts.static_args
    if static_args is None and env is not None:
        static_args = parse_json_object(env.extra_args, "MCP_EXTRA_ARGS")

    extra: Dict[str, Any] = {}
    if ambient is not None:
        extra["close_timeout"] = ambient.close_timeout

    return SessionConfig(
        sse_url=sse_url,
        streamable_url=streamable_url,
        api_key=pick("api_key"),
        tool_name=pick("tool_name") or DEFAULT_TOOL_NAME,
        transport=(pick("transport") or "auto").strip().lower(),
        static_args=dict(static_args or {}),
        product=pick("product"),
        **extra,
    )


def _normalize(entries: Iterable[TargetEntry]) -> List[TargetDefinition]:
    definitions: List[TargetDefinition] = []
    for index, entry in enumerate(entries, start=1):
        fallback = f"target-{index}"
        if isinstance(entry, TargetDefinition):
            definitions.append(entry)
        elif isinstance(entry, Mapping):
            definitions.append(TargetDefinition.from_entry(entry, fallback_name=fallback))
        else:
            definitions.append(TargetDefinition(name=fallback))
    return definitions


class TargetManager:
    """Registry of named targets with lazily created, cached sessions.

    Sessions are created on first :meth:`get_client` for a name and reused
    for the registry's lifetime, even after a failed connect; callers retry by
    calling ``connect()``/``ask()`` on the same session.  Duplicate names keep
    the first definition.
    """

    def __init__(
        self,
        targets: Iterable[TargetEntry],
        *,
        ambient: Optional[Settings] = None,
        session_factory: SessionFactory = ChatSession,
    ) -> None:
        definitions = _normalize(targets)
        if not definitions:
            raise NoTargetsError()

        self._targets: Dict[str, TargetDefinition] = {}
        for definition in definitions:
            if definition.name in self._targets:
                logger.warning("Duplicate target name %r; keeping the first definition", definition.name)
                continue
            self._targets[definition.name] = definition

        self._ambient = ambient
        self._session_factory = session_factory
        self._clients: Dict[str, ChatSession] = {}
        self._default_target = next(iter(self._targets))

    # ------------------------------------------------------------------
    # Target lookup
    # ------------------------------------------------------------------

    def get_target_names(self) -> List[str]:
        return list(self._targets)

    def has_target(self, name: Optional[str]) -> bool:
        return name in self._targets

    def get_target(self, name: str) -> TargetDefinition:
        self._require(name)
        return self._targets[name]

    def get_default_target(self) -> str:
        return self._default_target

    def set_default_target(self, name: str) -> None:
        """Point the default at *name*; cached sessions are unaffected."""

        self._require(name)
        self._default_target = name

    def _require(self, name: Optional[str]) -> None:
        if name not in self._targets:
            raise UnknownTargetError(name, self._targets)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def get_client(self, name: Optional[str] = None) -> ChatSession:
        """Return the (possibly new, not yet connected) session for *name* or the default target."""

        target_name = self._default_target if name is None else name
        self._require(target_name)

        client = self._clients.get(target_name)
        if client is None:
            config = resolve_session_config(self._targets[target_name], self._ambient)
            client = self._session_factory(config, name=target_name)
            self._clients[target_name] = client
            logger.debug("Created session for target %r", target_name)
        return client

    def get_summary(self, name: Optional[str] = None) -> TargetSummary:
        """Snapshot of a target's session; never creates or connects one."""

        target_name = self._default_target if name is None else name
        self._require(target_name)

        client = self._clients.get(target_name)
        if client is None:
            return TargetSummary()
        return TargetSummary(
            connected=client.is_connected,
            product_filter=client.get_product_filter(),
            connection_label=client.connection_label or None,
        )

    async def close_all(self) -> None:
        """Close every cached session concurrently, tolerating individual failures."""

        clients = list(self._clients.items())
        results = await asyncio.gather(*(client.close() for _, client in clients), return_exceptions=True)
        for (name, _), result in zip(clients, results):
            if isinstance(result, BaseException):
                logger.warning("Failed to close target %r: %s", name, result)
        self._clients.clear()
