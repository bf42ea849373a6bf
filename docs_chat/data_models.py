"""Pydantic data models used throughout the docs-chat runtime."""


from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import AliasChoices, BaseModel, Field

from docs_chat import __version__

__all__ = [
    "DEFAULT_SSE_URL",
    "DEFAULT_STREAMABLE_URL",
    "DEFAULT_TOOL_NAME",
    "SessionConfig",
    "TargetOptions",
    "TargetDefinition",
    "TargetSummary",
]

DEFAULT_SSE_URL = "https://docs-ai.cloudapps.cisco.com/mcp/sse"
DEFAULT_STREAMABLE_URL = "https://docs-ai.cloudapps.cisco.com/mcp"
DEFAULT_TOOL_NAME = "ask_cisco_documentation"


class SessionConfig(BaseModel):
    """Immutable connection settings for a single :class:`~docs_chat.core.session.ChatSession`."""

    sse_url: str = Field(DEFAULT_SSE_URL, description="Server-sent-events endpoint (fallback transport)")
    streamable_url: str = Field(
        DEFAULT_STREAMABLE_URL,
        description="Streamable HTTP endpoint (preferred transport)",
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Credential forwarded in the X-API-Key header; required before connecting",
    )
    tool_name: str = Field(DEFAULT_TOOL_NAME, min_length=1, description="Name of the MCP tool to call")
    transport: str = Field("auto", description="Transport preference: auto, streamable or sse")
    static_args: Dict[str, Any] = Field(
        default_factory=dict,
        description="Arguments merged into every tool call (lowest precedence)",
    )
    product: Optional[str] = Field(default=None, description="Initial product filter")
    client_name: str = Field("docs-chat", description="Client name advertised during the MCP handshake")
    client_version: str = Field(__version__, description="Client version advertised during the MCP handshake")
    close_timeout: float = Field(5.0, gt=0, description="Upper bound (seconds) on connection teardown")

    model_config = {"frozen": True}


class TargetOptions(BaseModel):
    """Per-target overrides; any option left unset falls back to ambient or built-in defaults.

    Keys are accepted in either camelCase (as written in ``MCP_TARGETS``) or
    snake_case.
    """

    sse_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("sse_url", "sseUrl", "serverUrl", "url"),
    )
    streamable_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("streamable_url", "streamableUrl"),
    )
    api_key: Optional[str] = Field(default=None, validation_alias=AliasChoices("api_key", "apiKey"))
    tool_name: Optional[str] = Field(default=None, validation_alias=AliasChoices("tool_name", "toolName"))
    transport: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("transport", "transportPreference"),
    )
    static_args: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("static_args", "staticArgs", "extraArgs", "extra_args"),
    )
    product: Optional[str] = None

    model_config = {"extra": "ignore"}


class TargetDefinition(BaseModel):
    """A named target: an option set plus whether ambient settings seed unset options."""

    name: str = Field(..., min_length=1, description="Unique target name")
    options: TargetOptions = Field(default_factory=TargetOptions)
    use_ambient_config: bool = Field(
        default=True,
        validation_alias=AliasChoices("use_ambient_config", "useAmbientConfig", "useEnv", "use_env"),
    )

    @classmethod
    def from_entry(cls, entry: Mapping[str, Any], fallback_name: str) -> "TargetDefinition":
        """Normalise a raw ``MCP_TARGETS`` entry.

        Options may be nested under ``options`` or written inline next to
        ``name``.  Entries without a usable name get *fallback_name*.
        """

        raw_name = entry.get("name")
        name = raw_name.strip() if isinstance(raw_name, str) and raw_name.strip() else fallback_name

        raw_options = entry.get("options")
        if not isinstance(raw_options, Mapping):
            raw_options = entry

        ambient = True
        for key in ("use_ambient_config", "useAmbientConfig", "useEnv", "use_env"):
            if key in entry:
                ambient = entry[key]
                break

        return cls.model_validate(
            {
                "name": name,
                "options": TargetOptions.model_validate(dict(raw_options)),
                "use_ambient_config": ambient,
            }
        )


class TargetSummary(BaseModel):
    """Read-only snapshot of a target's session state."""

    connected: bool = False
    product_filter: Optional[str] = None
    connection_label: Optional[str] = None
