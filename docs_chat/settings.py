"""Centralised application configuration powered by *pydantic-settings*.

The :class:`Settings` object provides a typed view over the ambient environment
(and an optional ``.env`` file).  It is the single "ambient configuration"
source that targets may opt into; the core never reads ``os.environ``
directly.  A singleton instance can be obtained via :func:`get_settings`
which caches the loaded values for the process lifetime.

Example environment variables recognised::

    MCP_API_KEY=xxxxxxxx
    MCP_SSE_URL=https://docs.example.com/mcp/sse
    MCP_TRANSPORT=auto
    MCP_EXTRA_ARGS='{"top_k": 5}'
    MCP_PRODUCT=ACI
    MCP_TARGETS='[{"name": "lab", "sseUrl": "https://lab.example.com/mcp/sse"}]'
    CHATBOT_PORT=4173

JSON blobs are kept as raw strings here; :mod:`docs_chat.core.targets` parses
them so that malformed values degrade with a warning instead of failing
validation of the whole settings object.
"""

from __future__ import annotations

import functools
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = [
    "Settings",
    "get_settings",
]


class Settings(BaseSettings):
    """Application configuration loaded from the OS environment or .env file."""

    sse_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MCP_SSE_URL", "MCP_SERVER_URL"),
    )
    streamable_url: Optional[str] = None
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MCP_API_KEY", "CISCO_DOCS_API_KEY", "X_API_KEY"),
    )
    tool_name: Optional[str] = None
    transport: str = "auto"
    extra_args: Optional[str] = None
    product: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MCP_PRODUCT", "DOCS_PRODUCT"),
    )
    targets: Optional[str] = None
    close_timeout: float = Field(default=5.0, gt=0)
    log_level: str = "INFO"

    # HTTP front end
    chatbot_host: str = Field(default="127.0.0.1", validation_alias="CHATBOT_HOST")
    chatbot_port: int = Field(
        default=4173,
        gt=0,
        validation_alias=AliasChoices("CHATBOT_PORT", "PORT"),
    )
    chatbot_target: Optional[str] = Field(default=None, validation_alias="CHATBOT_TARGET")
    chatbot_product: Optional[str] = Field(default=None, validation_alias="CHATBOT_PRODUCT")

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # unrelated MCP_* vars (e.g. for other tools) are not an error
    )


@functools.lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the singleton :class:`Settings` instance for the process."""
    return Settings()  # type: ignore[call-arg]
