from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, Field

from docs_chat import __version__
from docs_chat.core.formatting import format_result_content
from docs_chat.core.targets import TargetManager, load_targets
from docs_chat.errors import describe_error
from docs_chat.settings import Settings, get_settings

logger = logging.getLogger(__name__)

_STATIC_DIR = Path(__file__).resolve().parent / "static"


def build_target_manager(settings: Settings) -> TargetManager:
    """Create the registry for the HTTP front end.

    ``CHATBOT_PRODUCT`` seeds the first target's product when that target has
    none; ``CHATBOT_TARGET`` becomes the default target.
    """

    targets = load_targets(settings)
    product = (settings.chatbot_product or "").strip()
    if product and targets[0].options.product is None:
        first = targets[0]
        targets[0] = first.model_copy(update={"options": first.options.model_copy(update={"product": product})})

    manager = TargetManager(targets, ambient=settings)
    target = (settings.chatbot_target or "").strip()
    if target:
        manager.set_default_target(target)
    return manager


@asynccontextmanager
async def _lifespan(app: FastAPI):  # noqa: D401 – lifespan context
    """Build the target registry on startup and close every session on shutdown."""

    global _manager

    settings = get_settings()
    _manager = build_target_manager(settings)
    logger.info(
        "Serving targets %s (default %s)",
        ", ".join(_manager.get_target_names()),
        _manager.get_default_target(),
    )

    yield

    manager, _manager = _manager, None
    if manager is not None:
        logger.info("Closing MCP sessions...")
        await manager.close_all()


app = FastAPI(title="Docs Chat API", version=__version__, lifespan=_lifespan)


async def _ask_validation_error_handler(request: Request, exc: RequestValidationError):
    """Report unusable ``/api/ask`` bodies as 400 with a readable ``detail``."""
    if request.url.path != "/api/ask":
        return await request_validation_exception_handler(request, exc)

    errors = exc.errors()
    if any(err.get("type") == "json_invalid" for err in errors):
        detail = "Invalid JSON payload."
    else:
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:]) or "body"
        detail = f"Invalid request: {field}: {first.get('msg', 'invalid value')}"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


app.add_exception_handler(RequestValidationError, _ask_validation_error_handler)

# Global handle – populated on application startup
_manager: Optional[TargetManager] = None


def get_target_manager() -> TargetManager:
    """Return the live :class:`TargetManager`.

    Raises:
        RuntimeError: If the application lifespan has not started yet.
    """
    if _manager is None:
        raise RuntimeError("Target manager has not been initialised."
                           " Ensure the FastAPI startup completed successfully.")
    return _manager


class AskRequest(BaseModel):
    question: str = ""
    product: Optional[str] = None
    target: Optional[str] = None


class AskResponse(BaseModel):
    answer: str
    connection_label: str = Field(alias="connectionLabel")
    product_filter: Optional[str] = Field(default=None, alias="productFilter")
    target: str

    model_config = {"populate_by_name": True}


class StatusResponse(BaseModel):
    connected: bool
    product_filter: Optional[str] = Field(default=None, alias="productFilter")
    connection_label: str = Field(default="", alias="connectionLabel")
    target: str
    targets: List[str]

    model_config = {"populate_by_name": True}


@app.get("/health", tags=["meta"])
async def health() -> dict[str, str]:  # noqa: D401 – simple health check
    """Return a basic healthcheck payload."""
    return {"status": "ok"}


@app.get("/api/status", response_model=StatusResponse, tags=["chat"])
def status_route(manager: TargetManager = Depends(get_target_manager)):
    """Describe the default target without connecting it."""

    default_target = manager.get_default_target()
    summary = manager.get_summary(default_target)
    return StatusResponse(
        connected=summary.connected,
        product_filter=summary.product_filter,
        connection_label=summary.connection_label or "",
        target=default_target,
        targets=manager.get_target_names(),
    )


@app.post("/api/ask", response_model=AskResponse, tags=["chat"])
async def ask_route(
    payload: AskRequest,
    manager: TargetManager = Depends(get_target_manager),
    settings: Settings = Depends(get_settings),
):
    """Ask the documentation assistant a question on one target.

    A ``product`` in the body replaces the target's filter and is also sent
    as an explicit tool argument.  Otherwise the server-wide
    ``CHATBOT_PRODUCT`` is re-applied to the default target.  Errors from the
    remote service are returned verbatim in ``detail``.
    """

    requested_target = (payload.target or "").strip()
    if requested_target and not manager.has_target(requested_target):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                            detail=f'Unknown target "{requested_target}".')
    default_target = manager.get_default_target()
    target_name = requested_target or default_target

    if not payload.question.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Question cannot be empty.")

    product = (payload.product or "").strip()
    client = manager.get_client(target_name)
    if product:
        client.set_product_filter(product)
    elif settings.chatbot_product and target_name == default_target:
        client.set_product_filter(settings.chatbot_product)

    try:
        await client.connect()
        result = await client.ask(payload.question, {"product": product} if product else None)
    except Exception as exc:
        logger.warning("[%s] Tool call failed: %s", target_name, describe_error(exc))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                            detail=describe_error(exc)) from exc

    return AskResponse(
        answer=format_result_content(result),
        connection_label=client.connection_label,
        product_filter=client.get_product_filter(),
        target=target_name,
    )


# Mounted last so the API routes above take precedence over the catch-all UI.
if _STATIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=_STATIC_DIR, html=True), name="ui")
else:  # pragma: no cover – stripped installs
    logger.warning("Static UI directory %s not found; serving the API only", _STATIC_DIR)
