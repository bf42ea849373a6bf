"""
Launcher for the docs-chat browser UI and JSON API.

Command line options are exported as ``CHATBOT_*`` environment variables
before the application is imported, so the FastAPI lifespan sees them through
:func:`docs_chat.settings.get_settings` exactly like values set in the shell.
"""

import argparse
import logging
import os
from typing import Dict, List, Optional

import uvicorn

from docs_chat.settings import get_settings

logger = logging.getLogger("docs_chat.service")


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments for the service."""
    parser = argparse.ArgumentParser(description="Serve the docs-chat browser UI")

    parser.add_argument("--host", default=None, help="Host to bind the HTTP server to (CHATBOT_HOST)")
    parser.add_argument("-P", "--port", type=int, default=None,
                        help="Port to bind the HTTP server to (CHATBOT_PORT / PORT, default 4173)")
    parser.add_argument("-p", "--product", default=None, help="Default product filter for the default target")
    parser.add_argument("-s", "--server", "--target", dest="target", default=None,
                        help="Name of the default target")

    args = parser.parse_args(argv)
    # Blank values mean "not given"
    args.product = (args.product or "").strip() or None
    args.target = (args.target or "").strip() or None
    return args


def export_options(args) -> Dict[str, str]:
    """Return the ``CHATBOT_*`` variables corresponding to *args* (unset options omitted)."""
    env = {
        "CHATBOT_HOST": args.host,
        "CHATBOT_PORT": str(args.port) if args.port is not None else None,
        "CHATBOT_PRODUCT": args.product,
        "CHATBOT_TARGET": args.target,
    }
    return {k: v for k, v in env.items() if v is not None}


def main(argv: Optional[List[str]] = None):
    """Main entry point for the ``docs-chat-server`` command."""
    args = parse_args(argv)

    for key, value in export_options(args).items():
        os.environ[key] = value
    get_settings.cache_clear()
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    # Import here to ensure environment variables are set before imports
    from .api import app

    logger.info(f"Chatbot UI available at http://{settings.chatbot_host}:{settings.chatbot_port}")
    uvicorn.run(app, host=settings.chatbot_host, port=settings.chatbot_port, timeout_graceful_shutdown=3)


if __name__ == "__main__":
    main()
