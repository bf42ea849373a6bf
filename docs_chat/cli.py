"""Interactive terminal chatbot for the documentation assistant.

Usage::

    $ export MCP_API_KEY=...
    $ docs-chat                                  # interactive loop
    $ docs-chat --product ACI "How do I upgrade the fabric?"   # one-shot
    $ docs-chat --server docs-sse

Inside the loop, ``/product <name>``, ``/product clear``, ``/server <name>``,
``/help`` and ``/exit`` are available.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional, Sequence

from docs_chat.core.formatting import format_result_content
from docs_chat.core.session import ChatSession
from docs_chat.core.targets import TargetManager, load_targets
from docs_chat.errors import describe_error
from docs_chat.settings import get_settings

logger = logging.getLogger("docs_chat.cli")

PROMPT = "you> "
COMMANDS_HELP = "Available: /product <name>, /product clear, /server <name>, /help, /exit."


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments for the chatbot."""
    parser = argparse.ArgumentParser(description="Chat with the MCP documentation assistant")
    parser.add_argument("question", nargs="*", help="Ask a single question and exit")
    parser.add_argument("-p", "--product", default=None, help="Product filter for the active target")
    parser.add_argument(
        "-s", "--server", "--target", dest="target", default=None, help="Target to use (see MCP_TARGETS)"
    )
    args = parser.parse_args(argv)
    args.question = " ".join(args.question).strip()
    args.target = args.target.strip() if args.target else None
    return args


class ChatCLI:
    """Terminal front end over a :class:`TargetManager`.

    Coroutines are driven by an :class:`asyncio.Runner` whose event loop
    survives between prompts, so cached sessions stay connected while the
    user types.
    """

    def __init__(self, manager: TargetManager, runner: asyncio.Runner, out=None) -> None:
        self.manager = manager
        self.runner = runner
        self.out = out or sys.stdout
        self.active_target = manager.get_default_target()

    def _print(self, message: str = "") -> None:
        print(message, file=self.out)

    @property
    def client(self) -> ChatSession:
        return self.manager.get_client(self.active_target)

    def announce_product_filter(self) -> None:
        product = self.client.get_product_filter()
        if product:
            self._print(f"[{self.active_target}] Product filter: {product}")
        else:
            self._print(
                f"[{self.active_target}] No product filter set. Use /product <name>, "
                '--product "<name>", or MCP_PRODUCT env var for better results.'
            )

    def bootstrap(self) -> bool:
        """Connect the active target; return ``False`` (after reporting) on failure."""

        client = self.client
        try:
            self.runner.run(client.connect())
        except Exception as exc:
            self._print(f"Unable to start chatbot: {describe_error(exc)}")
            return False
        self._print(
            f'Connected to "{self.active_target}" ({client.connection_label}) '
            f"and ready to call {client.tool_name}."
        )
        self.announce_product_filter()
        return True

    def ask(self, question: str) -> None:
        if not question.strip():
            return
        try:
            result = self.runner.run(self.client.ask(question))
        except Exception as exc:
            self._print(f"[{self.active_target}] Tool call failed: {describe_error(exc)}")
            return
        self._print(f"\n[{self.active_target}] {format_result_content(result)}\n")

    def handle_command(self, line: str) -> bool:
        """Run a ``/command``.  Returns ``False`` when the loop should stop."""

        command, _, rest = line[1:].partition(" ")
        command = command.lower()
        rest = rest.strip()

        if command in ("exit", "quit"):
            return False
        if command == "product":
            if rest.lower() == "clear":
                self.client.set_product_filter("")
            elif rest:
                self.client.set_product_filter(rest)
            self.announce_product_filter()
        elif command in ("server", "target"):
            names = ", ".join(self.manager.get_target_names())
            if not rest:
                self._print(f"Active target: {self.active_target}")
                self._print(f"Available targets: {names}")
            elif not self.manager.has_target(rest):
                self._print(f'Unknown target "{rest}". Available: {names}')
            else:
                self.active_target = rest
                self._print(f'Switched to target "{rest}".')
                self.announce_product_filter()
        elif command == "help":
            self._print(COMMANDS_HELP)
        else:
            self._print(f"Unknown command. {COMMANDS_HELP}")
        return True

    def loop(self, read=input) -> None:
        self._print("Type your question (or /exit to quit).")
        while True:
            try:
                line = read(PROMPT).strip()
            except EOFError:
                break
            if not line:
                continue
            if line.startswith("/"):
                if not self.handle_command(line):
                    break
                continue
            self.ask(line)

    def close(self) -> None:
        self.runner.run(self.manager.close_all())


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the ``docs-chat`` command."""
    args = parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    manager = TargetManager(load_targets(settings), ambient=settings)
    if args.target:
        if not manager.has_target(args.target):
            names = ", ".join(manager.get_target_names())
            print(f'Unknown target "{args.target}". Available: {names}.', file=sys.stderr)
            return 1
        manager.set_default_target(args.target)

    with asyncio.Runner() as runner:
        cli = ChatCLI(manager, runner)
        try:
            if not cli.bootstrap():
                return 1
            if args.product is not None:
                cli.client.set_product_filter(args.product)
                cli.announce_product_filter()
            if args.question:
                cli.ask(args.question)
                return 0
            cli.loop()
        except KeyboardInterrupt:
            print("\nReceived SIGINT, closing the chatbot.")
        finally:
            cli.close()
    return 0


if __name__ == "__main__":  # pragma: no cover – script entry
    sys.exit(main())
