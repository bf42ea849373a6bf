import asyncio
import io

import pytest

from docs_chat import cli
from docs_chat.cli import ChatCLI, parse_args
from docs_chat.core.session import ChatSession
from docs_chat.core.targets import TargetManager


@pytest.fixture
def chat(fake_server):
    def factory(config, *, name):
        return ChatSession(
            config,
            name=name,
            attempt_builder=fake_server.attempt_builder,
            client_session_factory=fake_server.session_factory,
        )

    manager = TargetManager(
        [
            {"name": "docs", "apiKey": "secret", "product": "ACI"},
            {"name": "lab", "apiKey": "secret"},
        ],
        session_factory=factory,
    )
    out = io.StringIO()
    with asyncio.Runner() as runner:
        chat = ChatCLI(manager, runner, out=out)
        yield chat
        chat.close()


def test_parse_args():
    args = parse_args(["-p", "ACI", "--server", " lab ", "how", "do", "I", "upgrade?"])
    assert args.product == "ACI"
    assert args.target == "lab"
    assert args.question == "how do I upgrade?"

    args = parse_args(["--target", "docs-sse"])
    assert args.target == "docs-sse"
    assert args.question == ""
    assert args.product is None


def test_bootstrap_reports_connection(chat):
    assert chat.bootstrap() is True

    output = chat.out.getvalue()
    assert 'Connected to "docs" (streamable-http @ fake) and ready to call ask_cisco_documentation.' in output
    assert "[docs] Product filter: ACI" in output


def test_bootstrap_failure(chat, fake_server):
    fake_server.fail_on_initialize = ("streamable", "sse")

    assert chat.bootstrap() is False
    assert "Unable to start chatbot: sse handshake failed" in chat.out.getvalue()


def test_ask_prints_formatted_answer(chat, fake_server):
    chat.ask("What is a tenant?")

    assert "\n[docs] The answer.\n" in chat.out.getvalue()
    assert fake_server.calls[-1][1] == {"query": "What is a tenant?", "product": "ACI"}


def test_ask_reports_failures(chat, fake_server):
    fake_server.fail_on_initialize = ("streamable", "sse")

    chat.ask("Q")

    assert "[docs] Tool call failed: sse handshake failed" in chat.out.getvalue()


def test_product_commands(chat, fake_server):
    assert chat.handle_command("/product NX-OS") is True
    assert chat.client.get_product_filter() == "NX-OS"
    assert "[docs] Product filter: NX-OS" in chat.out.getvalue()

    chat.handle_command("/product clear")
    assert chat.client.get_product_filter() is None
    assert "No product filter set" in chat.out.getvalue()

    chat.ask("Q")
    assert "product" not in fake_server.calls[-1][1]


def test_server_commands(chat):
    chat.handle_command("/server")
    assert "Active target: docs" in chat.out.getvalue()
    assert "Available targets: docs, lab" in chat.out.getvalue()

    chat.handle_command("/server nope")
    assert 'Unknown target "nope". Available: docs, lab' in chat.out.getvalue()
    assert chat.active_target == "docs"

    chat.handle_command("/target lab")
    assert chat.active_target == "lab"
    assert 'Switched to target "lab".' in chat.out.getvalue()

    # Filters are per target.
    assert chat.client.get_product_filter() is None


def test_help_and_unknown_commands(chat):
    chat.handle_command("/help")
    chat.handle_command("/bogus")

    output = chat.out.getvalue()
    assert output.count(cli.COMMANDS_HELP) == 2
    assert "Unknown command." in output


@pytest.mark.parametrize("command", ["/exit", "/quit", "/EXIT"])
def test_exit_commands(chat, command):
    assert chat.handle_command(command) is False


def test_loop_reads_until_exit(chat, fake_server):
    lines = iter(["", "first question", "/product DNA", "second question", "/exit", "never asked"])

    chat.loop(read=lambda prompt: next(lines))

    assert [call[1]["query"] for call in fake_server.calls] == ["first question", "second question"]
    assert fake_server.calls[-1][1]["product"] == "DNA"
    assert fake_server.attempt_sequences == 1


def test_loop_stops_on_eof(chat):
    def read(prompt):
        raise EOFError

    chat.loop(read=read)

    assert "Type your question" in chat.out.getvalue()


def test_main_rejects_unknown_target(capsys):
    assert cli.main(["--server", "missing"]) == 1
    assert 'Unknown target "missing". Available: docs, docs-sse.' in capsys.readouterr().err


def test_main_reports_missing_api_key(capsys):
    assert cli.main(["hello"]) == 1
    assert "Unable to start chatbot: Missing API key." in capsys.readouterr().out
