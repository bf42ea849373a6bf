import json

from mcp import types

from docs_chat.core.formatting import EMPTY_RESULT_NOTICE, format_result_content


def test_text_and_unknown_chunks() -> None:
    result = {"content": [{"type": "text", "text": "  Hello  "}, {"type": "image"}]}

    assert format_result_content(result) == "Hello\n\n[image content not rendered]"


def test_blank_text_is_skipped_and_objects_are_dumped() -> None:
    result = {
        "content": [
            {"type": "text", "text": "   "},
            {"type": "object", "data": {"title": "Guide", "score": 0.9}},
            {"type": "object"},
        ]
    }

    rendered = format_result_content(result)

    assert rendered == "\n\n".join([json.dumps({"title": "Guide", "score": 0.9}, indent=2), "{}"])


def test_empty_result_falls_back_to_full_dump() -> None:
    assert format_result_content({}) == f"{EMPTY_RESULT_NOTICE}\n\n{{}}"


def test_malformed_results_do_not_raise() -> None:
    assert format_result_content(None).startswith(EMPTY_RESULT_NOTICE)
    assert format_result_content({"content": "nope"}).startswith(EMPTY_RESULT_NOTICE)
    assert format_result_content({"content": [None, 42]}) == (
        "[unknown content not rendered]\n\n[unknown content not rendered]"
    )


def test_call_tool_result_model() -> None:
    result = types.CallToolResult(
        content=[
            types.TextContent(type="text", text="Upgrade the APIC first."),
            types.ImageContent(type="image", data="AAAA", mimeType="image/png"),
        ]
    )

    assert format_result_content(result) == "Upgrade the APIC first.\n\n[image content not rendered]"


def test_error_results_are_rendered_verbatim() -> None:
    result = types.CallToolResult(
        content=[types.TextContent(type="text", text="Invalid API key")],
        isError=True,
    )

    assert format_result_content(result) == "Invalid API key"
