import pytest

from docs_chat.core.schema import infer_primary_argument, schema_properties


def _schema(**properties):
    return {"type": "object", "properties": properties}


@pytest.mark.parametrize(
    ("schema", "expected"),
    [
        (_schema(query={"type": "string"}, other={"type": "string"}), "query"),
        (_schema(other={"type": "string"}, question={"type": "string"}), "question"),
        (_schema(question={"type": "string"}, query={"type": "string"}), "query"),
        (_schema(onlyOne={"type": "integer"}), "onlyOne"),
        (_schema(a={"type": "string"}, b={"type": "number"}), "a"),
        (_schema(a={"type": "number"}, b={"type": "number"}), None),
        (_schema(a={"type": "string"}, b={"type": "string"}), None),
        (_schema(), None),
        ({"properties": {"prompt": {"type": "string"}}}, "prompt"),
        ({"type": "array", "items": {"type": "string"}}, None),
        (None, None),
    ],
)
def test_infer_primary_argument(schema, expected) -> None:
    assert infer_primary_argument(schema) == expected


def test_schema_properties_tolerates_malformed_entries() -> None:
    schema = {"type": "object", "properties": {"a": "string", "b": {"type": ["string", "null"]}, "c": {}}}

    assert schema_properties(schema) == {"a": None, "b": None, "c": None}
    assert schema_properties({"type": "object", "properties": []}) == {}
