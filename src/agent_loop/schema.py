# schema.py
# Explicit builder for the JSON-schema-like parameter descriptions that
# tools hand to the model backend.
#
# Every helper returns a plain JSON object; compose them freely:
#
#   params = schema.obj(
#       {"text": schema.string("Text to echo back.")},
#       required=["text"],
#   )

from agent_loop.json_value import JSONValue


def _with_description(node: dict[str, JSONValue], description: str | None) -> dict[str, JSONValue]:
    if description:
        node["description"] = description
    return node


def string(description: str | None = None, enum: list[str] | None = None) -> dict[str, JSONValue]:
    node: dict[str, JSONValue] = {"type": "string"}
    if enum:
        node["enum"] = list(enum)
    return _with_description(node, description)


def number(description: str | None = None) -> dict[str, JSONValue]:
    return _with_description({"type": "number"}, description)


def integer(description: str | None = None) -> dict[str, JSONValue]:
    return _with_description({"type": "integer"}, description)


def boolean(description: str | None = None) -> dict[str, JSONValue]:
    return _with_description({"type": "boolean"}, description)


def array(items: dict[str, JSONValue], description: str | None = None) -> dict[str, JSONValue]:
    return _with_description({"type": "array", "items": items}, description)


def obj(
    properties: dict[str, dict[str, JSONValue]] | None = None,
    required: list[str] | None = None,
    description: str | None = None,
) -> dict[str, JSONValue]:
    """
    An object schema. With no arguments this is the empty schema
    `{"type": "object", "properties": {}}`: no required arguments.
    """
    node: dict[str, JSONValue] = {"type": "object", "properties": dict(properties or {})}
    if required:
        unknown = [name for name in required if name not in node["properties"]]
        if unknown:
            raise ValueError(f"Required properties not declared: {', '.join(unknown)}")
        node["required"] = list(required)
    return _with_description(node, description)
