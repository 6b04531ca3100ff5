# json_value.py
# The JSON value model shared by tool arguments, tool results and metadata.
#
# A JSON value is a plain Python tree of None / bool / float / str / list /
# dict[str, ...]. Numbers are always floats: no integer/float distinction
# survives normalize(), loads() or a trip through a tool.

import json
from typing import Annotated, Any, Union

from pydantic import AfterValidator, BaseModel

JSONValue = Union[None, bool, float, str, list["JSONValue"], dict[str, "JSONValue"]]


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize(value: Any) -> JSONValue:
    """
    Convert a JSON-ish Python tree into canonical form.

    ints become floats, tuples become lists. Anything that is not one of the
    six JSON kinds raises TypeError.
    """
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, (list, tuple)):
        return [normalize(item) for item in value]
    if isinstance(value, dict):
        out: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"JSON object keys must be strings, got {type(key).__name__}")
            out[key] = normalize(item)
        return out
    raise TypeError(f"Not a JSON value: {type(value).__name__}")


# Field type for pydantic models carrying open-ended JSON payloads.
JSONField = Annotated[Any, AfterValidator(normalize)]


# ---------------------------------------------------------------------------
# Text encoding
# ---------------------------------------------------------------------------


def dumps(value: JSONValue) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def loads(text: str | bytes) -> JSONValue:
    """Parse JSON text; integers decode as floats."""
    return json.loads(text, parse_int=float)


# ---------------------------------------------------------------------------
# Structural equality
# ---------------------------------------------------------------------------


def equal(a: Any, b: Any) -> bool:
    """
    Deep structural equality between two JSON values.

    Arrays compare in order, objects ignore key order, 1 equals 1.0 and a
    bool never equals a number.
    """
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool) and a == b
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return float(a) == float(b)
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(equal(x, y) for x, y in zip(a, b))
    if isinstance(a, dict) and isinstance(b, dict):
        return a.keys() == b.keys() and all(equal(a[key], b[key]) for key in a)
    return False


# ---------------------------------------------------------------------------
# Typed conversion
# ---------------------------------------------------------------------------


def to_model(args: dict[str, JSONValue], model_cls: type[BaseModel]) -> BaseModel:
    """Validate a JSON argument map into a typed pydantic model."""
    return model_cls.model_validate(args)


def from_model(obj: Any) -> JSONValue:
    """Dump a pydantic model (or any JSON-ish value) into a normalized JSON value."""
    if isinstance(obj, BaseModel):
        return normalize(obj.model_dump(mode="json"))
    return normalize(obj)
