from __future__ import annotations

import json
from typing import Any

import yaml

from .tools.errors import LocalToolError


class ArgumentError(LocalToolError):
    pass


_TRUE = {"true", "yes", "1", "on"}
_FALSE = {"false", "no", "0", "off"}


def parse_tool_args(raw: object) -> dict[str, Any]:
    """Accept the ``arguments`` member of a tools/call request.

    Hosts normally send an object, but some serialise it to a string (and a
    few wrap that string in a markdown code fence).
    """
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if not isinstance(raw, str):
        raise ArgumentError("invalid tool arguments: expected object payload")
    cleaned = raw.strip()
    if not cleaned:
        return {}
    if cleaned.startswith("```") and cleaned.endswith("```"):
        cleaned = "\n".join(cleaned.splitlines()[1:-1]).strip()
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        try:
            parsed = yaml.safe_load(cleaned)
        except yaml.YAMLError as exc:
            raise ArgumentError(f"invalid tool arguments: {exc}") from exc
    if not isinstance(parsed, dict):
        raise ArgumentError("invalid tool arguments: expected object payload")
    return parsed


def coerce_args(schema: dict[str, Any], arguments: dict[str, Any]) -> dict[str, Any]:
    """Validate ``arguments`` against a tool ``inputSchema`` and fill defaults."""
    return _coerce_object(schema, arguments, path="")


def _where(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _coerce_object(schema: dict[str, Any], value: object, *, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ArgumentError(f"{path or 'arguments'}: expected an object")
    props: dict[str, Any] = schema.get("properties", {})
    result: dict[str, Any] = {}
    for key in schema.get("required", []):
        if value.get(key) is None:
            raise ArgumentError(f"{_where(path, key)}: required")
    for key, prop in props.items():
        where = _where(path, key)
        if value.get(key) is None:
            if "default" in prop:
                result[key] = prop["default"]
            continue
        result[key] = _coerce_value(prop, value[key], path=where)
    return result


def _coerce_value(prop: dict[str, Any], value: object, *, path: str) -> Any:
    kind = prop.get("type")
    if kind == "string":
        out: Any = _as_string(value, path)
        if len(out) < prop.get("minLength", 0):
            raise ArgumentError(f"{path}: must not be empty")
    elif kind == "integer":
        out = _as_integer(value, path)
    elif kind == "number":
        out = _as_number(value, path)
    elif kind == "boolean":
        out = _as_boolean(value, path)
    elif kind == "array":
        if not isinstance(value, list):
            raise ArgumentError(f"{path}: expected an array")
        item_schema = prop.get("items", {})
        out = [_coerce_value(item_schema, item, path=f"{path}[{i}]") for i, item in enumerate(value)]
    elif kind == "object":
        out = _coerce_object(prop, value, path=path)
    else:
        out = value

    enum = prop.get("enum")
    if enum is not None and out not in enum:
        raise ArgumentError(f"{path}: must be one of {', '.join(map(str, enum))}")
    if "minimum" in prop and out < prop["minimum"]:
        raise ArgumentError(f"{path}: must be >= {prop['minimum']}")
    if "maximum" in prop and out > prop["maximum"]:
        raise ArgumentError(f"{path}: must be <= {prop['maximum']}")
    return out


def _as_string(value: object, path: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ArgumentError(f"{path}: expected a string")


def _as_integer(value: object, path: str) -> int:
    if isinstance(value, bool):
        raise ArgumentError(f"{path}: expected an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ArgumentError(f"{path}: expected an integer")


def _as_number(value: object, path: str) -> float:
    if isinstance(value, bool):
        raise ArgumentError(f"{path}: expected a number")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            pass
    raise ArgumentError(f"{path}: expected a number")


def _as_boolean(value: object, path: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _TRUE | _FALSE:
        return value.strip().lower() in _TRUE
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ArgumentError(f"{path}: expected a boolean")
