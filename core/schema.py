# =============================================================================
# core/schema.py  —  Parameter Schemas & Validation
# =============================================================================
#
# WHAT THIS MODULE DOES:
#   Tool parameters are declared as plain data (Param descriptors) and
#   checked by ONE generic routine, validate().  The same descriptors are
#   rendered to JSON Schema for the MCP tool listing, so what the client
#   sees and what the server enforces can't drift apart.
#
#     SEND_TEXT = {
#         "from":    string(description="Sender number or PN id"),
#         "content": string(min_length=1, max_length=1600),
#         "setInboxStatus": optional(enum("done")),
#     }
#     validate(SEND_TEXT, {"from": "PN1", "content": "hi", "extra": 1})
#       → {"from": "PN1", "content": "hi"}        # "extra" is dropped
#
# RULES:
#   - A missing or None required parameter fails.
#   - A missing or None optional parameter takes its default, or is left
#     out of the result when it has none.
#   - Undeclared parameters are dropped, never forwarded.
#   - bool is not accepted as a number.
# =============================================================================

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from core.errors import ValidationError

logger = logging.getLogger(__name__)

_MISSING = object()

STRING = "string"
NUMBER = "number"
INTEGER = "integer"
BOOLEAN = "boolean"
ARRAY = "array"
OBJECT = "object"
ENUM = "enum"


@dataclass(frozen=True)
class Param:
    """Constraint descriptor for one parameter."""

    kind: str
    required: bool = True
    default: Any = _MISSING
    description: str = ""
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    choices: Tuple[Any, ...] = ()
    items: Optional["Param"] = None
    fields: Dict[str, "Param"] = field(default_factory=dict)

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING


Schema = Dict[str, Param]


# -----------------------------------------------------------------------------
# Builders
# -----------------------------------------------------------------------------
def string(description: str = "", min_length: Optional[int] = None, max_length: Optional[int] = None) -> Param:
    return Param(STRING, description=description, min_length=min_length, max_length=max_length)


def number(description: str = "", minimum: Optional[float] = None, maximum: Optional[float] = None) -> Param:
    return Param(NUMBER, description=description, minimum=minimum, maximum=maximum)


def integer(description: str = "", minimum: Optional[int] = None, maximum: Optional[int] = None) -> Param:
    return Param(INTEGER, description=description, minimum=minimum, maximum=maximum)


def boolean(description: str = "") -> Param:
    return Param(BOOLEAN, description=description)


def enum(*choices: Any, description: str = "") -> Param:
    return Param(ENUM, description=description, choices=tuple(choices))


def array(items: Param, description: str = "", min_items: Optional[int] = None,
          max_items: Optional[int] = None) -> Param:
    return Param(ARRAY, description=description, items=items, min_items=min_items, max_items=max_items)


def obj(description: str = "", **fields: Param) -> Param:
    return Param(OBJECT, description=description, fields=dict(fields))


def optional(param: Param, default: Any = _MISSING) -> Param:
    """Mark a descriptor optional, with an optional default."""
    return replace(param, required=False, default=default)


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------
def validate(schema: Schema, raw: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Check `raw` against `schema` and return only the declared parameters.

    Raises:
        ValidationError: naming the first parameter that failed.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValidationError("arguments", "must be an object")

    extra = sorted(set(raw) - set(schema))
    if extra:
        logger.debug("Dropping undeclared parameters: %s", ", ".join(extra))

    return _validate_fields(schema, raw, prefix="")


def _validate_fields(schema: Schema, raw: Mapping[str, Any], prefix: str) -> Dict[str, Any]:
    result = {}
    for name, param in schema.items():
        path = f"{prefix}{name}"
        value = raw.get(name)
        if value is None:
            if param.required:
                raise ValidationError(path, "is required")
            if param.has_default:
                result[name] = param.default
            continue
        result[name] = _check(param, value, path)
    return result


def _check(param: Param, value: Any, path: str) -> Any:
    kind = param.kind

    if kind == STRING:
        if not isinstance(value, str):
            raise ValidationError(path, "must be a string")
        if param.min_length is not None and len(value) < param.min_length:
            raise ValidationError(path, f"must be at least {param.min_length} characters")
        if param.max_length is not None and len(value) > param.max_length:
            raise ValidationError(path, f"must be at most {param.max_length} characters")
        return value

    if kind in (NUMBER, INTEGER):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(path, "must be an integer" if kind == INTEGER else "must be a number")
        if kind == INTEGER:
            if isinstance(value, float):
                if not value.is_integer():
                    raise ValidationError(path, "must be an integer")
                value = int(value)
        if param.minimum is not None and value < param.minimum:
            raise ValidationError(path, f"must be >= {param.minimum:g}")
        if param.maximum is not None and value > param.maximum:
            raise ValidationError(path, f"must be <= {param.maximum:g}")
        return value

    if kind == BOOLEAN:
        if not isinstance(value, bool):
            raise ValidationError(path, "must be a boolean")
        return value

    if kind == ENUM:
        if value not in param.choices:
            allowed = ", ".join(repr(c) for c in param.choices)
            raise ValidationError(path, f"must be one of: {allowed}")
        return value

    if kind == ARRAY:
        if not isinstance(value, (list, tuple)):
            raise ValidationError(path, "must be an array")
        if param.min_items is not None and len(value) < param.min_items:
            raise ValidationError(path, f"must contain at least {param.min_items} items")
        if param.max_items is not None and len(value) > param.max_items:
            raise ValidationError(path, f"must contain at most {param.max_items} items")
        return [_check(param.items, item, f"{path}[{i}]") for i, item in enumerate(value)]

    if kind == OBJECT:
        if not isinstance(value, Mapping):
            raise ValidationError(path, "must be an object")
        return _validate_fields(param.fields, value, prefix=f"{path}.")

    raise ValueError(f"Unknown parameter kind: {kind}")


# -----------------------------------------------------------------------------
# JSON Schema rendering (for the MCP tool listing)
# -----------------------------------------------------------------------------
def to_json_schema(schema: Schema) -> Dict[str, Any]:
    """Render a schema as a JSON Schema object."""
    return _object_schema(schema)


def _object_schema(fields: Schema) -> Dict[str, Any]:
    rendered: Dict[str, Any] = {
        "type": "object",
        "properties": {name: _param_schema(p) for name, p in fields.items()},
    }
    required = [name for name, p in fields.items() if p.required]
    if required:
        rendered["required"] = required
    return rendered


def _param_schema(param: Param) -> Dict[str, Any]:
    if param.kind == OBJECT:
        out = _object_schema(param.fields)
    elif param.kind == ENUM:
        out = {"type": "string", "enum": list(param.choices)}
    else:
        out = {"type": param.kind}

    if param.kind == ARRAY:
        out["items"] = _param_schema(param.items)
    for key, attr in (
        ("minLength", param.min_length),
        ("maxLength", param.max_length),
        ("minimum", param.minimum),
        ("maximum", param.maximum),
        ("minItems", param.min_items),
        ("maxItems", param.max_items),
    ):
        if attr is not None:
            out[key] = attr
    if param.has_default:
        out["default"] = param.default
    if param.description:
        out["description"] = param.description
    return out
