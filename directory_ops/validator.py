"""Argument validation for registered commands.

Each command declares its input shape as an ordered list of field descriptors
(plain dicts, built with :func:`field`).  :class:`ArgumentValidator` checks a
raw argument mapping against that shape, stops at the first offending field,
and returns a new dict with defaults applied.  Validation is pure: it never
talks to the directory.

Supported types: ``string``, ``boolean``, ``integer``, ``number``, ``array``
and ``object``.  Constraints: ``enum``, ``minimum``/``maximum`` (numbers),
``min_length`` (strings), ``format`` (``email``), ``items`` (element
descriptor for arrays) and ``values`` (value descriptor for objects).
"""

import copy
import re
from typing import Any, Dict, List, Optional

from .errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_JSON_TYPES = {
    "string": "string",
    "boolean": "boolean",
    "integer": "integer",
    "number": "number",
    "array": "array",
    "object": "object",
}


def field(
    name: str,
    type: str,
    required: bool = False,
    default: Any = None,
    description: str = "",
    **constraints: Any,
) -> Dict[str, Any]:
    """Build a field descriptor.

    Args:
        name:        Argument name as advertised to callers (e.g. ``userId``).
        type:        One of the supported type names.
        required:    Whether the caller must supply the field.
        default:     Value used when an optional field is absent.
        description: Shown in the advertised input schema.
        constraints: ``enum``, ``minimum``, ``maximum``, ``min_length``,
                     ``format``, ``items``, ``values``.
    """
    if type not in _JSON_TYPES:
        raise ValueError(f"Unsupported field type: {type}")
    descriptor: Dict[str, Any] = {
        "name": name,
        "type": type,
        "required": required,
        "default": default,
        "description": description,
    }
    descriptor.update(constraints)
    return descriptor


def to_json_schema(shape: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Render an input shape as the JSON Schema object advertised by ``list_commands``."""
    properties: Dict[str, Any] = {}
    required: List[str] = []
    for descriptor in shape:
        properties[descriptor["name"]] = _property_schema(descriptor)
        if descriptor.get("required"):
            required.append(descriptor["name"])
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def _property_schema(descriptor: Dict[str, Any]) -> Dict[str, Any]:
    prop: Dict[str, Any] = {"type": _JSON_TYPES[descriptor["type"]]}
    if descriptor.get("description"):
        prop["description"] = descriptor["description"]
    if descriptor.get("default") is not None:
        prop["default"] = descriptor["default"]
    if "enum" in descriptor:
        prop["enum"] = list(descriptor["enum"])
    if "minimum" in descriptor:
        prop["minimum"] = descriptor["minimum"]
    if "maximum" in descriptor:
        prop["maximum"] = descriptor["maximum"]
    if "min_length" in descriptor:
        prop["minLength"] = descriptor["min_length"]
    if "format" in descriptor:
        prop["format"] = descriptor["format"]
    if "items" in descriptor:
        prop["items"] = _property_schema(descriptor["items"])
    if "values" in descriptor:
        prop["additionalProperties"] = _property_schema(descriptor["values"])
    return prop


class ArgumentValidator:
    """Validates raw command arguments against a declared input shape.

    Unknown keys in the input are dropped from the result.  The first failing
    field raises :class:`~directory_ops.errors.ValidationError` with ``path``
    set to that field's name.
    """

    def __init__(self, shape: List[Dict[str, Any]]):
        self.shape = shape

    def validate(self, data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Return validated, defaulted arguments or raise ``ValidationError``."""
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValidationError("Arguments must be an object")

        result: Dict[str, Any] = {}
        for descriptor in self.shape:
            name = descriptor["name"]
            if name not in data or data[name] is None:
                if descriptor.get("required"):
                    raise ValidationError(f"Missing required field: '{name}'", path=name)
                result[name] = copy.deepcopy(descriptor.get("default"))
                continue
            result[name] = self._check_value(data[name], descriptor, name)
        return result

    def _check_value(self, value: Any, descriptor: Dict[str, Any], path: str) -> Any:
        """Type-check and constraint-check one value, returning the coerced value."""
        expected = descriptor["type"]

        if expected == "string":
            if not isinstance(value, str):
                raise ValidationError(f"Expected string, got {_type_name(value)}", path=path)
            min_length = descriptor.get("min_length")
            if min_length is not None and len(value.strip()) < min_length:
                raise ValidationError(
                    f"Value must be at least {min_length} character(s)", path=path
                )
            if descriptor.get("format") == "email" and not _EMAIL_RE.match(value):
                raise ValidationError(f"Invalid email address: '{value}'", path=path)

        elif expected == "boolean":
            if not isinstance(value, bool):
                raise ValidationError(f"Expected boolean, got {_type_name(value)}", path=path)

        elif expected == "integer":
            # JSON clients sometimes send 50.0 for 50
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"Expected integer, got {_type_name(value)}", path=path)
            self._check_bounds(value, descriptor, path)

        elif expected == "number":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"Expected number, got {_type_name(value)}", path=path)
            self._check_bounds(value, descriptor, path)

        elif expected == "array":
            if not isinstance(value, list):
                raise ValidationError(f"Expected array, got {_type_name(value)}", path=path)
            item_descriptor = descriptor.get("items")
            if item_descriptor:
                value = [
                    self._check_value(item, item_descriptor, f"{path}[{idx}]")
                    for idx, item in enumerate(value)
                ]

        elif expected == "object":
            if not isinstance(value, dict):
                raise ValidationError(f"Expected object, got {_type_name(value)}", path=path)
            value_descriptor = descriptor.get("values")
            if value_descriptor:
                value = {
                    key: self._check_value(item, value_descriptor, f"{path}.{key}")
                    for key, item in value.items()
                }

        enum = descriptor.get("enum")
        if enum is not None and value not in enum:
            raise ValidationError(
                f"Invalid value '{value}'. Must be one of: {', '.join(str(e) for e in enum)}",
                path=path,
            )
        return value

    def _check_bounds(self, value: Any, descriptor: Dict[str, Any], path: str):
        minimum = descriptor.get("minimum")
        maximum = descriptor.get("maximum")
        if minimum is not None and value < minimum:
            raise ValidationError(f"Value {value} is below minimum {minimum}", path=path)
        if maximum is not None and value > maximum:
            raise ValidationError(f"Value {value} is above maximum {maximum}", path=path)


def _type_name(value: Any) -> str:
    """JSON-flavoured type name for error messages."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__
