"""
JSON Schema
===========

Schema description for MCP tool inputs and a structural validator.

JSON values are plain Python values: ``dict``, ``list``, ``str``, ``int``,
``float``, ``bool`` and ``None``.

Schemas are immutable variants (null, boolean, anyOf, enum, object, string,
array, number, integer). ``schema_from_dict`` / ``schema_to_dict`` translate
to and from the JSON Schema wire format, and ``validate`` checks a value
against a schema, raising a :class:`SchemaValidationError` subclass that
carries the path of the offending value.
"""

import json
import math
import re
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from src.realtime_api.errors import (
    AnyOfMismatchError,
    ArrayLengthError,
    EnumMismatchError,
    InvalidSchemaError,
    MissingRequiredPropertyError,
    NumberConstraintError,
    PatternMismatchError,
    SchemaDecodeError,
    SchemaValidationError,
    TypeMismatchError,
)

ROOT_PATH = "$"

_NUMERIC_STRING = re.compile(r"^-?(0|[1-9]\d*)(\.\d+)?([eE][+-]?\d+)?$")
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class StringFormat(str, Enum):
    """Well-known string formats. Informational only, never enforced."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"
    UUID = "uuid"
    DATE = "date"
    TIME = "time"
    EMAIL = "email"
    DURATION = "duration"
    HOSTNAME = "hostname"
    DATE_TIME = "date-time"


class JSONSchema:
    """Base class of every schema variant."""

    type_name: str = ""

    def with_description(self, description: Optional[str]) -> "JSONSchema":
        return replace(self, description=description)

    def validate(self, value: Any) -> None:
        validate(value, self)

    def __eq__(self, other: object) -> bool:
        if other.__class__ is not self.__class__:
            return NotImplemented
        return all(getattr(self, f.name) == getattr(other, f.name) for f in fields(self))

    def __hash__(self) -> int:
        # properties is a dict, so hash the canonical wire form instead of the fields
        return hash(json.dumps(schema_to_dict(self), sort_keys=True, default=repr))


@dataclass(frozen=True, eq=False)
class NullSchema(JSONSchema):
    type_name = "null"

    description: Optional[str] = None


@dataclass(frozen=True, eq=False)
class BooleanSchema(JSONSchema):
    type_name = "boolean"

    description: Optional[str] = None


@dataclass(frozen=True, eq=False)
class AnyOfSchema(JSONSchema):
    type_name = "anyOf"

    schemas: Tuple[JSONSchema, ...] = ()
    description: Optional[str] = None


@dataclass(frozen=True, eq=False)
class EnumSchema(JSONSchema):
    """A string limited to the given cases."""

    type_name = "enum"

    cases: Tuple[str, ...] = ()
    description: Optional[str] = None


@dataclass(frozen=True, eq=False)
class ObjectSchema(JSONSchema):
    """
    A JSON object. Properties not listed in ``properties`` validate against
    ``additional_properties`` when it is set and are accepted otherwise.
    """

    type_name = "object"

    properties: Mapping[str, JSONSchema] = field(default_factory=dict)
    required: Optional[Tuple[str, ...]] = None
    additional_properties: Optional[JSONSchema] = None
    description: Optional[str] = None
    title: Optional[str] = None
    default: Any = None
    examples: Optional[Tuple[Any, ...]] = None


@dataclass(frozen=True, eq=False)
class StringSchema(JSONSchema):
    type_name = "string"

    pattern: Optional[str] = None
    format: Optional[StringFormat] = None
    description: Optional[str] = None
    title: Optional[str] = None
    default: Optional[str] = None
    examples: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True, eq=False)
class ArraySchema(JSONSchema):
    """An array whose elements all match ``items`` (any element when ``items`` is None)."""

    type_name = "array"

    items: Optional[JSONSchema] = None
    min_items: Optional[int] = None
    max_items: Optional[int] = None
    description: Optional[str] = None
    title: Optional[str] = None
    default: Optional[Tuple[Any, ...]] = None
    examples: Optional[Tuple[Any, ...]] = None


@dataclass(frozen=True, eq=False)
class NumberSchema(JSONSchema):
    type_name = "number"

    multiple_of: Optional[float] = None
    minimum: Optional[float] = None
    exclusive_minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_maximum: Optional[float] = None
    description: Optional[str] = None
    title: Optional[str] = None
    default: Optional[float] = None
    examples: Optional[Tuple[float, ...]] = None


@dataclass(frozen=True, eq=False)
class IntegerSchema(JSONSchema):
    type_name = "integer"

    multiple_of: Optional[int] = None
    minimum: Optional[int] = None
    exclusive_minimum: Optional[int] = None
    maximum: Optional[int] = None
    exclusive_maximum: Optional[int] = None
    description: Optional[str] = None
    title: Optional[str] = None
    default: Optional[int] = None
    examples: Optional[Tuple[int, ...]] = None


# ---------------------------
# Paths
# ---------------------------


def child_path(path: str, key) -> str:
    """Append an object key or array index to a path."""
    if isinstance(key, int):
        return f"{path}[{key}]"
    if _IDENTIFIER.match(key):
        return f"{path}.{key}"
    escaped = key.replace("\\", "\\\\").replace('"', '\\"')
    return f'{path}["{escaped}"]'


def json_type_name(value: Any) -> str:
    """The JSON type of a Python value, as used in error messages."""
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
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    return type(value).__name__


# ---------------------------
# Decoding / encoding
# ---------------------------

_NUMERIC_KEYS = (
    ("multipleOf", "multiple_of"),
    ("minimum", "minimum"),
    ("exclusiveMinimum", "exclusive_minimum"),
    ("maximum", "maximum"),
    ("exclusiveMaximum", "exclusive_maximum"),
)


def _tuple_or_none(value: Any) -> Optional[Tuple[Any, ...]]:
    return tuple(value) if value is not None else None


def schema_from_dict(data: Mapping[str, Any], path: str = ROOT_PATH) -> JSONSchema:
    """
    Decode a JSON Schema dict.

    ``anyOf`` takes precedence over ``type``; a list of types becomes an
    ``anyOf`` of single-type schemas; a string schema with ``enum`` becomes an
    :class:`EnumSchema`.
    """
    if isinstance(data, JSONSchema):
        return data
    if not isinstance(data, Mapping):
        raise SchemaDecodeError(path, f"expected an object, got {json_type_name(data)}")

    description = data.get("description")

    if "anyOf" in data:
        candidates = data["anyOf"]
        if not isinstance(candidates, list):
            raise SchemaDecodeError(child_path(path, "anyOf"), "expected an array")
        return AnyOfSchema(
            schemas=tuple(
                schema_from_dict(candidate, child_path(child_path(path, "anyOf"), index))
                for index, candidate in enumerate(candidates)
            ),
            description=description,
        )

    schema_type = data.get("type")
    if isinstance(schema_type, list):
        return AnyOfSchema(
            schemas=tuple(
                schema_from_dict({**data, "type": single}, path) for single in schema_type
            ),
            description=description,
        )

    if "enum" in data and schema_type in (None, "string"):
        cases = data["enum"]
        if not isinstance(cases, list) or not all(isinstance(case, str) for case in cases):
            raise SchemaDecodeError(child_path(path, "enum"), "only string enums are supported")
        return EnumSchema(cases=tuple(cases), description=description)

    if schema_type is None and "properties" in data:
        schema_type = "object"

    decoder = _DECODERS.get(schema_type)
    if decoder is None:
        raise SchemaDecodeError(path, f"unsupported schema type {schema_type!r}")
    return decoder(data, path)


def _decode_object(data: Mapping[str, Any], path: str) -> ObjectSchema:
    properties = data.get("properties") or {}
    if not isinstance(properties, Mapping):
        raise SchemaDecodeError(child_path(path, "properties"), "expected an object")
    additional = data.get("additionalProperties")
    return ObjectSchema(
        properties={
            name: schema_from_dict(value, child_path(child_path(path, "properties"), name))
            for name, value in properties.items()
        },
        required=_tuple_or_none(data.get("required")),
        # `additionalProperties: true/false` carries no schema to validate against
        additional_properties=(
            schema_from_dict(additional, child_path(path, "additionalProperties"))
            if isinstance(additional, Mapping)
            else None
        ),
        description=data.get("description"),
        title=data.get("title"),
        default=data.get("default"),
        examples=_tuple_or_none(data.get("examples")),
    )


def _decode_string(data: Mapping[str, Any], path: str) -> StringSchema:
    raw_format = data.get("format")
    try:
        string_format = StringFormat(raw_format) if raw_format is not None else None
    except ValueError:
        string_format = None
    return StringSchema(
        pattern=data.get("pattern"),
        format=string_format,
        description=data.get("description"),
        title=data.get("title"),
        default=data.get("default"),
        examples=_tuple_or_none(data.get("examples")),
    )


def _decode_array(data: Mapping[str, Any], path: str) -> ArraySchema:
    items = data.get("items")
    return ArraySchema(
        items=schema_from_dict(items, child_path(path, "items")) if items is not None else None,
        min_items=data.get("minItems"),
        max_items=data.get("maxItems"),
        description=data.get("description"),
        title=data.get("title"),
        default=_tuple_or_none(data.get("default")),
        examples=_tuple_or_none(data.get("examples")),
    )


def _numeric_decoder(schema_cls: Type[JSONSchema]) -> Callable[[Mapping[str, Any], str], JSONSchema]:
    def decode(data: Mapping[str, Any], path: str) -> JSONSchema:
        constraints = {attr: data.get(key) for key, attr in _NUMERIC_KEYS}
        return schema_cls(
            **constraints,
            description=data.get("description"),
            title=data.get("title"),
            default=data.get("default"),
            examples=_tuple_or_none(data.get("examples")),
        )

    return decode


_DECODERS: Dict[Optional[str], Callable[[Mapping[str, Any], str], JSONSchema]] = {
    "null": lambda data, path: NullSchema(description=data.get("description")),
    "boolean": lambda data, path: BooleanSchema(description=data.get("description")),
    "object": _decode_object,
    "string": _decode_string,
    "array": _decode_array,
    "number": _numeric_decoder(NumberSchema),
    "integer": _numeric_decoder(IntegerSchema),
}


def _put(target: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        target[key] = list(value) if isinstance(value, tuple) else value


def schema_to_dict(schema: JSONSchema) -> Dict[str, Any]:
    """Encode a schema to its JSON Schema dict representation."""
    result: Dict[str, Any] = {}

    if isinstance(schema, AnyOfSchema):
        result["anyOf"] = [schema_to_dict(candidate) for candidate in schema.schemas]
    elif isinstance(schema, EnumSchema):
        result["type"] = "string"
        result["enum"] = list(schema.cases)
    elif isinstance(schema, ObjectSchema):
        result["type"] = "object"
        result["properties"] = {
            name: schema_to_dict(value) for name, value in schema.properties.items()
        }
        _put(result, "required", schema.required)
        if schema.additional_properties is not None:
            result["additionalProperties"] = schema_to_dict(schema.additional_properties)
    elif isinstance(schema, StringSchema):
        result["type"] = "string"
        _put(result, "pattern", schema.pattern)
        if schema.format is not None:
            result["format"] = schema.format.value
    elif isinstance(schema, ArraySchema):
        result["type"] = "array"
        if schema.items is not None:
            result["items"] = schema_to_dict(schema.items)
        _put(result, "minItems", schema.min_items)
        _put(result, "maxItems", schema.max_items)
    elif isinstance(schema, (NumberSchema, IntegerSchema)):
        result["type"] = schema.type_name
        for key, attr in _NUMERIC_KEYS:
            _put(result, key, getattr(schema, attr))
    elif isinstance(schema, (NullSchema, BooleanSchema)):
        result["type"] = schema.type_name
    else:
        raise TypeError(f"Unknown schema variant: {type(schema).__name__}")

    _put(result, "description", schema.description)
    for key in ("title", "default", "examples"):
        _put(result, key, getattr(schema, key, None))
    return result


# ---------------------------
# Validation
# ---------------------------


def validate(value: Any, schema: JSONSchema, path: str = ROOT_PATH) -> None:
    """
    Validate ``value`` against ``schema``.

    Returns ``None`` on success and raises a :class:`SchemaValidationError`
    subclass on the first failure. The value is never modified.
    """
    validator = _VALIDATORS.get(type(schema))
    if validator is None:
        raise TypeError(f"Unknown schema variant: {type(schema).__name__}")
    validator(value, schema, path)


def _validate_null(value: Any, schema: NullSchema, path: str) -> None:
    if value is not None:
        raise TypeMismatchError(path, "null", json_type_name(value))


def _validate_boolean(value: Any, schema: BooleanSchema, path: str) -> None:
    if not isinstance(value, bool):
        raise TypeMismatchError(path, "boolean", json_type_name(value))


def _validate_any_of(value: Any, schema: AnyOfSchema, path: str) -> None:
    errors: List[SchemaValidationError] = []
    for candidate in schema.schemas:
        try:
            validate(value, candidate, path)
            return
        except SchemaValidationError as e:
            errors.append(e)
    raise AnyOfMismatchError(path, errors)


def _validate_enum(value: Any, schema: EnumSchema, path: str) -> None:
    if not isinstance(value, str):
        raise TypeMismatchError(path, "string", json_type_name(value))
    if value not in schema.cases:
        raise EnumMismatchError(path, value, schema.cases)


def _validate_object(value: Any, schema: ObjectSchema, path: str) -> None:
    if not isinstance(value, Mapping):
        raise TypeMismatchError(path, "object", json_type_name(value))

    for name in schema.required or ():
        if name not in value:
            raise MissingRequiredPropertyError(path, name)

    for name, property_value in value.items():
        property_schema = schema.properties.get(name, schema.additional_properties)
        if property_schema is not None:
            validate(property_value, property_schema, child_path(path, name))


def _validate_string(value: Any, schema: StringSchema, path: str) -> None:
    if not isinstance(value, str):
        raise TypeMismatchError(path, "string", json_type_name(value))
    if schema.pattern is None:
        return
    try:
        matched = re.search(schema.pattern, value)
    except re.error as e:
        raise InvalidSchemaError(path, f"invalid pattern {schema.pattern!r}: {e}") from e
    if matched is None:
        raise PatternMismatchError(path, value, schema.pattern)


def _validate_array(value: Any, schema: ArraySchema, path: str) -> None:
    if not isinstance(value, (list, tuple)):
        raise TypeMismatchError(path, "array", json_type_name(value))

    length = len(value)
    if (schema.min_items is not None and length < schema.min_items) or (
        schema.max_items is not None and length > schema.max_items
    ):
        raise ArrayLengthError(path, length, schema.min_items, schema.max_items)

    if schema.items is None:
        return
    for index, element in enumerate(value):
        validate(element, schema.items, child_path(path, index))


def _as_number(value: Any) -> Optional[float]:
    """Numeric view of an int, finite float or numeric string; None otherwise."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str) and _NUMERIC_STRING.match(value):
        number = float(value)
        return number if math.isfinite(number) else None
    return None


def _check_numeric_constraints(number: float, schema, path: str) -> None:
    if schema.minimum is not None and number < schema.minimum:
        raise NumberConstraintError(path, number, "minimum", schema.minimum)
    if schema.exclusive_minimum is not None and number <= schema.exclusive_minimum:
        raise NumberConstraintError(path, number, "exclusiveMinimum", schema.exclusive_minimum)
    if schema.maximum is not None and number > schema.maximum:
        raise NumberConstraintError(path, number, "maximum", schema.maximum)
    if schema.exclusive_maximum is not None and number >= schema.exclusive_maximum:
        raise NumberConstraintError(path, number, "exclusiveMaximum", schema.exclusive_maximum)
    if schema.multiple_of:
        quotient = number / schema.multiple_of
        if not math.isclose(quotient, round(quotient), rel_tol=0, abs_tol=1e-9):
            raise NumberConstraintError(path, number, "multipleOf", schema.multiple_of)


def _validate_number(value: Any, schema: NumberSchema, path: str) -> None:
    number = _as_number(value)
    if number is None:
        raise TypeMismatchError(path, "number", json_type_name(value))
    _check_numeric_constraints(number, schema, path)


def _validate_integer(value: Any, schema: IntegerSchema, path: str) -> None:
    number = _as_number(value)
    if number is None or (isinstance(number, float) and not number.is_integer()):
        raise TypeMismatchError(path, "integer", json_type_name(value))
    _check_numeric_constraints(number, schema, path)


_VALIDATORS: Dict[type, Callable[[Any, Any, str], None]] = {
    NullSchema: _validate_null,
    BooleanSchema: _validate_boolean,
    AnyOfSchema: _validate_any_of,
    EnumSchema: _validate_enum,
    ObjectSchema: _validate_object,
    StringSchema: _validate_string,
    ArraySchema: _validate_array,
    NumberSchema: _validate_number,
    IntegerSchema: _validate_integer,
}
