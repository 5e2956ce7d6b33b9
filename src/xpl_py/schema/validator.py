"""Schema validation and type coercion for decoded xPL blocks.

A schema is registered per message name (a header name such as
``xpl-stat`` or a body name such as ``sensor.basic``).  When a block of
that name is decoded, every field is checked against its declared
descriptor and numeric or boolean fields are coerced in place.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from xpl_py.errors import XplValidationError
from xpl_py.types.enums import FieldType, ValidationErrorCode

logger = logging.getLogger(__name__)

FieldValue = str | int | float | bool
"""A single header or body value: a string on the wire, possibly coerced."""

# Leading-prefix number parsing: trailing garbage after a valid number
# is ignored ("21.5C" -> 21.5, "12abc" -> 12).
_INTEGER_PREFIX = re.compile(r"\s*([+-]?\d+)")
_FLOAT_PREFIX = re.compile(r"\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?)")

FALSE_STRINGS = frozenset({"f", "0", "false", "no", "n", "[]"})
"""Lower-cased values coerced to ``False`` by a boolean field."""


@dataclass(slots=True)
class FieldSchema:
    """Descriptor for a single field.

    ``type`` is kept as the declared string so that schemas naming an
    unsupported type can still be registered; they fail with
    ``NOT_IMPLEMENTED`` when a matching field is validated.
    """

    type: str
    minimum: float | None = None
    maximum: float | None = None
    pattern: str | None = None
    enum: tuple[str, ...] | None = None
    _compiled: re.Pattern[str] | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.pattern is None:
            return
        try:
            self._compiled = re.compile(self.pattern)
        except (re.error, TypeError) as exc:
            msg = f"Invalid pattern {self.pattern!r}: {exc}"
            raise ValueError(msg) from exc

    @property
    def regex(self) -> re.Pattern[str] | None:
        """Compiled :attr:`pattern`, or ``None`` when no pattern is set."""
        return self._compiled

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> FieldSchema:
        """Build from a JSON-schema-like property mapping.

        Non-numeric ``minimum``/``maximum`` and non-list ``enum`` entries
        are ignored.
        """
        minimum = data.get("minimum")
        maximum = data.get("maximum")
        enum = data.get("enum")
        return cls(
            type=str(data.get("type", "")),
            minimum=minimum if _is_number(minimum) else None,
            maximum=maximum if _is_number(maximum) else None,
            pattern=data.get("pattern"),
            enum=tuple(str(v) for v in enum) if isinstance(enum, list | tuple) else None,
        )


@dataclass(slots=True)
class Schema:
    """Field descriptors plus the set of fields that must be present."""

    properties: dict[str, FieldSchema] = field(default_factory=dict)
    required: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Schema:
        """Build from ``{"properties": {...}, "required": [...]}``."""
        properties = {
            name: desc if isinstance(desc, FieldSchema) else FieldSchema.from_dict(desc)
            for name, desc in (data.get("properties") or {}).items()
        }
        return cls(properties=properties, required=frozenset(data.get("required") or ()))


class SchemaRegistry:
    """Schemas keyed by message name.

    One registry exists for header names and one for body names.
    """

    def __init__(self) -> None:
        self._schemas: dict[str, Schema] = {}

    def register(self, name: str, schema: Schema | Mapping[str, Any]) -> Schema:
        """Register (or replace) the schema for *name*.

        :param name: Header or body name the schema applies to.
        :param schema: A :class:`Schema` or its mapping form.
        :returns: The registered :class:`Schema`.
        :raises ValueError: If a field's ``pattern`` is not a valid regular
            expression.
        """
        if not isinstance(schema, Schema):
            schema = Schema.from_dict(schema)
        self._schemas[name] = schema
        logger.debug("Registered schema for %r (%d fields)", name, len(schema.properties))
        return schema

    def get(self, name: str | None) -> Schema | None:
        """Look up the schema for *name*, or ``None``."""
        if name is None:
            return None
        return self._schemas.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


def validate(schema: Schema, fields: dict[str, FieldValue]) -> None:
    """Check *fields* against *schema*, coercing values in place.

    Every present field must have a descriptor.  Numeric fields are
    parsed and range-checked, boolean fields are mapped through
    :data:`FALSE_STRINGS`, string fields are checked against
    ``pattern`` and ``enum``.  Finally every required field must be
    present.

    :param schema: The schema to apply.
    :param fields: Decoded block; mutated in place.
    :raises XplValidationError: On the first failing check.
    """
    for name, value in list(fields.items()):
        desc = schema.properties.get(name)
        if desc is None:
            raise XplValidationError(
                ValidationErrorCode.UNKNOWN_FIELD, f"Unknown field '{name}'", name
            )
        if value is None:
            raise XplValidationError(
                ValidationErrorCode.NO_VALUE, f"Field '{name}' has no value", name
            )
        fields[name] = _coerce(name, desc, value)

    for name in schema.required:
        if name not in fields:
            raise XplValidationError(
                ValidationErrorCode.REQUIRED_FIELD_NOT_SPECIFIED,
                f"Required field not specified fieldName='{name}'",
                name,
            )


def _coerce(name: str, desc: FieldSchema, value: FieldValue) -> FieldValue:
    text = _as_text(value)
    match desc.type:
        case FieldType.INTEGER | FieldType.FLOAT | FieldType.NUMBER:
            number = _parse_number(text, integer=desc.type == FieldType.INTEGER)
            if number is None:
                raise XplValidationError(
                    ValidationErrorCode.NOT_A_NUMBER,
                    f"Invalid number field='{name}' value={text}",
                    name,
                )
            if desc.minimum is not None and number < desc.minimum:
                raise XplValidationError(
                    ValidationErrorCode.RANGE_ERROR,
                    f"Invalid range of field='{name}' value={text} minimum={desc.minimum}",
                    name,
                )
            if desc.maximum is not None and number > desc.maximum:
                raise XplValidationError(
                    ValidationErrorCode.RANGE_ERROR,
                    f"Invalid range of field='{name}' value={text} maximum={desc.maximum}",
                    name,
                )
            return number
        case FieldType.BOOLEAN:
            return text.lower() not in FALSE_STRINGS
        case FieldType.STRING:
            regex = desc.regex
            if regex is not None and regex.search(text) is None:
                raise XplValidationError(
                    ValidationErrorCode.REGEXP_NOT_MATCHED,
                    f"Regexp has not matched field='{name}' value={text} regExp={desc.pattern}",
                    name,
                )
            if desc.enum is not None and text not in desc.enum:
                raise XplValidationError(
                    ValidationErrorCode.NOT_IN_ENUM,
                    f"String is not in the enum field='{name}' value={text} enum={list(desc.enum)}",
                    name,
                )
            return value
        case _:
            raise XplValidationError(
                ValidationErrorCode.NOT_IMPLEMENTED,
                f"Type is not implemented '{desc.type}'",
                name,
            )


def _parse_number(text: str, *, integer: bool) -> int | float | None:
    m = (_INTEGER_PREFIX if integer else _FLOAT_PREFIX).match(text)
    if m is None:
        return None
    if integer:
        return int(m.group(1))
    return float(m.group(1))


def _as_text(value: FieldValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _is_number(value: object) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)
