"""Field schemas for validating and coercing message blocks."""

from xpl_py.schema.validator import FieldSchema, Schema, SchemaRegistry, validate

__all__ = ["FieldSchema", "Schema", "SchemaRegistry", "validate"]
