"""
Core type definitions for PantrySync record contracts.

This module defines the building blocks used to describe the shape of
every record a client may submit in a backup document:
- FieldKind: Primitive kinds a field may hold
- FieldDef: A single named field with bounds
- RecordContract: The full contract for one collection

Invariants:
    - Field names are the wire names used by clients (camelCase)
    - Contracts never reject unknown fields; those go to the extra-data bag
    - `updatedAt` is never part of a contract's typed fields; it is parsed
      leniently and stored in its own column

How to change safely:
    - Add new optional fields freely
    - Never make an existing optional field required (old backups must import)
    - Loosening bounds is safe, tightening them can reject old backups

Example:
    >>> Recipe = RecordContract(
    ...     name="recipes",
    ...     fields=(
    ...         field("title", "str", required=True),
    ...         field("servings", "int", minimum=0),
    ...     ),
    ... )
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_MAX_STRING_LENGTH = 2000


class FieldKind(Enum):
    """Supported field kinds in record contracts."""

    STRING = "str"
    INTEGER = "int"
    NUMBER = "number"
    BOOLEAN = "bool"
    IDENTIFIER = "id"  # Non-empty string or integer
    TIMESTAMP = "timestamp"  # Date string or epoch number
    OBJECT = "object"  # Arbitrary JSON object
    LIST = "list"  # Arbitrary JSON array
    LIST_STRING = "list_str"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string representation to FieldKind.

        Raises:
            ValueError: If value is not a valid field kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid field kind '{value}'. Valid kinds: {valid}")


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


@dataclass(frozen=True)
class FieldDef:
    """Definition of a single field within a record contract.

    Attributes:
        name: Wire name of the field
        kind: The data kind of the field
        required: Whether the field must be present and non-null
        max_length: Maximum length for string fields
        minimum: Minimum value for numeric fields
        description: Human-readable description
    """

    name: str
    kind: FieldKind
    required: bool = False
    max_length: int | None = None
    minimum: float | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.minimum is not None and self.kind not in (FieldKind.INTEGER, FieldKind.NUMBER):
            raise ValueError(f"minimum only applies to numeric fields, not '{self.name}'")

    def validate_value(self, value: Any) -> tuple[bool, str | None]:
        """Validate a value against this field definition.

        Args:
            value: The value to validate (None means absent)

        Returns:
            Tuple of (is_valid, error_message)
        """
        if value is None:
            if self.required:
                return False, "Required"
            return True, None

        kind = self.kind

        if kind == FieldKind.STRING:
            if not isinstance(value, str):
                return False, f"Expected string, received {describe_type(value)}"
            limit = self.max_length or DEFAULT_MAX_STRING_LENGTH
            if len(value) > limit:
                return False, f"String must contain at most {limit} character(s)"
            if self.required and not value.strip():
                return False, "String must not be empty"
            return True, None

        if kind == FieldKind.IDENTIFIER:
            if isinstance(value, str):
                if not value:
                    return False, "Identifier must not be empty"
                if len(value) > (self.max_length or DEFAULT_MAX_STRING_LENGTH):
                    return False, "Identifier is too long"
                return True, None
            if isinstance(value, int) and not isinstance(value, bool):
                return True, None
            return False, f"Expected string or integer, received {describe_type(value)}"

        if kind in (FieldKind.INTEGER, FieldKind.NUMBER):
            if not _is_number(value):
                return False, f"Expected number, received {describe_type(value)}"
            if kind == FieldKind.INTEGER and float(value) != int(value):
                return False, "Expected integer, received float"
            if self.minimum is not None and value < self.minimum:
                return False, f"Number must be greater than or equal to {self.minimum:g}"
            return True, None

        if kind == FieldKind.BOOLEAN:
            if not isinstance(value, bool):
                return False, f"Expected boolean, received {describe_type(value)}"
            return True, None

        if kind == FieldKind.TIMESTAMP:
            if isinstance(value, str) or _is_number(value):
                return True, None
            return False, f"Expected date string or epoch number, received {describe_type(value)}"

        if kind == FieldKind.OBJECT:
            if not isinstance(value, dict):
                return False, f"Expected object, received {describe_type(value)}"
            return True, None

        if kind == FieldKind.LIST:
            if not isinstance(value, list):
                return False, f"Expected array, received {describe_type(value)}"
            return True, None

        if kind == FieldKind.LIST_STRING:
            if not isinstance(value, list):
                return False, f"Expected array, received {describe_type(value)}"
            for i, item in enumerate(value):
                if not isinstance(item, str):
                    return False, f"Item {i} must be a string"
            return True, None

        return True, None


def describe_type(value: Any) -> str:
    """Name a JSON value's type the way clients see it."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def field(
    name: str,
    kind: str | FieldKind,
    *,
    required: bool = False,
    max_length: int | None = None,
    minimum: float | None = None,
    description: str = "",
) -> FieldDef:
    """Convenience function to create a FieldDef.

    Example:
        >>> title = field("title", "str", required=True)
        >>> quantity = field("quantity", "number", minimum=0)
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    return FieldDef(
        name=name,
        kind=kind,
        required=required,
        max_length=max_length,
        minimum=minimum,
        description=description,
    )


@dataclass(frozen=True)
class RecordContract:
    """Contract for the records of one collection.

    Attributes:
        name: Collection name as it appears in the backup document
        fields: Typed fields, `id` included
        key_column: Storage column holding the record's natural key
        table: Storage table name
        timestamped: Whether records carry `updatedAt` for last-write-wins
        soft_delete: Whether records may carry `deletedAt`
        generate_missing_id: Whether entries without an id get a random one
    """

    name: str
    fields: tuple[FieldDef, ...]
    table: str = ""
    key_column: str = "item_id"
    timestamped: bool = True
    soft_delete: bool = False
    generate_missing_id: bool = False

    def __post_init__(self) -> None:
        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field names in contract '{self.name}'")
        if "id" not in names:
            raise ValueError(f"Contract '{self.name}' must define an 'id' field")

    @property
    def known_keys(self) -> frozenset[str]:
        """Wire names stored as typed data (everything else is extra)."""
        keys = {f.name for f in self.fields}
        if self.timestamped:
            keys.add("updatedAt")
        return frozenset(keys)
