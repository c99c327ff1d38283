"""
Structural merge for KV sections.

Values are classified into a tagged variant:
- OBJECT: JSON object, merged key by key
- ARRAY: JSON array, always replaced whole
- SCALAR: everything else, replaced

Invariants:
    - merge_values() is pure: neither input is mutated
    - object + object recurses; every other pairing takes the incoming value
    - Arrays never concatenate or merge element-wise

How to change safely:
    - Callers read the stored section and write the merged result without
      a guard; two concurrent merges for one user can lose an update
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any


class JsonKind(Enum):
    """Shape of a JSON value as far as merging is concerned."""

    OBJECT = "object"
    ARRAY = "array"
    SCALAR = "scalar"

    @classmethod
    def of(cls, value: Any) -> JsonKind:
        if isinstance(value, dict):
            return cls.OBJECT
        if isinstance(value, list):
            return cls.ARRAY
        return cls.SCALAR


def merge_values(existing: Any, incoming: Any) -> Any:
    """Merge `incoming` over `existing`.

    Example:
        >>> merge_values({"a": {"x": 1, "y": 2}}, {"a": {"y": 3, "z": 4}})
        {'a': {'x': 1, 'y': 3, 'z': 4}}
        >>> merge_values({"tags": [1, 2]}, {"tags": [3]})
        {'tags': [3]}
    """
    if JsonKind.of(existing) is JsonKind.OBJECT and JsonKind.of(incoming) is JsonKind.OBJECT:
        merged = copy.deepcopy(existing)
        for key, value in incoming.items():
            if key in merged:
                merged[key] = merge_values(merged[key], value)
            else:
                merged[key] = copy.deepcopy(value)
        return merged
    return copy.deepcopy(incoming)


def merge_section(existing: Any, incoming: Any, mode: str) -> Any:
    """Combine a stored section with an imported one.

    Replace mode overwrites; merge mode merges structurally. A missing
    stored section merges as if it were an empty object.
    """
    if mode == "replace" or existing is None:
        return copy.deepcopy(incoming)
    return merge_values(existing, incoming)
