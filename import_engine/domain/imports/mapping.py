"""
Saved column mappings and the row view that reads values through them.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional


@dataclass
class FieldMapping:
    """Target field key -> source column name, plus columns the operator ignored."""

    fields: Dict[str, str]
    ignored_columns: List[str] = field(default_factory=list)

    @property
    def mapped_fields(self) -> FrozenSet[str]:
        return frozenset(self.fields)

    def as_dict(self) -> Dict[str, Any]:
        return {"fields": dict(self.fields), "ignored_columns": list(self.ignored_columns)}

    @classmethod
    def from_dict(cls, payload: Optional[Dict[str, Any]]) -> Optional["FieldMapping"]:
        if not payload or not payload.get("fields"):
            return None
        return cls(fields=dict(payload["fields"]), ignored_columns=list(payload.get("ignored_columns") or []))


class MappedRow:
    """
    One normalized source row seen through a field mapping.

    All reads go through ``get`` so every caller gets the same trimming and
    empty-to-None handling.
    """

    def __init__(self, raw: Dict[str, str], mapping: FieldMapping, row_number: int):
        self.raw = raw
        self.mapping = mapping
        self.row_number = row_number

    def is_mapped(self, key: str) -> bool:
        return key in self.mapping.fields

    def get(self, key: str) -> Optional[str]:
        column = self.mapping.fields.get(key)
        if not column:
            return None
        return self.column(column)

    def column(self, name: str) -> Optional[str]:
        """Read a source column by name; ignored columns always read as empty."""
        if name in self.mapping.ignored_columns:
            return None
        value = self.raw.get(name)
        if value is None:
            return None
        trimmed = str(value).strip()
        return trimmed or None

    def is_blank(self) -> bool:
        return not any(self.get(key) for key in self.mapping.fields)
