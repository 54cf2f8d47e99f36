"""
Shared machinery for per-entity import profiles.

A profile describes one importable entity: which target fields it offers,
which of them must be mapped, how a source row becomes record attributes,
and how those attributes are matched against and written to the record
store. The reconciliation loop only talks to profiles through this API.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Hashable, Iterable, Iterator, List, Optional, Tuple

from import_engine.domain.imports.errors import (
    InvalidMappingError,
    RecordConflictError,
    RowError,
    RowValidationError,
    UnresolvedReferenceError,
)
from import_engine.domain.imports.mapping import MappedRow

logger = logging.getLogger(__name__)

# (category, identifier, lookup) triples reported by profiles for pre-flight.
Reference = Tuple[str, str, Callable[[], Optional[str]]]


@dataclass(frozen=True)
class TargetField:
    key: str
    label: str
    description: str = ""
    required: bool = False

    def as_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "description": self.description,
            "required": self.required,
        }


@dataclass(frozen=True)
class RequiredRule:
    """Satisfied when every field of at least one alternative is mapped."""

    alternatives: Tuple[Tuple[str, ...], ...]
    message: str

    def is_satisfied(self, mapped: Iterable[str]) -> bool:
        mapped_set = set(mapped)
        return any(all(key in mapped_set for key in option) for option in self.alternatives)


def requires(key: str, message: str) -> RequiredRule:
    return RequiredRule(alternatives=((key,),), message=message)


@dataclass
class RowPayload:
    """Record attributes built from one source row (or one group of rows)."""

    row_number: int
    values: Dict[str, Any]
    mapped: FrozenSet[str]
    related: Dict[str, Any] = field(default_factory=dict)
    source_rows: List[int] = field(default_factory=list)

    def __post_init__(self):
        if not self.source_rows:
            self.source_rows = [self.row_number]


class EntityProfile:
    entity_type = ""
    model = ""
    label = "Record"
    fields: Tuple[TargetField, ...] = ()
    required_rules: Tuple[RequiredRule, ...] = ()
    min_confidence: Optional[float] = None
    # Record attribute -> field keys that feed it. Sparse updates only write
    # attributes with at least one mapped source.
    attribute_sources: Dict[str, Tuple[str, ...]] = {}
    # Attributes unique across records other than the natural key.
    secondary_keys: Tuple[str, ...] = ()
    # Categories reported by the validate pre-flight.
    preflight_categories: Tuple[str, ...] = ()
    grouped = False

    def available_fields(self) -> List[Dict[str, Any]]:
        return [target.as_dict() for target in self.fields]

    def check_required_mapping(self, fields: Dict[str, str]) -> None:
        for rule in self.required_rules:
            if not rule.is_satisfied(fields):
                raise InvalidMappingError(rule.message)

    def check_options(self, ctx) -> None:
        """Verify option defaults before a run starts."""

    def build(self, row: MappedRow, ctx) -> RowPayload:
        raise NotImplementedError

    def payload(self, row: MappedRow, values: Dict[str, Any], **related) -> RowPayload:
        return RowPayload(
            row_number=row.row_number,
            values=values,
            mapped=row.mapping.mapped_fields,
            related=related,
        )

    @staticmethod
    def require(value: Any, message: str) -> Any:
        if value is None or value == "":
            raise RowValidationError(message)
        return value

    # Matching

    def natural_key(self, payload: RowPayload) -> Dict[str, Any]:
        """Keyword arguments for RecordStore.find_first locating the existing record."""
        raise NotImplementedError

    def describe(self, payload: RowPayload) -> str:
        return self.label

    def find_existing(self, payload: RowPayload, ctx) -> Optional[Dict[str, Any]]:
        return ctx.store.find_first(self.model, **self.natural_key(payload))

    def _conflicting(self, attribute: str, value: Any, ctx, exclude_id: Optional[str] = None):
        return ctx.store.find_first(self.model, equals={attribute: value}, exclude_id=exclude_id)

    def conflict_message(self, attribute: str, value: Any) -> str:
        return f'{self.label} {attribute} "{value}" is already used by another record.'

    def ensure_unique(self, payload: RowPayload, ctx) -> None:
        for attribute in self.secondary_keys:
            value = payload.values.get(attribute)
            if value is not None and self._conflicting(attribute, value, ctx):
                raise RecordConflictError(self.conflict_message(attribute, value))

    # Writing

    def create_values(self, payload: RowPayload) -> Dict[str, Any]:
        return {key: value for key, value in payload.values.items() if value is not None}

    def update_values(self, payload: RowPayload, existing: Dict[str, Any]) -> Dict[str, Any]:
        values = {}
        for attribute, value in payload.values.items():
            if value is None:
                continue
            sources = self.attribute_sources.get(attribute)
            if sources is not None and not any(key in payload.mapped for key in sources):
                continue
            values[attribute] = value
        return values

    def create_defaults(self, ctx) -> Dict[str, Any]:
        """Values a new record takes for attributes its row left empty."""
        return {}

    def create(self, payload: RowPayload, ctx) -> Dict[str, Any]:
        values = {**self.create_defaults(ctx), **self.create_values(payload)}
        record = ctx.store.create(self.model, values)
        self.after_save(record, payload, ctx)
        return record

    def update(self, existing: Dict[str, Any], payload: RowPayload, ctx) -> List[str]:
        """Apply a sparse update and return warnings for values that were skipped."""
        values = self.update_values(payload, existing)
        warnings = []
        for attribute in self.secondary_keys:
            value = values.get(attribute)
            if value is None or value == existing.get(attribute):
                continue
            if self._conflicting(attribute, value, ctx, exclude_id=existing["id"]):
                values.pop(attribute)
                warnings.append(self.update_conflict_message(attribute, value))
        record = ctx.store.update(self.model, existing["id"], values) if values else existing
        self.after_save(record, payload, ctx)
        return warnings

    def update_conflict_message(self, attribute: str, value: Any) -> str:
        return f'{self.conflict_message(attribute, value)} Skipping {attribute} update.'

    def after_save(self, record: Dict[str, Any], payload: RowPayload, ctx) -> None:
        """Write records that hang off the saved one."""

    # Grouping

    def group_key(self, payload: RowPayload) -> Hashable:
        raise NotImplementedError

    def merge(self, group: RowPayload, payload: RowPayload) -> RowPayload:
        raise NotImplementedError

    def finalize(self, group: RowPayload, ctx) -> RowPayload:
        return group

    # Pre-flight

    def references(self, row: MappedRow, ctx) -> Iterator[Reference]:
        return iter(())

    def preflight(self, rows: Iterable[MappedRow], ctx) -> Dict[str, List[str]]:
        """
        Collect identifiers that would not resolve, by category.

        Rows whose own values are unusable are ignored.
        """
        unmatched = {category: set() for category in self.preflight_categories}
        for row in rows:
            if row.is_blank():
                continue
            try:
                for category, identifier, lookup in self.references(row, ctx):
                    try:
                        found = lookup()
                    except UnresolvedReferenceError:
                        found = None
                    if not found:
                        unmatched.setdefault(category, set()).add(identifier)
            except RowError as exc:
                logger.debug("Row %s ignored during pre-flight: %s", row.row_number, exc)
        return {f"unmatched_{category}": sorted(values) for category, values in unmatched.items()}
