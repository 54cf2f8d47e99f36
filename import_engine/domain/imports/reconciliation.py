"""
Create-or-update reconciliation of parsed rows against the record store.

Rows are processed strictly in order. A RowError raised while building or
writing a row fails that row only; any other exception escapes and ends the
run, leaving the counts accumulated in the summary so far.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from import_engine.core.config import settings
from import_engine.domain.imports.entities.base import EntityProfile, RowPayload
from import_engine.domain.imports.errors import RowError
from import_engine.domain.imports.mapping import FieldMapping, MappedRow
from import_engine.domain.imports.processors.spreadsheet import ParsedSheet
from import_engine.domain.imports.record_store import RecordStore
from import_engine.domain.imports.resolver import ResolutionCache

logger = logging.getLogger(__name__)


class Outcome:
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass
class ExecuteOptions:
    update_existing: bool = True
    manual_matches: Dict[str, str] = field(default_factory=dict)
    defaults: Dict[str, Any] = field(default_factory=dict)
    mark_missing_as_submitted: bool = False
    default_is_late: bool = False
    use_legacy_format: bool = False
    is_odoo_import: bool = False
    imported_by: Optional[str] = None

    def default(self, name: str, fallback: Any = None) -> Any:
        value = self.defaults.get(name)
        if value is None or value == "":
            return fallback
        return value


@dataclass
class ImportContext:
    """Everything one run threads through profile calls."""

    import_id: str
    store: RecordStore
    mapping: FieldMapping
    options: ExecuteOptions = field(default_factory=ExecuteOptions)
    cache: ResolutionCache = field(default_factory=ResolutionCache)
    # Lazily built per-run lookup structures, keyed by profile.
    state: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ImportSummary:
    import_id: str
    total_rows: int = 0
    processed_rows: int = 0
    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    failed_count: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)
    error_limit: int = field(default_factory=lambda: settings.import_error_limit, repr=False)

    def note(self, row: int, message: str) -> None:
        if len(self.errors) < self.error_limit:
            self.errors.append({"row": row, "message": message})

    def record_failure(self, row: int, message: str, rows: int = 1) -> None:
        self.failed_count += rows
        self.note(row, message)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "import_id": self.import_id,
            "total_rows": self.total_rows,
            "processed_rows": self.processed_rows,
            "created_count": self.created_count,
            "updated_count": self.updated_count,
            "skipped_count": self.skipped_count,
            "failed_count": self.failed_count,
            "errors": list(self.errors),
        }


def reconcile_payload(profile: EntityProfile, payload: RowPayload, ctx: ImportContext, summary: ImportSummary) -> str:
    """Decide create, update or skip for one payload and write it."""
    existing = profile.find_existing(payload, ctx)
    if existing is not None:
        if not ctx.options.update_existing:
            summary.note(
                payload.row_number,
                f"{profile.describe(payload)} already exists and updateExisting option is disabled.",
            )
            return Outcome.SKIPPED
        for warning in profile.update(existing, payload, ctx):
            summary.note(payload.row_number, warning)
        return Outcome.UPDATED

    profile.ensure_unique(payload, ctx)
    profile.create(payload, ctx)
    return Outcome.CREATED


def _count(summary: ImportSummary, outcome: str, rows: int = 1) -> None:
    if outcome == Outcome.CREATED:
        summary.created_count += 1
        summary.processed_rows += rows
    elif outcome == Outcome.UPDATED:
        summary.updated_count += 1
        summary.processed_rows += rows
    else:
        summary.skipped_count += rows


def _rows(sheet: ParsedSheet, mapping: FieldMapping):
    for row_number, raw in sheet.numbered_rows():
        yield MappedRow(raw, mapping, row_number)


def run_import(profile: EntityProfile, sheet: ParsedSheet, ctx: ImportContext, summary: ImportSummary) -> ImportSummary:
    """
    Reconcile every row of ``sheet`` into the record store.

    ``summary`` is updated in place so a caller still holds the partial
    counts if an unexpected error escapes.
    """
    summary.total_rows = len(sheet.rows)
    if profile.grouped:
        _run_grouped(profile, sheet, ctx, summary)
    else:
        _run_rows(profile, sheet, ctx, summary)
    return summary


def _run_rows(profile: EntityProfile, sheet: ParsedSheet, ctx: ImportContext, summary: ImportSummary) -> None:
    for row in _rows(sheet, ctx.mapping):
        if row.is_blank():
            summary.skipped_count += 1
            continue
        try:
            payload = profile.build(row, ctx)
            outcome = reconcile_payload(profile, payload, ctx, summary)
        except RowError as exc:
            logger.debug("Import %s row %s failed: %s", ctx.import_id, row.row_number, exc)
            summary.record_failure(row.row_number, str(exc))
            continue
        _count(summary, outcome)


def _run_grouped(profile: EntityProfile, sheet: ParsedSheet, ctx: ImportContext, summary: ImportSummary) -> None:
    groups: "OrderedDict[Any, RowPayload]" = OrderedDict()

    for row in _rows(sheet, ctx.mapping):
        if row.is_blank():
            summary.skipped_count += 1
            continue
        try:
            payload = profile.build(row, ctx)
        except RowError as exc:
            logger.debug("Import %s row %s failed: %s", ctx.import_id, row.row_number, exc)
            summary.record_failure(row.row_number, str(exc))
            continue
        key = profile.group_key(payload)
        if key in groups:
            groups[key] = profile.merge(groups[key], payload)
        else:
            groups[key] = payload

    for group in groups.values():
        rows = len(group.source_rows)
        try:
            outcome = reconcile_payload(profile, profile.finalize(group, ctx), ctx, summary)
        except RowError as exc:
            logger.debug("Import %s group at row %s failed: %s", ctx.import_id, group.row_number, exc)
            summary.record_failure(group.row_number, str(exc), rows=rows)
            continue
        _count(summary, outcome, rows=rows)
