"""
Import lifecycle operations: upload, mapping, validation and execution.

Every function takes the SQLAlchemy session and, where the stored file is
needed again, the blob store holding the upload.
"""
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from import_engine.core.config import settings
from import_engine.domain.imports.entities import get_profile
from import_engine.domain.imports.errors import (
    MalformedInputError,
    MappingNotConfiguredError,
    UnsupportedFileError,
)
from import_engine.domain.imports.field_mapping import suggest_field_mappings
from import_engine.domain.imports.jobs import (
    complete_import_job,
    create_import_job,
    fail_import_job,
    get_import_job,
    list_import_jobs,
    save_field_mapping,
    start_import_job,
)
from import_engine.domain.imports.mapping import FieldMapping, MappedRow
from import_engine.domain.imports.processors.spreadsheet import ParsedSheet, parse_spreadsheet
from import_engine.domain.imports.reconciliation import ExecuteOptions, ImportContext, ImportSummary, run_import
from import_engine.domain.imports.record_store import RecordStore
from import_engine.domain.imports.validators import validate_mapping
from import_engine.integrations.storage import sanitize_filename

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".csv", ".xlsx", ".xls"}
ALLOWED_MIME_TYPES = {
    "text/csv",
    "application/csv",
    "text/x-csv",
    "application/x-csv",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

MAX_UPLOAD_BYTES = settings.upload_max_file_size_mb * 1024 * 1024


def _ensure_within_size_limit(file_size: int) -> None:
    if file_size > MAX_UPLOAD_BYTES:
        raise UnsupportedFileError(
            f"File size exceeds {settings.upload_max_file_size_mb}MB limit. "
            f"File size: {file_size / (1024 * 1024):.2f}MB"
        )


def validate_upload(content: Optional[bytes], file_name: Optional[str], content_type: Optional[str] = None) -> None:
    """Reject missing, oversized or non-spreadsheet uploads."""
    if content is None or not file_name:
        raise UnsupportedFileError("A file must be provided.")
    _ensure_within_size_limit(len(content))

    extension = os.path.splitext(file_name)[1].lower()
    mime = (content_type or "").split(";")[0].strip().lower()
    if mime not in ALLOWED_MIME_TYPES and extension not in ALLOWED_EXTENSIONS:
        raise UnsupportedFileError("Invalid file type. Only CSV and Excel files are allowed.")


def _load_sheet(blob_store, job: Dict[str, Any]) -> ParsedSheet:
    return parse_spreadsheet(blob_store.get(job["source_file_ref"]))


def _require_mapping(job: Dict[str, Any], action: str) -> FieldMapping:
    mapping = FieldMapping.from_dict(job.get("field_mapping"))
    if mapping is None:
        raise MappingNotConfiguredError(f"Field mappings must be configured before {action} the import.")
    return mapping


def upload_import(
    session: Session,
    blob_store,
    entity_type: str,
    content: Optional[bytes],
    file_name: Optional[str],
    content_type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Store an uploaded sheet and open a PENDING import job for it.

    Args:
        session: Database session
        blob_store: Store the raw bytes are written to
        entity_type: Registered entity type the rows will become
        content: Raw uploaded bytes
        file_name: Name reported by the client
        content_type: MIME type reported by the client

    Returns:
        Job id, columns, sample rows and suggested mappings

    Raises:
        ImportNotFoundError: If the entity type is unknown
        MalformedInputError: If the upload is rejected or cannot be parsed
    """
    profile = get_profile(entity_type)
    validate_upload(content, file_name, content_type)

    sheet = parse_spreadsheet(content)
    if not sheet.rows:
        raise MalformedInputError("Uploaded file does not contain any data.")

    safe_name = sanitize_filename(file_name)
    source_file_ref = blob_store.put(content, safe_name)
    job = create_import_job(
        session,
        entity_type=entity_type,
        source_file_ref=source_file_ref,
        original_file_name=safe_name,
        total_records=len(sheet.rows),
    )
    suggestions = suggest_field_mappings(
        sheet.headers,
        profile.fields,
        profile.min_confidence if profile.min_confidence is not None else settings.mapping_min_confidence,
    )
    logger.info(
        "Stored %s upload '%s' as import %s (%d rows, %d columns)",
        entity_type, safe_name, job["id"], len(sheet.rows), len(sheet.headers),
    )

    return {
        "import_id": job["id"],
        "entity_type": entity_type,
        "file_name": safe_name,
        "columns": sheet.headers,
        "sample_rows": sheet.rows[: settings.import_sample_rows],
        "total_rows": len(sheet.rows),
        "available_fields": profile.available_fields(),
        "suggested_mappings": [suggestion.as_dict() for suggestion in suggestions],
    }


def list_imports(session: Session, entity_type: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    get_profile(entity_type)
    return list_import_jobs(session, entity_type, limit)


def get_import(session: Session, entity_type: str, import_id: str) -> Dict[str, Any]:
    profile = get_profile(entity_type)
    job = get_import_job(session, import_id, entity_type)
    job["available_fields"] = profile.available_fields()
    return job


def save_mapping(
    session: Session,
    blob_store,
    entity_type: str,
    import_id: str,
    mappings: Sequence[Dict[str, Any]],
    ignored_columns: Optional[List[str]] = None,
) -> Dict[str, Any]:
    """Validate ``mappings`` against the stored file's headers and persist them."""
    profile = get_profile(entity_type)
    job = get_import_job(session, import_id, entity_type)
    sheet = _load_sheet(blob_store, job)
    mapping = validate_mapping(sheet.headers, mappings, profile, ignored_columns)
    job = save_field_mapping(session, import_id, mapping.as_dict(), entity_type)
    logger.info("Saved mapping for import %s: %s", import_id, mapping.fields)
    return {
        "import_id": job["id"],
        "field_mapping": mapping.fields,
        "ignored_columns": mapping.ignored_columns,
    }


def validate_import(
    session: Session,
    blob_store,
    entity_type: str,
    import_id: str,
    options: Optional[ExecuteOptions] = None,
) -> Dict[str, List[str]]:
    """
    Dry-run reference resolution and report identifiers that would not match.

    Nothing is written. Rows that cannot be built are left out of the report.
    """
    profile = get_profile(entity_type)
    job = get_import_job(session, import_id, entity_type)
    mapping = _require_mapping(job, "validating")
    sheet = _load_sheet(blob_store, job)
    ctx = ImportContext(
        import_id=import_id,
        store=RecordStore(session),
        mapping=mapping,
        options=options or ExecuteOptions(),
    )
    rows = (MappedRow(raw, mapping, row_number) for row_number, raw in sheet.numbered_rows())
    return profile.preflight(rows, ctx)


def execute_import(
    session: Session,
    blob_store,
    entity_type: str,
    import_id: str,
    options: Optional[ExecuteOptions] = None,
) -> Dict[str, Any]:
    """
    Reconcile every row of the stored file into the record store.

    Row-level problems are reported in the returned summary. Any other
    failure marks the job FAILED with the counts reached so far and is
    re-raised.
    """
    profile = get_profile(entity_type)
    job = get_import_job(session, import_id, entity_type)
    mapping = _require_mapping(job, "executing")
    ctx = ImportContext(
        import_id=import_id,
        store=RecordStore(session),
        mapping=mapping,
        options=options or ExecuteOptions(),
    )
    profile.check_options(ctx)

    start_import_job(session, import_id)
    summary = ImportSummary(import_id=import_id)
    logger.info("Executing %s import %s", entity_type, import_id)

    try:
        sheet = _load_sheet(blob_store, job)
        run_import(profile, sheet, ctx, summary)
    except Exception as exc:
        session.rollback()
        logger.exception("Import %s aborted after %d processed rows", import_id, summary.processed_rows)
        fail_import_job(session, import_id, summary.as_dict(), str(exc))
        raise

    complete_import_job(session, import_id, summary.as_dict())
    logger.info(
        "Import %s finished: %d created, %d updated, %d skipped, %d failed",
        import_id,
        summary.created_count,
        summary.updated_count,
        summary.skipped_count,
        summary.failed_count,
    )
    return summary.as_dict()
