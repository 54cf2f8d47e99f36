"""
Persistent tracking for import jobs.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from import_engine.core.config import settings
from import_engine.db.models import ImportJob
from import_engine.domain.imports.errors import ImportNotFoundError, JobStateError
from import_engine.utils.date import utcnow

logger = logging.getLogger(__name__)


class ImportStatus:
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS = {
    ImportStatus.PENDING: {ImportStatus.PROCESSING},
    ImportStatus.PROCESSING: {ImportStatus.COMPLETED, ImportStatus.FAILED},
    ImportStatus.COMPLETED: {ImportStatus.PROCESSING},
    ImportStatus.FAILED: {ImportStatus.PROCESSING},
}


def _row_to_job(job: ImportJob) -> Dict[str, Any]:
    return {
        "id": job.id,
        "entity_type": job.entity_type,
        "source_file_ref": job.source_file_ref,
        "original_file_name": job.original_file_name,
        "status": job.status,
        "field_mapping": job.field_mapping,
        "total_records": job.total_records,
        "success_count": job.success_count,
        "failure_count": job.failure_count,
        "errors": job.errors or [],
        "error_message": job.error_message,
        "created_at": job.created_at,
        "started_at": job.started_at,
        "completed_at": job.completed_at,
    }


def _load(session: Session, import_id: str, entity_type: Optional[str] = None) -> ImportJob:
    job = session.get(ImportJob, import_id)
    if job is None or (entity_type is not None and job.entity_type != entity_type):
        raise ImportNotFoundError(f"Import {import_id} not found")
    return job


def _transition(job: ImportJob, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(job.status, set()):
        raise JobStateError(f"Import {job.id} cannot move from {job.status} to {target}")
    job.status = target


def create_import_job(
    session: Session,
    *,
    entity_type: str,
    source_file_ref: str,
    original_file_name: str,
    total_records: int,
) -> Dict[str, Any]:
    """Create a PENDING job for a freshly stored upload."""
    job = ImportJob(
        entity_type=entity_type,
        source_file_ref=source_file_ref,
        original_file_name=original_file_name,
        status=ImportStatus.PENDING,
        total_records=total_records,
        success_count=0,
        failure_count=0,
        errors=[],
    )
    session.add(job)
    session.commit()
    session.refresh(job)
    return _row_to_job(job)


def get_import_job(session: Session, import_id: str, entity_type: Optional[str] = None) -> Dict[str, Any]:
    return _row_to_job(_load(session, import_id, entity_type))


def list_import_jobs(session: Session, entity_type: str, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Newest jobs first for one entity type."""
    query = (
        select(ImportJob)
        .where(ImportJob.entity_type == entity_type)
        .order_by(ImportJob.created_at.desc())
        .limit(limit or settings.import_list_limit)
    )
    return [_row_to_job(job) for job in session.execute(query).scalars()]


def save_field_mapping(
    session: Session,
    import_id: str,
    field_mapping: Dict[str, Any],
    entity_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Overwrite the stored mapping; not allowed while the job is running."""
    job = _load(session, import_id, entity_type)
    if job.status == ImportStatus.PROCESSING:
        raise JobStateError(f"Import {import_id} is currently processing; its mapping cannot change")
    job.field_mapping = field_mapping
    session.commit()
    session.refresh(job)
    return _row_to_job(job)


def start_import_job(session: Session, import_id: str, total_records: Optional[int] = None) -> Dict[str, Any]:
    job = _load(session, import_id)
    _transition(job, ImportStatus.PROCESSING)
    if total_records is not None:
        job.total_records = total_records
    job.success_count = 0
    job.failure_count = 0
    job.errors = []
    job.error_message = None
    job.started_at = utcnow()
    job.completed_at = None
    session.commit()
    session.refresh(job)
    return _row_to_job(job)


def _apply_summary(job: ImportJob, summary: Dict[str, Any]) -> None:
    job.total_records = summary.get("total_rows", job.total_records)
    job.success_count = summary.get("created_count", 0) + summary.get("updated_count", 0)
    job.failure_count = summary.get("failed_count", 0)
    job.errors = list(summary.get("errors") or [])
    job.completed_at = utcnow()


def complete_import_job(session: Session, import_id: str, summary: Dict[str, Any]) -> Dict[str, Any]:
    job = _load(session, import_id)
    _transition(job, ImportStatus.COMPLETED)
    _apply_summary(job, summary)
    session.commit()
    session.refresh(job)
    return _row_to_job(job)


def fail_import_job(
    session: Session,
    import_id: str,
    summary: Dict[str, Any],
    error_message: str,
) -> Dict[str, Any]:
    """Mark a job FAILED, keeping whatever counts were accumulated."""
    job = _load(session, import_id)
    _transition(job, ImportStatus.FAILED)
    _apply_summary(job, summary)
    job.error_message = error_message
    session.commit()
    session.refresh(job)
    logger.warning("Import %s failed: %s", import_id, error_message)
    return _row_to_job(job)
