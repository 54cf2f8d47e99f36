"""
Endpoints driving the import lifecycle for one entity type.

Handlers are plain functions; FastAPI runs them in its threadpool so the
blocking session work stays off the event loop.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from import_engine.api.dependencies import get_blob_store_dependency
from import_engine.api.schemas.imports import (
    ImportJobInfo,
    ImportJobListResponse,
    ImportOptionsRequest,
    ImportSummaryResponse,
    SaveMappingRequest,
    SaveMappingResponse,
    UploadImportResponse,
    ValidateImportResponse,
)
from import_engine.db.session import get_db
from import_engine.domain.imports import service
from import_engine.domain.imports.errors import (
    ImportNotFoundError,
    InvalidMappingError,
    InvalidOptionsError,
    JobStateError,
    MalformedInputError,
    MappingNotConfiguredError,
)
from import_engine.integrations.storage import StorageError

router = APIRouter(prefix="/imports/{entity_type}", tags=["imports"])

logger = logging.getLogger(__name__)

_CLIENT_ERRORS = (MalformedInputError, InvalidMappingError, InvalidOptionsError, MappingNotConfiguredError)


def _to_http_error(exc: Exception, action: str) -> HTTPException:
    if isinstance(exc, ImportNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, _CLIENT_ERRORS):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, JobStateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, StorageError):
        logger.error("Storage failure while %s: %s", action, exc)
        return HTTPException(status_code=502, detail=str(exc))
    logger.exception("Unexpected error while %s", action)
    return HTTPException(status_code=500, detail=f"Failed while {action}: {exc}")


@router.post("/upload", response_model=UploadImportResponse)
def upload_import_endpoint(
    entity_type: str,
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store_dependency),
):
    """
    Store an uploaded CSV or Excel file and open an import job for it.

    Returns the detected columns, a few sample rows, the target fields of the
    entity type and suggested column-to-field mappings.
    """
    content = file.file.read() if file is not None else None
    file_name = file.filename if file is not None else None
    content_type = file.content_type if file is not None else None
    logger.info("Received %s upload '%s'", entity_type, file_name)
    try:
        return service.upload_import(db, blob_store, entity_type, content, file_name, content_type)
    except Exception as exc:
        raise _to_http_error(exc, "uploading the file")


@router.get("", response_model=ImportJobListResponse)
def list_imports_endpoint(entity_type: str, limit: Optional[int] = None, db: Session = Depends(get_db)):
    try:
        jobs = service.list_imports(db, entity_type, limit)
    except Exception as exc:
        raise _to_http_error(exc, "listing imports")
    return ImportJobListResponse(success=True, jobs=jobs)


@router.get("/{import_id}", response_model=ImportJobInfo)
def get_import_endpoint(entity_type: str, import_id: str, db: Session = Depends(get_db)):
    try:
        return service.get_import(db, entity_type, import_id)
    except Exception as exc:
        raise _to_http_error(exc, "loading the import")


@router.post("/{import_id}/mapping", response_model=SaveMappingResponse)
def save_mapping_endpoint(
    entity_type: str,
    import_id: str,
    request: SaveMappingRequest,
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store_dependency),
):
    entries = [entry.model_dump() for entry in request.mappings]
    try:
        return service.save_mapping(db, blob_store, entity_type, import_id, entries, request.ignored_columns)
    except Exception as exc:
        raise _to_http_error(exc, "saving the mapping")


@router.post("/{import_id}/validate", response_model=ValidateImportResponse)
def validate_import_endpoint(
    entity_type: str,
    import_id: str,
    request: Optional[ImportOptionsRequest] = None,
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store_dependency),
):
    """Report identifiers in the file that would not resolve to stored records."""
    options = (request or ImportOptionsRequest()).to_options()
    try:
        unmatched = service.validate_import(db, blob_store, entity_type, import_id, options)
    except Exception as exc:
        raise _to_http_error(exc, "validating the import")
    return ValidateImportResponse(success=True, unmatched=unmatched)


@router.post("/{import_id}/execute", response_model=ImportSummaryResponse)
def execute_import_endpoint(
    entity_type: str,
    import_id: str,
    request: Optional[ImportOptionsRequest] = None,
    db: Session = Depends(get_db),
    blob_store=Depends(get_blob_store_dependency),
):
    """
    Run the import.

    Row-level failures come back in ``errors``; the request itself only
    fails when the run could not start or was aborted.
    """
    options = (request or ImportOptionsRequest()).to_options()
    try:
        return service.execute_import(db, blob_store, entity_type, import_id, options)
    except Exception as exc:
        raise _to_http_error(exc, "executing the import")
