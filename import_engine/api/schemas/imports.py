from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from import_engine.domain.imports.reconciliation import ExecuteOptions


class TargetFieldInfo(BaseModel):
    key: str
    label: str
    description: str = ""
    required: bool = False


class SuggestedMappingInfo(BaseModel):
    source_column: str
    target_field: str
    confidence: float


class UploadImportResponse(BaseModel):
    """Returned after a file is stored and its job created."""
    import_id: str
    entity_type: str
    file_name: str
    columns: List[str]
    sample_rows: List[Dict[str, str]]
    total_rows: int
    available_fields: List[TargetFieldInfo]
    suggested_mappings: List[SuggestedMappingInfo]


class RowErrorInfo(BaseModel):
    row: int
    message: str


class ImportJobInfo(BaseModel):
    """Metadata about one import job."""
    id: str
    entity_type: str
    source_file_ref: str
    original_file_name: str
    status: str
    field_mapping: Optional[Dict[str, Any]] = None
    total_records: int = 0
    success_count: int = 0
    failure_count: int = 0
    errors: List[RowErrorInfo] = []
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    available_fields: Optional[List[TargetFieldInfo]] = None


class ImportJobListResponse(BaseModel):
    success: bool
    jobs: List[ImportJobInfo]


class MappingEntry(BaseModel):
    source_column: str
    target_field: str


class SaveMappingRequest(BaseModel):
    mappings: List[MappingEntry]
    ignored_columns: List[str] = []


class SaveMappingResponse(BaseModel):
    import_id: str
    field_mapping: Dict[str, str]
    ignored_columns: List[str]


class ImportOptionsRequest(BaseModel):
    """Execution options; ``defaults`` carries per-entity fallback values."""
    update_existing: bool = True
    manual_matches: Dict[str, str] = Field(default_factory=dict)
    defaults: Dict[str, Any] = Field(default_factory=dict)
    mark_missing_as_submitted: bool = False
    default_is_late: bool = False
    use_legacy_format: bool = False
    is_odoo_import: bool = False
    imported_by: Optional[str] = None

    def to_options(self) -> ExecuteOptions:
        return ExecuteOptions(**self.model_dump())


class ValidateImportResponse(BaseModel):
    success: bool
    unmatched: Dict[str, List[str]]


class ImportSummaryResponse(BaseModel):
    import_id: str
    total_rows: int
    processed_rows: int
    created_count: int
    updated_count: int
    skipped_count: int
    failed_count: int
    errors: List[RowErrorInfo]
