"""
Validation of operator-submitted column mappings.
"""
from typing import Any, Dict, List, Optional, Sequence

from import_engine.domain.imports.errors import InvalidMappingError
from import_engine.domain.imports.mapping import FieldMapping


def validate_mapping(
    headers: Sequence[str],
    entries: Sequence[Dict[str, Any]],
    profile,
    ignored_columns: Optional[List[str]] = None,
) -> FieldMapping:
    """
    Check a submitted mapping against the file headers and entity rules.

    Args:
        headers: Header row of the stored file
        entries: Dicts with ``source_column`` and ``target_field``
        profile: EntityProfile whose field catalogue and required rules apply
        ignored_columns: Columns the operator chose to skip

    Returns:
        The validated FieldMapping

    Raises:
        InvalidMappingError: On the first rule that fails
    """
    header_names = {str(header).strip() for header in headers}
    allowed_fields = {target.key for target in profile.fields}
    fields: Dict[str, str] = {}
    claimed_columns: Dict[str, str] = {}

    for entry in entries:
        raw_source = entry.get("source_column") or ""
        source = raw_source.strip()
        target = (entry.get("target_field") or "").strip()

        if not source:
            raise InvalidMappingError("Mapped source column names cannot be empty.")
        if source not in header_names:
            raise InvalidMappingError(f'The column "{raw_source}" does not exist in the uploaded file.')
        if target in fields:
            raise InvalidMappingError(f'Field "{target}" has been mapped more than once.')
        if target not in allowed_fields:
            raise InvalidMappingError(
                f'Field "{target}" is not a valid mapping option for {profile.entity_type} imports.'
            )
        if source in claimed_columns:
            raise InvalidMappingError(
                f'The column "{source}" is already mapped to field "{claimed_columns[source]}".'
            )

        fields[target] = source
        claimed_columns[source] = target

    profile.check_required_mapping(fields)

    return FieldMapping(fields=fields, ignored_columns=list(ignored_columns or []))
