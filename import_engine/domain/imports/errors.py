"""
Exception hierarchy for the import engine.

Errors derived from RowError are scoped to a single source row: the
reconciliation loop records them and moves on. Everything else either
rejects a request up front or aborts the run.
"""
from typing import Any, Optional


class ImportEngineError(Exception):
    """Base exception for import operations."""
    pass


class MalformedInputError(ImportEngineError):
    """Raised when uploaded bytes cannot be turned into a header row plus data."""
    pass


class UnsupportedFileError(MalformedInputError):
    """Raised when an upload fails the size, extension or MIME checks."""
    pass


class InvalidMappingError(ImportEngineError):
    """Raised when a submitted column mapping breaks a validation rule."""
    pass


class ImportNotFoundError(ImportEngineError):
    """Raised when an import id or entity type is unknown."""
    pass


class MappingNotConfiguredError(ImportEngineError):
    """Raised when validate/execute is called before a mapping was saved."""
    pass


class JobStateError(ImportEngineError):
    """Raised on an illegal import job state transition."""
    pass


class InvalidOptionsError(ImportEngineError):
    """Raised when execute options reference records that do not exist."""
    pass


class RowError(ImportEngineError):
    """Base class for failures that only affect the current row."""
    pass


class ParseError(RowError):
    """A raw cell value could not be coerced to the target type."""

    def __init__(self, raw_value: Any, message: Optional[str] = None):
        self.raw_value = raw_value
        super().__init__(message or f'Value "{raw_value}" could not be parsed.')


class RowValidationError(RowError):
    """A row is missing a value its entity requires."""
    pass


class UnresolvedReferenceError(RowError):
    """A loosely specified reference did not match any stored record."""

    def __init__(self, category: str, identifier: str, message: Optional[str] = None):
        self.category = category
        self.identifier = identifier
        super().__init__(message or f'Could not resolve {category} "{identifier}".')


class AmbiguousReferenceError(UnresolvedReferenceError):
    """A reference matched more than one stored record."""
    pass


class RecordConflictError(RowError):
    """A unique value is already held by a different record."""
    pass
