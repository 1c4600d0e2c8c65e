"""
Error hierarchy for the record subsystem.

Every error carries a stable ``code`` and the HTTP status the API layer
answers with, so callers can translate failures consistently.
"""

from typing import Any, Dict, Optional


class FlexRecordsError(Exception):
    """Base exception for all record subsystem failures."""

    code = "flexrecords_error"
    status_code = 500

    def __init__(self, message: str, **identifiers: Any):
        super().__init__(message)
        self.message = message
        self.identifiers: Dict[str, Any] = {k: v for k, v in identifiers.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        """Error body returned to API callers."""
        return {"error": self.code, "message": self.message}


class ValidationError(FlexRecordsError):
    """Raised for malformed schema definitions, field paths or record input."""

    code = "validation_error"
    status_code = 422


class UnsupportedEntityKindError(FlexRecordsError):
    """Raised when a kind is unknown or not wired for the requested operation."""

    code = "unsupported_entity_kind"
    status_code = 400

    def __init__(self, entity_kind: Any, operation: Optional[str] = None):
        if operation:
            message = f"Entity kind '{entity_kind}' does not support {operation}"
        else:
            message = f"Unsupported entity kind '{entity_kind}'"
        super().__init__(message, entity_kind=str(entity_kind), operation=operation)
        self.entity_kind = entity_kind
        self.operation = operation


class RecordNotFoundError(FlexRecordsError):
    """Raised when a record id does not resolve for its kind."""

    code = "record_not_found"
    status_code = 404

    def __init__(self, entity_kind: Any, record_id: Any):
        super().__init__(
            f"Record '{record_id}' not found for entity kind '{entity_kind}'",
            entity_kind=str(entity_kind),
            record_id=record_id,
        )
        self.entity_kind = entity_kind
        self.record_id = record_id


class SchemaNotFoundError(FlexRecordsError):
    """Raised when a table has no active schema definition."""

    code = "schema_not_found"
    status_code = 404

    def __init__(self, table_name: str):
        super().__init__(f"No active schema for table '{table_name}'", table_name=table_name)
        self.table_name = table_name


class StorePersistenceError(FlexRecordsError):
    """Wraps any failure raised by the document store."""

    code = "store_persistence_error"
    status_code = 500
