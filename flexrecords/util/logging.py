"""
Structured audit logging for schema, field and search operations.
"""

import logging
from typing import Any, Dict, List, Optional

from ..core.config import debug_enabled

SENSITIVE_FIELDS = ['value', 'data', 'secret', 'password', 'token', 'auth', 'credentials']


class StructuredLogger:
    """Structured logger for schema registry, field mutation and search operations."""

    def __init__(self, name: str = "flexrecords"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.log(level, message)

    # Schema registry
    def log_schema_version_created(self, table_name: str, version: int, field_count: int, deactivated: int):
        """Log a new active schema version."""
        self.log_operation("schema.version_created", "active", {
            "table_name": table_name,
            "version": version,
            "field_count": field_count,
            "deactivated": deactivated
        })

    def log_schema_version_conflict(self, table_name: str, version: int, latest_version: int):
        """Log a duplicate or non-monotonic version number (accepted, flagged)."""
        reason = "duplicate" if version == latest_version else "non_monotonic"
        self.log_operation("schema.version_conflict", "accepted", {
            "table_name": table_name,
            "version": version,
            "latest_version": latest_version,
            "reason": reason
        }, level=logging.WARNING)

    def log_schema_validation_error(self, table_name: str, errors: List[Any]):
        """Log rejected schema input with truncated error text."""
        self.log_operation("schema.validation", "rejected", {
            "table_name": table_name,
            "errors": [str(error)[:100] for error in errors],
            "error_count": len(errors)
        }, level=logging.WARNING)

    # Field mutation
    def log_field_mutation(self, operation: str, entity_kind: str, record_id: Any, path: List[Any],
                           is_custom: bool = False, value: Any = None, include_value: bool = False):
        """Log a field set or removal on a single record."""
        details = {
            "entity_kind": entity_kind,
            "record_id": record_id,
            "path": path,
            "document": "custom_fields" if is_custom else "core_data"
        }
        if include_value:
            if entity_kind == "secret":
                details["value"] = "[REDACTED]"
            else:
                details["value"] = sanitize_payload(value)

        self.log_operation(f"field.{operation}", "success", details)

    # Search
    def log_field_search(self, entity_kind: str, criteria_keys: List[str], result_count: int):
        """Log a field search (criteria keys only, never values)."""
        self.log_operation("field.search", "success", {
            "entity_kind": entity_kind,
            "criteria_keys": criteria_keys,
            "result_count": result_count
        })

    # Records
    def log_record_operation(self, operation: str, entity_kind: str, record_id: Any, schema_version: Optional[int] = None):
        """Log record creation or replacement."""
        details = {"entity_kind": entity_kind, "record_id": record_id}
        if schema_version is not None:
            details["schema_version"] = schema_version

        self.log_operation(f"record.{operation}", "success", details)

    def log_operation_failure(self, operation: str, error: Exception, identifiers: Dict[str, Any] = None):
        """Log a failed operation before the error propagates."""
        details = dict(identifiers or {})
        details["error_type"] = type(error).__name__
        details["error"] = str(error)[:200]

        self.log_operation(operation, "failed", details, level=logging.ERROR)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
