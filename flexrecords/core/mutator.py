"""
Field mutator - path-addressed patches on a record's core or custom fields.

Writes are not validated against the active schema of the table; the
registry and the mutator are deliberately independent.
"""

from typing import Any, Optional, Sequence

from .config import log_field_values_enabled
from .documents import deep_set, normalize_path, remove_key
from .entities import require_capability
from .errors import FlexRecordsError, ValidationError
from .schema import Capability, Record, RequestContext
from ..util.logging import logger


def set_field(kind: Any, record_id: Any, path: Sequence[Any], value: Any, is_custom: bool,
              ctx: Optional[RequestContext] = None) -> Record:
    """Deep-set ``value`` at ``path`` inside customFields or coreData.

    Missing intermediate segments become empty objects; the terminal segment
    is replaced, not merged. Kind and path are checked before the store is
    contacted.
    """
    segments = normalize_path(path)
    capability = Capability.MUTABLE_CUSTOM if is_custom else Capability.MUTABLE_CORE
    store = require_capability(kind, capability, "custom field writes" if is_custom else "core field writes")
    column = "custom_fields" if is_custom else "core_data"

    try:
        record = store.patch_document(record_id, column, lambda document: deep_set(document, segments, value), ctx)
    except FlexRecordsError as e:
        logger.log_operation_failure("field.set", e, {
            "entity_kind": store.kind.value, "record_id": record_id, "path": segments})
        raise

    logger.log_field_mutation("set", store.kind.value, record.id, segments, is_custom=is_custom,
                              value=value, include_value=log_field_values_enabled())
    return record


def remove_field(kind: Any, record_id: Any, field_name: str, ctx: Optional[RequestContext] = None) -> Record:
    """Remove a top-level key from coreData. Removing an absent key is a no-op."""
    store = require_capability(kind, Capability.REMOVABLE_CORE, "field removal")
    if not isinstance(field_name, str) or not field_name.strip():
        raise ValidationError("field name is required")

    try:
        record = store.patch_document(record_id, "core_data", lambda document: remove_key(document, field_name), ctx)
    except FlexRecordsError as e:
        logger.log_operation_failure("field.remove", e, {
            "entity_kind": store.kind.value, "record_id": record_id, "field": field_name})
        raise

    logger.log_field_mutation("removed", store.kind.value, record.id, [field_name])
    return record
