"""
Flexible record store - versioned table schemas, path-addressed field patches
and cross-entity field search over core/custom field documents.
"""

from .core.entities import create_record, get_record, list_records, replace_record
from .core.errors import (
    FlexRecordsError,
    RecordNotFoundError,
    SchemaNotFoundError,
    StorePersistenceError,
    UnsupportedEntityKindError,
    ValidationError,
)
from .core.mutator import remove_field, set_field
from .core.registry import create_schema_version, get_active_schema, list_schema_versions
from .core.schema import EntityKind, FieldDefinition, Record, RequestContext, TableSchemaDefinition
from .core.search_service import search_by_field

__all__ = [
    'get_active_schema',
    'create_schema_version',
    'list_schema_versions',
    'set_field',
    'remove_field',
    'search_by_field',
    'create_record',
    'get_record',
    'list_records',
    'replace_record',
    'EntityKind',
    'FieldDefinition',
    'Record',
    'RequestContext',
    'TableSchemaDefinition',
    'FlexRecordsError',
    'ValidationError',
    'UnsupportedEntityKindError',
    'RecordNotFoundError',
    'SchemaNotFoundError',
    'StorePersistenceError',
]
