"""
Schema registry - versioned field definitions per logical table.

Exactly one version per table is active. Creating a version deactivates the
previous ones and inserts the new one inside a single store transaction.
"""

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from .config import KNOWN_FIELD_TYPES, schema_validation_strict
from .db import get_db, transaction
from .errors import FlexRecordsError, SchemaNotFoundError, StorePersistenceError, ValidationError
from .schema import FieldDefinition, RequestContext, TableSchemaDefinition
from ..util.logging import logger

_SCHEMA_COLUMNS = "id, table_name, schema_version, field_definitions, description, is_active, created_at"


def get_active_schema(table_name: str, ctx: Optional[RequestContext] = None) -> TableSchemaDefinition:
    """Return the active definition for ``table_name``."""
    table_name = _require_table_name(table_name)
    with get_db(ctx) as conn:
        row = conn.execute(
            f"SELECT {_SCHEMA_COLUMNS} FROM table_schemas WHERE table_name = ? AND is_active = 1",
            (table_name,)
        ).fetchone()

    if row is None:
        raise SchemaNotFoundError(table_name)
    return _row_to_definition(row)


def find_active_version(table_name: str, ctx: Optional[RequestContext] = None) -> Optional[int]:
    """Active version number for ``table_name`` or None when no schema is active."""
    with get_db(ctx) as conn:
        row = conn.execute(
            "SELECT schema_version FROM table_schemas WHERE table_name = ? AND is_active = 1",
            (table_name,)
        ).fetchone()
    return row[0] if row else None


def create_schema_version(table_name: str, version: int, fields: Iterable[Any],
                          description: Optional[str] = None,
                          ctx: Optional[RequestContext] = None) -> TableSchemaDefinition:
    """Validate ``fields`` and make ``version`` the single active schema of the table.

    Raises:
        ValidationError: before any store access, for malformed input.
        StorePersistenceError: when the transaction fails; nothing is committed.
    """
    table_name = _require_table_name(table_name)
    try:
        definitions = validate_field_definitions(fields)
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValidationError(f"Schema version for table '{table_name}' must be an integer", table_name=table_name)
    except ValidationError as e:
        logger.log_schema_validation_error(table_name, [e])
        raise

    payload = json.dumps([d.to_dict() for d in definitions])
    created_at = datetime.now(timezone.utc)

    try:
        with transaction(ctx) as conn:
            latest = conn.execute(
                "SELECT MAX(schema_version) FROM table_schemas WHERE table_name = ?",
                (table_name,)
            ).fetchone()[0]

            deactivated = conn.execute(
                "UPDATE table_schemas SET is_active = 0 WHERE table_name = ? AND is_active = 1",
                (table_name,)
            ).rowcount

            cursor = conn.execute(
                "INSERT INTO table_schemas (table_name, schema_version, field_definitions, description, is_active, created_at) "
                "VALUES (?, ?, ?, ?, 1, ?)",
                (table_name, version, payload, description, created_at.isoformat())
            )
            schema_id = cursor.lastrowid
    except FlexRecordsError as e:
        logger.log_operation_failure("schema.create_version", e, {"table_name": table_name, "version": version})
        raise

    if latest is not None and version <= latest:
        logger.log_schema_version_conflict(table_name, version, latest)
    logger.log_schema_version_created(table_name, version, len(definitions), deactivated)

    return TableSchemaDefinition(
        table_name=table_name,
        version=version,
        fields=definitions,
        is_active=True,
        description=description,
        created_at=created_at,
        id=schema_id,
    )


def list_schema_versions(table_name: str, ctx: Optional[RequestContext] = None) -> List[TableSchemaDefinition]:
    """All definitions of ``table_name``, newest version first, active or not."""
    table_name = _require_table_name(table_name)
    with get_db(ctx) as conn:
        rows = conn.execute(
            f"SELECT {_SCHEMA_COLUMNS} FROM table_schemas WHERE table_name = ? "
            "ORDER BY schema_version DESC, id DESC",
            (table_name,)
        ).fetchall()
    return [_row_to_definition(row) for row in rows]


def validate_field_definitions(fields: Iterable[Any]) -> List[FieldDefinition]:
    """Parse and check a field definition sequence: non-empty, names unique."""
    if fields is None or isinstance(fields, (str, bytes, dict)):
        raise ValidationError("Field definitions must be a sequence of objects")

    definitions = [FieldDefinition.from_dict(item, position) for position, item in enumerate(fields)]
    if not definitions:
        raise ValidationError("Field definitions must not be empty")

    seen = set()
    for definition in definitions:
        if definition.name in seen:
            raise ValidationError(f"Duplicate field name '{definition.name}'", field=definition.name)
        seen.add(definition.name)

        if schema_validation_strict() and definition.type not in KNOWN_FIELD_TYPES:
            raise ValidationError(
                f"Field '{definition.name}' has unknown type '{definition.type}'; "
                f"expected one of {list(KNOWN_FIELD_TYPES)}",
                field=definition.name,
            )
    return definitions


def _require_table_name(table_name: Any) -> str:
    if not isinstance(table_name, str) or not table_name.strip():
        raise ValidationError("table name is required")
    return table_name.strip()


def _row_to_definition(row: sqlite3.Row) -> TableSchemaDefinition:
    try:
        raw_fields = json.loads(row["field_definitions"])
        fields = [FieldDefinition.from_dict(item, position) for position, item in enumerate(raw_fields)]
    except (TypeError, ValueError, ValidationError) as e:
        raise StorePersistenceError(
            f"Failed to parse schema for table '{row['table_name']}' version {row['schema_version']}: {e}",
            table_name=row["table_name"],
        ) from e

    created_at = row["created_at"]
    return TableSchemaDefinition(
        table_name=row["table_name"],
        version=row["schema_version"],
        fields=fields,
        is_active=bool(row["is_active"]),
        description=row["description"],
        created_at=datetime.fromisoformat(created_at) if created_at else None,
        id=row["id"],
    )
