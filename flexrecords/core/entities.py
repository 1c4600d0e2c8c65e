"""
Entity stores - one store per entity kind over its own table shape.

Every kind shares the core_data / custom_fields / schema_version pattern but
keeps its own native columns. Each store declares the capabilities it is wired
for; the mutator and search dispatcher consult those instead of a kind list.
"""

import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

from .config import get_default_schema_version
from .db import get_db, transaction
from .documents import decode_document, encode_document
from .errors import RecordNotFoundError, UnsupportedEntityKindError, ValidationError
from .registry import find_active_version
from .schema import Capability, EntityKind, Record, RecordId, RequestContext
from ..util.logging import logger

DOCUMENT_COLUMNS = ("core_data", "custom_fields")

DocumentPatch = Callable[[Dict[str, Any]], Dict[str, Any]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EntityStore:
    """Storage routines for one entity kind."""

    kind: EntityKind
    table: str
    columns: Tuple[str, ...] = ()
    optional_columns: Tuple[str, ...] = ()
    filter_columns: Tuple[str, ...] = ()
    integer_ids = False
    list_order = "created_at, rowid"
    capabilities: FrozenSet[Capability] = frozenset({Capability.SEARCHABLE})

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    @property
    def native_columns(self) -> Tuple[str, ...]:
        return self.columns + self.optional_columns

    def coerce_id(self, record_id: Any) -> RecordId:
        """Normalize an id; ids that cannot exist for this kind resolve to not-found."""
        if self.integer_ids:
            if isinstance(record_id, bool):
                raise RecordNotFoundError(self.kind, record_id)
            try:
                return int(record_id)
            except (TypeError, ValueError):
                raise RecordNotFoundError(self.kind, record_id)
        if record_id is None or not str(record_id).strip():
            raise RecordNotFoundError(self.kind, record_id)
        return str(record_id).strip()

    def prepare_attributes(self, attributes: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Check native column input: required present, nothing unknown."""
        attributes = dict(attributes or {})
        unknown = sorted(set(attributes) - set(self.native_columns))
        if unknown:
            raise ValidationError(f"Unknown attributes for entity kind '{self.kind}': {unknown}", entity_kind=self.kind.value)

        missing = [c for c in self.columns
                   if not isinstance(attributes.get(c), str) or not attributes[c].strip()]
        if missing:
            raise ValidationError(f"Missing required attributes for entity kind '{self.kind}': {missing}", entity_kind=self.kind.value)
        return attributes

    def create(self, attributes: Mapping[str, Any], core_data: Optional[Dict[str, Any]] = None,
               custom_fields: Optional[Dict[str, Any]] = None, schema_version: int = 1,
               ctx: Optional[RequestContext] = None) -> Record:
        values = self.prepare_attributes(attributes)
        documents = (encode_document(_require_object(core_data, "coreData")),
                     encode_document(_require_object(custom_fields, "customFields")))
        now = _now()

        column_names = list(self.native_columns) + list(DOCUMENT_COLUMNS) + ["schema_version", "created_at", "updated_at"]
        params = [values.get(c) for c in self.native_columns] + list(documents) + [schema_version, now, now]
        if not self.integer_ids:
            column_names.insert(0, "id")
            params.insert(0, str(uuid.uuid4()))

        placeholders = ", ".join("?" for _ in column_names)
        with transaction(ctx) as conn:
            cursor = conn.execute(
                f"INSERT INTO {self.table} ({', '.join(column_names)}) VALUES ({placeholders})",
                params
            )
            record_id = cursor.lastrowid if self.integer_ids else params[0]
            return self._fetch(conn, record_id)

    def get(self, record_id: Any, ctx: Optional[RequestContext] = None) -> Record:
        record_id = self.coerce_id(record_id)
        with get_db(ctx) as conn:
            return self._fetch(conn, record_id)

    def list(self, filters: Optional[Mapping[str, Any]] = None, ctx: Optional[RequestContext] = None) -> List[Record]:
        filters = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        unsupported = sorted(set(filters) - set(self.filter_columns))
        if unsupported:
            raise ValidationError(f"Entity kind '{self.kind}' cannot be filtered by {unsupported}", entity_kind=self.kind.value)

        where = " AND ".join(f"{column} = ?" for column in filters)
        query = f"SELECT * FROM {self.table}"
        if where:
            query += f" WHERE {where}"
        with get_db(ctx) as conn:
            rows = conn.execute(f"{query} ORDER BY {self.list_order}", list(filters.values())).fetchall()
        return [self._row_to_record(row) for row in rows]

    def replace(self, record_id: Any, attributes: Mapping[str, Any], core_data: Optional[Dict[str, Any]] = None,
                custom_fields: Optional[Dict[str, Any]] = None, schema_version: int = 1,
                ctx: Optional[RequestContext] = None) -> Record:
        """Overwrite native columns and both documents of an existing record."""
        record_id = self.coerce_id(record_id)
        values = self.prepare_attributes(attributes)
        assignments = [f"{c} = ?" for c in self.native_columns] + [
            "core_data = ?", "custom_fields = ?", "schema_version = ?", "updated_at = ?"]
        params = [values.get(c) for c in self.native_columns] + [
            encode_document(_require_object(core_data, "coreData")),
            encode_document(_require_object(custom_fields, "customFields")),
            schema_version, _now(), record_id]

        with transaction(ctx) as conn:
            cursor = conn.execute(f"UPDATE {self.table} SET {', '.join(assignments)} WHERE id = ?", params)
            if cursor.rowcount == 0:
                raise RecordNotFoundError(self.kind, record_id)
            return self._fetch(conn, record_id)

    def patch_document(self, record_id: Any, column: str, patch: DocumentPatch,
                       ctx: Optional[RequestContext] = None) -> Record:
        """Read-modify-write one JSON document of a record in a single transaction."""
        if column not in DOCUMENT_COLUMNS:
            raise ValueError(f"Not a document column: {column}")
        record_id = self.coerce_id(record_id)

        with transaction(ctx) as conn:
            row = conn.execute(f"SELECT {column} FROM {self.table} WHERE id = ?", (record_id,)).fetchone()
            if row is None:
                raise RecordNotFoundError(self.kind, record_id)

            updated = patch(decode_document(row[column], column))
            conn.execute(
                f"UPDATE {self.table} SET {column} = ?, updated_at = ? WHERE id = ?",
                (encode_document(updated), _now(), record_id)
            )
            return self._fetch(conn, record_id)

    def search(self, criteria: Mapping[str, Any], ctx: Optional[RequestContext] = None) -> List[Record]:
        """Rows whose core_data or custom_fields document contains ``criteria``."""
        encoded = encode_document(dict(criteria))
        with get_db(ctx) as conn:
            rows = conn.execute(
                f"SELECT * FROM {self.table} "
                "WHERE json_contains(core_data, ?) OR json_contains(custom_fields, ?) "
                "ORDER BY created_at, rowid",
                (encoded, encoded)
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def _fetch(self, conn: sqlite3.Connection, record_id: RecordId) -> Record:
        row = conn.execute(f"SELECT * FROM {self.table} WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise RecordNotFoundError(self.kind, record_id)
        return self._row_to_record(row)

    def _row_to_record(self, row: sqlite3.Row) -> Record:
        return Record(
            kind=self.kind,
            id=row["id"],
            attributes={c: row[c] for c in self.native_columns},
            core_data=decode_document(row["core_data"], "core_data"),
            custom_fields=decode_document(row["custom_fields"], "custom_fields"),
            schema_version=row["schema_version"],
            created_at=_parse_timestamp(row["created_at"]),
            updated_at=_parse_timestamp(row["updated_at"]),
        )


class ContainerStore(EntityStore):
    kind = EntityKind.CONTAINER
    table = "docker_containers"
    columns = ("name", "status")
    capabilities = frozenset({
        Capability.MUTABLE_CORE,
        Capability.MUTABLE_CUSTOM,
        Capability.REMOVABLE_CORE,
        Capability.REPLACEABLE,
        Capability.SEARCHABLE,
    })


class RepositoryStore(EntityStore):
    kind = EntityKind.REPOSITORY
    table = "git_repos"
    columns = ("name",)
    capabilities = frozenset({Capability.MUTABLE_CORE, Capability.MUTABLE_CUSTOM, Capability.SEARCHABLE})


class CacheEntryStore(EntityStore):
    kind = EntityKind.CACHE_ENTRY
    table = "cache_data"
    columns = ("technology", "cache_type")
    filter_columns = ("technology",)
    integer_ids = True


class LogEntryStore(EntityStore):
    kind = EntityKind.LOG_ENTRY
    table = "log_entries"
    columns = ("level", "message")
    optional_columns = ("timestamp",)
    filter_columns = ("level",)
    integer_ids = True
    list_order = "timestamp DESC, id DESC"

    def prepare_attributes(self, attributes: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        values = super().prepare_attributes(attributes)
        timestamp = values.get("timestamp")
        if timestamp is None:
            values["timestamp"] = _now()
        elif isinstance(timestamp, datetime):
            values["timestamp"] = timestamp.isoformat()
        else:
            try:
                values["timestamp"] = datetime.fromisoformat(str(timestamp)).isoformat()
            except ValueError:
                raise ValidationError(f"Invalid log entry timestamp: {timestamp!r}", entity_kind=self.kind.value)
        return values


class SecretStore(EntityStore):
    kind = EntityKind.SECRET
    table = "secrets"
    columns = ("description",)


class RegistryValueStore(EntityStore):
    kind = EntityKind.REGISTRY_VALUE
    table = "registry_data"
    columns = ("subkey", "value_name")
    integer_ids = True


class PlistValueStore(EntityStore):
    kind = EntityKind.PLIST_VALUE
    table = "plist_data"
    columns = ("key",)
    integer_ids = True


STORES: Dict[EntityKind, EntityStore] = {
    store.kind: store
    for store in (
        ContainerStore(),
        RepositoryStore(),
        CacheEntryStore(),
        LogEntryStore(),
        SecretStore(),
        RegistryValueStore(),
        PlistValueStore(),
    )
}


def get_store(kind: Any) -> EntityStore:
    """Resolve the store for a kind name; unknown kinds are rejected."""
    entity_kind = EntityKind.parse(kind)
    store = STORES.get(entity_kind)
    if store is None:
        raise UnsupportedEntityKindError(entity_kind)
    return store


def require_capability(kind: Any, capability: Capability, operation: str) -> EntityStore:
    """Resolve the store for ``kind`` only if it is wired for ``capability``."""
    store = get_store(kind)
    if not store.supports(capability):
        raise UnsupportedEntityKindError(store.kind, operation)
    return store


def create_record(kind: Any, attributes: Mapping[str, Any], core_data: Optional[Dict[str, Any]] = None,
                  custom_fields: Optional[Dict[str, Any]] = None, schema_version: Optional[int] = None,
                  ctx: Optional[RequestContext] = None) -> Record:
    """Create a record stamped with the kind's active schema version (or the default)."""
    store = get_store(kind)
    if schema_version is None:
        schema_version = _current_schema_version(store, ctx)
    record = store.create(attributes, core_data, custom_fields, schema_version, ctx)
    logger.log_record_operation("created", store.kind.value, record.id, record.schema_version)
    return record


def get_record(kind: Any, record_id: Any, ctx: Optional[RequestContext] = None) -> Record:
    return get_store(kind).get(record_id, ctx)


def list_records(kind: Any, filters: Optional[Mapping[str, Any]] = None,
                 ctx: Optional[RequestContext] = None) -> List[Record]:
    return get_store(kind).list(filters, ctx)


def replace_record(kind: Any, record_id: Any, attributes: Mapping[str, Any],
                   core_data: Optional[Dict[str, Any]] = None, custom_fields: Optional[Dict[str, Any]] = None,
                   schema_version: Optional[int] = None, ctx: Optional[RequestContext] = None) -> Record:
    store = require_capability(kind, Capability.REPLACEABLE, "record replacement")
    if schema_version is None:
        schema_version = _current_schema_version(store, ctx)
    record = store.replace(record_id, attributes, core_data, custom_fields, schema_version, ctx)
    logger.log_record_operation("replaced", store.kind.value, record.id, record.schema_version)
    return record


def dashboard_summary(ctx: Optional[RequestContext] = None) -> Dict[str, Any]:
    """Containers and repositories with their counts."""
    containers = STORES[EntityKind.CONTAINER].list(ctx=ctx)
    repositories = STORES[EntityKind.REPOSITORY].list(ctx=ctx)
    return {
        "containers": containers,
        "repositories": repositories,
        "timestamp": datetime.now(timezone.utc),
        "stats": {
            "total_containers": len(containers),
            "total_repos": len(repositories),
        },
    }


def _current_schema_version(store: EntityStore, ctx: Optional[RequestContext]) -> int:
    active = find_active_version(store.kind.value, ctx)
    return active if active is not None else get_default_schema_version()


def _require_object(document: Any, name: str) -> Dict[str, Any]:
    if document is None:
        return {}
    if not isinstance(document, Mapping):
        raise ValidationError(f"{name} must be an object")
    return dict(document)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None
