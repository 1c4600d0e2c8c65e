"""
SQLite document store - connections, transactions and table initialisation.

Each entity table keeps its native columns next to two JSON documents
(core_data, custom_fields) and the schema version the row was written against.
"""

import json
import sqlite3
from contextlib import contextmanager
from typing import Generator, Optional

from .config import ensure_db_directory, get_busy_timeout, get_db_path
from .documents import contains, decode_document
from .errors import StorePersistenceError
from .schema import RequestContext

ENTITY_TABLES = {
    'docker_containers': '''
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        status TEXT NOT NULL,
    ''',
    'git_repos': '''
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
    ''',
    'cache_data': '''
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        technology TEXT NOT NULL,
        cache_type TEXT NOT NULL,
    ''',
    'log_entries': '''
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        level TEXT NOT NULL,
        message TEXT NOT NULL,
        timestamp TIMESTAMP,
    ''',
    'secrets': '''
        id TEXT PRIMARY KEY,
        description TEXT NOT NULL,
    ''',
    'registry_data': '''
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        subkey TEXT NOT NULL,
        value_name TEXT NOT NULL,
    ''',
    'plist_data': '''
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        key TEXT NOT NULL,
    ''',
}

REQUIRED_TABLES = ['table_schemas'] + list(ENTITY_TABLES)


def _json_contains(document: Optional[str], criteria: Optional[str]) -> int:
    """SQL function json_contains(document, criteria) -> 1/0.

    A corrupt stored document raises, which sqlite reports as an
    OperationalError and get_db surfaces as StorePersistenceError.
    """
    if criteria is None:
        return 0
    return 1 if contains(decode_document(document, "document"), json.loads(criteria)) else 0


def _connect_timeout(ctx: Optional[RequestContext]) -> float:
    remaining = ctx.remaining() if ctx is not None else None
    if remaining is None:
        return get_busy_timeout()
    if remaining <= 0:
        raise StorePersistenceError(
            "Request deadline exceeded before reaching the store",
            request_id=ctx.request_id,
        )
    return remaining


@contextmanager
def get_db(ctx: Optional[RequestContext] = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection in autocommit mode.

    sqlite3 errors raised while the connection is in use surface as
    StorePersistenceError with the original chained.
    """
    timeout = _connect_timeout(ctx)
    try:
        ensure_db_directory()
        conn = sqlite3.connect(get_db_path(), timeout=timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.create_function("json_contains", 2, _json_contains, deterministic=True)
    except (sqlite3.Error, OSError) as e:
        raise StorePersistenceError(f"Failed to open store: {e}") from e

    try:
        yield conn
    except sqlite3.Error as e:
        raise StorePersistenceError(f"Store operation failed: {e}") from e
    finally:
        conn.close()


@contextmanager
def transaction(ctx: Optional[RequestContext] = None) -> Generator[sqlite3.Connection, None, None]:
    """Run the enclosed statements as one write transaction.

    BEGIN IMMEDIATE takes the write lock up front so read-modify-write
    sequences on a row cannot interleave with another writer.
    """
    with get_db(ctx) as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        conn.commit()


def init_db():
    """Initialize the database with required tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        # Versioned field definitions per logical table
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS table_schemas (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                table_name TEXT NOT NULL,
                schema_version INTEGER NOT NULL,
                field_definitions TEXT NOT NULL,
                description TEXT,
                is_active BOOLEAN NOT NULL DEFAULT FALSE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')
        # At most one active version per table, enforced by the store itself
        cursor.execute('''
            CREATE UNIQUE INDEX IF NOT EXISTS idx_table_schemas_active
            ON table_schemas(table_name) WHERE is_active = 1
        ''')
        cursor.execute('''
            CREATE INDEX IF NOT EXISTS idx_table_schemas_version
            ON table_schemas(table_name, schema_version DESC)
        ''')

        for table, native_columns in ENTITY_TABLES.items():
            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {table} (
                    {native_columns.strip()}
                    core_data TEXT NOT NULL DEFAULT '{{}}',
                    custom_fields TEXT NOT NULL DEFAULT '{{}}',
                    schema_version INTEGER NOT NULL DEFAULT 1,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP
                )
            ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_cache_data_technology ON cache_data(technology)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_log_entries_level ON log_entries(level, timestamp DESC)')


def health_check():
    """Check database health."""
    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [row[0] for row in cursor.fetchall()]
            return all(table in table_names for table in REQUIRED_TABLES)
    except StorePersistenceError:
        return False
