"""
Schema registry tests - versioning, activation and validation of field definitions.
"""

import sqlite3
from unittest.mock import patch

import pytest

from flexrecords.core.db import get_db
from flexrecords.core.errors import SchemaNotFoundError, StorePersistenceError, ValidationError
from flexrecords.core.registry import (
    create_schema_version,
    get_active_schema,
    list_schema_versions,
    validate_field_definitions,
)
from flexrecords.core.schema import FieldDefinition

CONTAINER_FIELDS = [
    {"name": "status", "type": "string", "required": True},
    {"name": "ports", "type": "array", "defaultValue": [], "description": "exposed ports"},
]


def _active_count(table_name):
    with get_db() as conn:
        return conn.execute(
            "SELECT COUNT(*) FROM table_schemas WHERE table_name = ? AND is_active = 1",
            (table_name,)
        ).fetchone()[0]


class TestCreateSchemaVersion:
    """Creating versions keeps exactly one active definition per table."""

    def test_create_returns_active_definition(self):
        schema = create_schema_version("container", 1, CONTAINER_FIELDS, description="initial")

        assert schema.table_name == "container"
        assert schema.version == 1
        assert schema.is_active is True
        assert schema.description == "initial"
        assert [f.name for f in schema.fields] == ["status", "ports"]
        assert schema.fields[0].required is True
        assert schema.fields[1].default_value == []
        assert schema.id is not None

    def test_single_active_version_after_each_create(self):
        for version in (1, 2, 3, 5, 4):
            create_schema_version("container", version, CONTAINER_FIELDS)
            assert _active_count("container") == 1

        assert get_active_schema("container").version == 4

    def test_other_tables_keep_their_active_version(self):
        create_schema_version("container", 1, CONTAINER_FIELDS)
        create_schema_version("repository", 7, [{"name": "branch", "type": "string"}])
        create_schema_version("container", 2, CONTAINER_FIELDS)

        assert get_active_schema("repository").version == 7
        assert get_active_schema("container").version == 2

    def test_duplicate_version_is_accepted(self):
        create_schema_version("container", 1, CONTAINER_FIELDS)
        create_schema_version("container", 1, [{"name": "name", "type": "string"}])

        versions = list_schema_versions("container")
        assert [s.version for s in versions] == [1, 1]
        assert versions[0].is_active is True
        assert [f.name for f in versions[0].fields] == ["name"]
        assert _active_count("container") == 1

    def test_field_definition_instances_are_accepted(self):
        schema = create_schema_version("secret", 1, [FieldDefinition(name="rotation", type="integer")])
        assert schema.fields[0].name == "rotation"

    def test_failed_insert_keeps_previous_version_active(self):
        create_schema_version("container", 1, CONTAINER_FIELDS)

        with patch("flexrecords.core.registry.json.dumps", return_value=None):
            with pytest.raises(StorePersistenceError):
                create_schema_version("container", 2, CONTAINER_FIELDS)

        assert get_active_schema("container").version == 1
        assert _active_count("container") == 1


class TestSchemaValidation:
    """Malformed definitions fail before anything is persisted."""

    @pytest.mark.parametrize("fields", [
        [],
        None,
        "status",
        [{"type": "string"}],
        [{"name": "", "type": "string"}],
        [{"name": "status"}],
        [{"name": "status", "type": "  "}],
        [{"name": "status", "type": "string", "required": "yes"}],
        ["status"],
        [{"name": "status", "type": "string"}, {"name": "status", "type": "integer"}],
    ])
    def test_malformed_fields_rejected(self, fields):
        with pytest.raises(ValidationError):
            create_schema_version("container", 1, fields)

        assert list_schema_versions("container") == []

    def test_duplicate_name_is_named_in_error(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_field_definitions([{"name": "a", "type": "string"}, {"name": "a", "type": "string"}])
        assert "'a'" in str(exc_info.value)

    @pytest.mark.parametrize("version", ["1", 1.5, True, None])
    def test_non_integer_version_rejected(self, version):
        with pytest.raises(ValidationError):
            create_schema_version("container", version, CONTAINER_FIELDS)

    def test_empty_table_name_rejected(self):
        with pytest.raises(ValidationError):
            create_schema_version("  ", 1, CONTAINER_FIELDS)

    def test_validation_happens_before_store_access(self):
        with patch("flexrecords.core.registry.transaction") as transaction:
            with pytest.raises(ValidationError):
                create_schema_version("container", 1, [])
        transaction.assert_not_called()

    def test_strict_mode_rejects_unknown_type_tags(self, monkeypatch):
        monkeypatch.setenv("SCHEMA_VALIDATION_STRICT", "true")
        with pytest.raises(ValidationError) as exc_info:
            create_schema_version("container", 1, [{"name": "blob", "type": "binary"}])
        assert "binary" in str(exc_info.value)

    def test_lenient_mode_accepts_any_type_tag(self, monkeypatch):
        monkeypatch.setenv("SCHEMA_VALIDATION_STRICT", "false")
        schema = create_schema_version("container", 1, [{"name": "blob", "type": "binary"}])
        assert schema.fields[0].type == "binary"


class TestGetActiveSchema:
    """Reading the active schema of a table."""

    def test_missing_table_raises_not_found(self):
        with pytest.raises(SchemaNotFoundError) as exc_info:
            get_active_schema("unknown_table")
        assert "unknown_table" in str(exc_info.value)

    def test_no_active_version_raises_not_found(self):
        create_schema_version("container", 1, CONTAINER_FIELDS)
        with get_db() as conn:
            conn.execute("UPDATE table_schemas SET is_active = 0")

        with pytest.raises(SchemaNotFoundError):
            get_active_schema("container")

    def test_reads_are_idempotent(self):
        create_schema_version("container", 1, CONTAINER_FIELDS)
        assert get_active_schema("container") == get_active_schema("container")

    def test_round_trips_field_definitions(self):
        create_schema_version("container", 3, CONTAINER_FIELDS)
        schema = get_active_schema("container")

        assert [f.to_dict() for f in schema.fields] == [
            {"name": "status", "type": "string", "required": True},
            {"name": "ports", "type": "array", "required": False, "defaultValue": [], "description": "exposed ports"},
        ]

    def test_corrupt_stored_definitions_surface_as_store_error(self):
        create_schema_version("container", 1, CONTAINER_FIELDS)
        with get_db() as conn:
            conn.execute("UPDATE table_schemas SET field_definitions = 'not json'")

        with pytest.raises(StorePersistenceError):
            get_active_schema("container")


class TestListSchemaVersions:
    """Listing every version of a table."""

    def test_newest_version_first(self):
        for version in (1, 3, 2):
            create_schema_version("container", version, CONTAINER_FIELDS)

        versions = list_schema_versions("container")
        assert [s.version for s in versions] == [3, 2, 1]
        assert [s.is_active for s in versions] == [False, True, False]

    def test_unknown_table_lists_nothing(self):
        assert list_schema_versions("nothing_here") == []

    def test_store_index_rejects_second_active_row(self):
        create_schema_version("container", 1, CONTAINER_FIELDS)
        with get_db() as conn:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO table_schemas (table_name, schema_version, field_definitions, is_active) "
                    "VALUES ('container', 2, '[]', 1)"
                )
