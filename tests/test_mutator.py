"""
Field mutator tests - deep-set of core/custom fields and scoped core-field removal.
"""

from unittest.mock import patch

import pytest

from flexrecords.core.entities import create_record, get_record
from flexrecords.core.errors import RecordNotFoundError, UnsupportedEntityKindError, ValidationError
from flexrecords.core.mutator import remove_field, set_field


@pytest.fixture
def empty_container():
    return create_record("container", {"name": "empty", "status": "created"})


class TestSetField:
    """Path-addressed writes into coreData and customFields."""

    def test_deep_set_creates_intermediate_objects(self, empty_container):
        record = set_field("container", empty_container.id, ["a", "b"], 5, is_custom=False)
        assert record.core_data == {"a": {"b": 5}}

    def test_terminal_segment_is_replaced_not_merged(self, empty_container):
        set_field("container", empty_container.id, ["a", "b"], 5, is_custom=False)
        record = set_field("container", empty_container.id, ["a", "b"], 7, is_custom=False)
        assert record.core_data == {"a": {"b": 7}}

        record = set_field("container", empty_container.id, ["a"], {"c": 1}, is_custom=False)
        assert record.core_data == {"a": {"c": 1}}

    def test_custom_write_leaves_core_data_untouched(self, container):
        record = set_field("container", container.id, ["team", "oncall"], "alice", is_custom=True)

        assert record.custom_fields == {"owner": "ops", "team": {"oncall": "alice"}}
        assert record.core_data == container.core_data

    def test_single_string_path(self, container):
        record = set_field("container", container.id, "status", "stopped", is_custom=False)
        assert record.core_data["status"] == "stopped"

    def test_sibling_keys_are_preserved(self, container):
        record = set_field("container", container.id, ["network", "mode"], "bridge", is_custom=False)
        assert record.core_data == {"status": "running", "image": "nginx:1.25", "network": {"mode": "bridge"}}

    def test_array_index_addressing(self, empty_container):
        set_field("container", empty_container.id, ["network", "ports"], [80, 443], is_custom=False)
        record = set_field("container", empty_container.id, ["network", "ports", 0], 8080, is_custom=False)
        assert record.core_data == {"network": {"ports": [8080, 443]}}

        record = set_field("container", empty_container.id, ["network", "ports", 2], 9090, is_custom=False)
        assert record.core_data["network"]["ports"] == [8080, 443, 9090]

    def test_array_index_out_of_range_rejected(self, empty_container):
        set_field("container", empty_container.id, ["ports"], [80], is_custom=False)
        with pytest.raises(ValidationError):
            set_field("container", empty_container.id, ["ports", 5], 1, is_custom=False)

    @pytest.mark.parametrize("segment", ["--1", "\u00b2", "1.0", "-"])
    def test_malformed_array_index_rejected(self, empty_container, segment):
        set_field("container", empty_container.id, ["ports"], [80], is_custom=False)
        with pytest.raises(ValidationError):
            set_field("container", empty_container.id, ["ports", segment], 1, is_custom=False)
        assert get_record("container", empty_container.id).core_data == {"ports": [80]}

    def test_scalar_intermediate_rejected(self, container):
        with pytest.raises(ValidationError):
            set_field("container", container.id, ["image", "tag"], "latest", is_custom=False)
        assert get_record("container", container.id).core_data == container.core_data

    def test_repository_supports_both_documents(self, repository):
        set_field("repository", repository.id, ["ci", "provider"], "actions", is_custom=True)
        record = set_field("repository", repository.id, ["branch"], "develop", is_custom=False)

        assert record.core_data == {"branch": "develop"}
        assert record.custom_fields == {"ci": {"provider": "actions"}}

    def test_legacy_table_name_resolves_kind(self, container):
        record = set_field("docker_container", container.id, ["restarts"], 2, is_custom=False)
        assert record.core_data["restarts"] == 2

    def test_write_is_persisted_and_updates_timestamp(self, container):
        set_field("container", container.id, ["restarts"], 3, is_custom=False)
        stored = get_record("container", container.id)

        assert stored.core_data["restarts"] == 3
        assert stored.updated_at >= container.updated_at
        assert stored.schema_version == container.schema_version

    @pytest.mark.parametrize("path", [[], "", [""], [None], [True], [1.5]])
    def test_invalid_paths_rejected(self, container, path):
        with pytest.raises(ValidationError):
            set_field("container", container.id, path, 1, is_custom=False)

    def test_non_serializable_value_rejected(self, container):
        with pytest.raises(ValidationError):
            set_field("container", container.id, ["when"], object(), is_custom=False)

    def test_missing_record(self):
        with pytest.raises(RecordNotFoundError) as exc_info:
            set_field("container", "does-not-exist", ["x"], 1, is_custom=True)
        assert "does-not-exist" in str(exc_info.value)
        assert "container" in str(exc_info.value)

    @pytest.mark.parametrize("kind", ["secret", "cache-entry", "log-entry", "registry-value", "plist-value"])
    @pytest.mark.parametrize("is_custom", [True, False])
    def test_unsupported_kinds_rejected_without_store_access(self, kind, is_custom):
        with patch("flexrecords.core.entities.transaction") as transaction, \
                patch("flexrecords.core.entities.get_db") as get_db:
            with pytest.raises(UnsupportedEntityKindError):
                set_field(kind, "1", ["x"], 1, is_custom=is_custom)

        transaction.assert_not_called()
        get_db.assert_not_called()

    def test_unknown_kind_rejected(self):
        with pytest.raises(UnsupportedEntityKindError):
            set_field("spaceship", "1", ["x"], 1, is_custom=True)


class TestRemoveField:
    """Top-level removal from coreData."""

    def test_removes_only_named_key(self, container):
        record = remove_field("container", container.id, "status")

        assert record.core_data == {"image": "nginx:1.25"}
        assert record.custom_fields == {"owner": "ops"}
        assert record.attributes["status"] == "running"

    def test_absent_key_is_noop(self, container):
        record = remove_field("container", container.id, "nope")
        assert record.core_data == container.core_data

    def test_custom_fields_with_same_name_untouched(self, container):
        set_field("container", container.id, ["status"], "custom", is_custom=True)
        record = remove_field("container", container.id, "status")

        assert "status" not in record.core_data
        assert record.custom_fields["status"] == "custom"

    @pytest.mark.parametrize("kind", ["repository", "secret", "cache-entry", "log-entry", "registry-value", "plist-value"])
    def test_only_containers_support_removal(self, kind):
        with patch("flexrecords.core.entities.transaction") as transaction:
            with pytest.raises(UnsupportedEntityKindError):
                remove_field(kind, "1", "status")
        transaction.assert_not_called()

    def test_missing_record(self):
        with pytest.raises(RecordNotFoundError):
            remove_field("container", "missing", "status")

    def test_empty_field_name_rejected(self, container):
        with pytest.raises(ValidationError):
            remove_field("container", container.id, "")

    def test_kind_checked_before_field_name(self):
        with pytest.raises(UnsupportedEntityKindError):
            remove_field("secret", "1", "")
