"""
Request model validation - malformed payloads are rejected before any store call.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from flexrecords.api.schemas import (
    FieldDefinitionModel,
    FieldPatchRequest,
    RecordWriteRequest,
    SchemaCreateRequest,
)


class TestSchemaCreateRequest:

    def test_valid_request_passes(self):
        request = SchemaCreateRequest(version=2, fields=[{"name": "status", "type": "string", "required": True}])
        assert request.version == 2
        assert request.fields[0].required is True

    def test_empty_fields_rejected(self):
        with pytest.raises(PydanticValidationError) as exc_info:
            SchemaCreateRequest(version=1, fields=[])
        assert "fields cannot be empty" in str(exc_info.value)

    @pytest.mark.parametrize("field", [
        {"name": "", "type": "string"},
        {"name": "status", "type": "   "},
        {"type": "string"},
    ])
    def test_malformed_field_rejected(self, field):
        with pytest.raises(PydanticValidationError):
            FieldDefinitionModel(**field)

    def test_default_value_dropped_when_absent(self):
        model = FieldDefinitionModel(name="status", type="string")
        assert model.model_dump(exclude_none=True) == {"name": "status", "type": "string", "required": False}


class TestFieldPatchRequest:

    def test_mixed_path_segments(self):
        request = FieldPatchRequest(fieldPath=["ports", 0, "host"], value=8080, isCustom=True)
        assert request.fieldPath == ["ports", 0, "host"]

    def test_empty_path_rejected(self):
        with pytest.raises(PydanticValidationError):
            FieldPatchRequest(fieldPath=[], value=1)

    def test_is_custom_defaults_to_core(self):
        assert FieldPatchRequest(fieldPath=["a"]).isCustom is False


class TestRecordWriteRequest:

    def test_native_columns_travel_as_extras(self):
        request = RecordWriteRequest(name="web", status="running", coreData={"image": "nginx"})
        assert request.attributes() == {"name": "web", "status": "running"}
        assert request.coreData == {"image": "nginx"}
        assert request.customFields == {}

    def test_documents_must_be_objects(self):
        with pytest.raises(PydanticValidationError):
            RecordWriteRequest(coreData=["not", "an", "object"])
