"""
Request and response models for the HTTP surface.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FieldDefinitionModel(BaseModel):
    name: str
    type: str
    required: bool = False
    defaultValue: Optional[Any] = None
    description: Optional[str] = None

    @field_validator('name', 'type')
    @classmethod
    def must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('must not be empty')
        return v


class SchemaCreateRequest(BaseModel):
    version: int
    fields: List[FieldDefinitionModel]
    description: Optional[str] = None

    @field_validator('fields')
    @classmethod
    def fields_must_not_be_empty(cls, v):
        if not v:
            raise ValueError('fields cannot be empty')
        return v


class SchemaResponse(BaseModel):
    id: Optional[int] = None
    tableName: str
    version: int
    fields: List[Dict[str, Any]]
    isActive: bool
    createdAt: Optional[datetime] = None
    description: Optional[str] = None


class SchemaListResponse(BaseModel):
    schemas: List[SchemaResponse]


class FieldPatchRequest(BaseModel):
    fieldPath: List[Union[str, int]]
    value: Any = None
    isCustom: bool = False

    @field_validator('fieldPath')
    @classmethod
    def path_must_not_be_empty(cls, v):
        if not v:
            raise ValueError('fieldPath cannot be empty')
        return v


class RecordWriteRequest(BaseModel):
    """Native columns (name, status, level, ...) travel as extra top-level keys."""

    model_config = ConfigDict(extra='allow')

    coreData: Dict[str, Any] = Field(default_factory=dict)
    customFields: Dict[str, Any] = Field(default_factory=dict)
    schemaVersion: Optional[int] = None

    def attributes(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class RecordResponse(BaseModel):
    model_config = ConfigDict(extra='allow')

    id: Union[int, str]
    kind: str
    coreData: Dict[str, Any]
    customFields: Dict[str, Any]
    schemaVersion: int
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class RecordListResponse(BaseModel):
    results: List[RecordResponse]


class MessageResponse(BaseModel):
    message: str
    record: Optional[RecordResponse] = None


class DashboardStats(BaseModel):
    total_containers: int
    total_repos: int


class DashboardSummaryResponse(BaseModel):
    containers: List[RecordResponse]
    repositories: List[RecordResponse]
    timestamp: datetime
    stats: DashboardStats


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
