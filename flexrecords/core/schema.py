"""
Data model for schema definitions and flexible records.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from .errors import UnsupportedEntityKindError, ValidationError

RecordId = Union[str, int]


class EntityKind(str, Enum):
    CONTAINER = "container"
    REPOSITORY = "repository"
    CACHE_ENTRY = "cache-entry"
    LOG_ENTRY = "log-entry"
    SECRET = "secret"
    REGISTRY_VALUE = "registry-value"
    PLIST_VALUE = "plist-value"

    @classmethod
    def parse(cls, value: Any) -> "EntityKind":
        """Resolve a kind from its name, an underscore spelling or a legacy table name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            name = value.strip().lower()
            name = _KIND_ALIASES.get(name, name).replace("_", "-")
            for kind in cls:
                if kind.value == name:
                    return kind
        raise UnsupportedEntityKindError(value)

    def __str__(self) -> str:
        return self.value


_KIND_ALIASES = {
    "docker_container": "container",
    "git_repo": "repository",
    "cache_data": "cache-entry",
    "registry_data": "registry-value",
    "plist_data": "plist-value",
}


class Capability(str, Enum):
    MUTABLE_CORE = "mutable-core"
    MUTABLE_CUSTOM = "mutable-custom"
    REMOVABLE_CORE = "removable-core"
    REPLACEABLE = "replaceable"
    SEARCHABLE = "searchable"


@dataclass
class FieldDefinition:
    name: str
    type: str
    required: bool = False
    default_value: Any = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any, position: int = 0) -> "FieldDefinition":
        """Build a definition from caller input, failing fast on malformed entries."""
        if isinstance(data, FieldDefinition):
            data = data.to_dict()
        if not isinstance(data, Mapping):
            raise ValidationError(f"Field definition at position {position} must be an object", position=position)

        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError(f"Field definition at position {position} is missing 'name'", position=position)

        type_tag = data.get("type")
        if not isinstance(type_tag, str) or not type_tag.strip():
            raise ValidationError(f"Field '{name}' is missing 'type'", field=name)

        required = data.get("required", False)
        if not isinstance(required, bool):
            raise ValidationError(f"Field '{name}' has a non-boolean 'required' flag", field=name)

        description = data.get("description")
        if description is not None and not isinstance(description, str):
            raise ValidationError(f"Field '{name}' has a non-string 'description'", field=name)

        return cls(
            name=name.strip(),
            type=type_tag.strip(),
            required=required,
            default_value=data.get("defaultValue", data.get("default_value")),
            description=description or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = {"name": self.name, "type": self.type, "required": self.required}
        if self.default_value is not None:
            data["defaultValue"] = self.default_value
        if self.description:
            data["description"] = self.description
        return data


@dataclass
class TableSchemaDefinition:
    table_name: str
    version: int
    fields: List[FieldDefinition]
    is_active: bool
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "tableName": self.table_name,
            "version": self.version,
            "fields": [f.to_dict() for f in self.fields],
            "isActive": self.is_active,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if self.description:
            data["description"] = self.description
        return data


@dataclass
class Record:
    kind: EntityKind
    id: RecordId
    attributes: Dict[str, Any]
    core_data: Dict[str, Any]
    custom_fields: Dict[str, Any]
    schema_version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Response shape: native columns flattened next to the documents."""
        data = {"id": self.id, "kind": self.kind.value}
        data.update(self.attributes)
        data.update({
            "coreData": self.core_data,
            "customFields": self.custom_fields,
            "schemaVersion": self.schema_version,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        })
        return data


@dataclass(frozen=True)
class RequestContext:
    """Per-request deadline carrier, forwarded untouched down to the store."""

    deadline: Optional[datetime] = None
    request_id: Optional[str] = None

    @classmethod
    def with_timeout(cls, seconds: float, request_id: Optional[str] = None) -> "RequestContext":
        return cls(deadline=datetime.now(timezone.utc) + timedelta(seconds=seconds), request_id=request_id)

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None when unbounded."""
        if self.deadline is None:
            return None
        return (self.deadline - datetime.now(timezone.utc)).total_seconds()
