"""
Document helpers - JSON encoding, field paths, deep-set, removal and containment.

Documents are plain JSON values: dict/list/str/int/float/bool/None.
"""

import copy
import json
import re
from typing import Any, Dict, List, Sequence, Union

from .errors import StorePersistenceError, ValidationError

PathSegment = Union[str, int]

_INDEX_PATTERN = re.compile(r"-?[0-9]+", re.ASCII)


def encode_document(document: Any) -> str:
    """Serialize a document for storage."""
    try:
        return json.dumps(document if document is not None else {}, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Document is not JSON serializable: {e}") from e


def decode_document(raw: Any, column: str = "document") -> Dict[str, Any]:
    """Parse a stored document, treating NULL as an empty object."""
    if raw is None or raw == "":
        return {}
    try:
        document = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise StorePersistenceError(f"Stored {column} is not valid JSON: {e}") from e
    return document if isinstance(document, dict) else {}


def normalize_path(path: Any) -> List[PathSegment]:
    """Validate a field path; a bare string is a single-segment path."""
    if isinstance(path, str):
        path = [path]
    if not isinstance(path, Sequence) or len(path) == 0:
        raise ValidationError("Field path must be a non-empty sequence of segments")

    segments: List[PathSegment] = []
    for position, segment in enumerate(path):
        if isinstance(segment, bool) or not isinstance(segment, (str, int)):
            raise ValidationError(f"Path segment at position {position} must be a string or integer", position=position)
        if isinstance(segment, str) and segment == "":
            raise ValidationError(f"Path segment at position {position} is empty", position=position)
        segments.append(segment)
    return segments


def deep_set(document: Any, path: Sequence[PathSegment], value: Any) -> Dict[str, Any]:
    """Return a copy of ``document`` with ``value`` placed at ``path``.

    Missing intermediate segments are created as empty objects. The terminal
    segment is replaced wholesale, never merged.
    """
    updated = copy.deepcopy(document) if isinstance(document, dict) else {}
    node: Any = updated
    for depth, segment in enumerate(path[:-1]):
        child = _get_child(node, segment, path[:depth + 1])
        if child is None:
            child = {}
            _assign(node, segment, child, path[:depth + 1])
        elif not isinstance(child, (dict, list)):
            raise ValidationError(f"Path segment '{_format_path(path[:depth + 1])}' holds a scalar, not an object")
        node = child

    _assign(node, path[-1], copy.deepcopy(value), path)
    return updated


def remove_key(document: Any, field_name: str) -> Dict[str, Any]:
    """Return a copy of ``document`` without the top-level ``field_name``."""
    updated = copy.deepcopy(document) if isinstance(document, dict) else {}
    updated.pop(field_name, None)
    return updated


def contains(document: Any, criteria: Any) -> bool:
    """Document containment: every part of ``criteria`` is present in ``document``.

    Objects match key by key, arrays match when each criteria element is
    contained in some document element, scalars compare by JSON type and value.
    """
    if isinstance(criteria, dict):
        if not isinstance(document, dict):
            return False
        return all(key in document and contains(document[key], expected)
                   for key, expected in criteria.items())
    if isinstance(criteria, list):
        if not isinstance(document, list):
            return False
        return all(any(contains(item, expected) for item in document) for expected in criteria)
    if isinstance(document, (dict, list)):
        return False
    if isinstance(criteria, bool) or isinstance(document, bool):
        return isinstance(criteria, bool) and isinstance(document, bool) and criteria == document
    if criteria is None or document is None:
        return criteria is None and document is None
    if isinstance(criteria, str) != isinstance(document, str):
        return False
    return document == criteria


def _get_child(node: Any, segment: PathSegment, prefix: Sequence[PathSegment]) -> Any:
    if isinstance(node, dict):
        return node.get(str(segment))
    index = _list_index(node, segment, prefix)
    return node[index] if index < len(node) else None


def _assign(node: Any, segment: PathSegment, value: Any, prefix: Sequence[PathSegment]) -> None:
    if isinstance(node, dict):
        node[str(segment)] = value
        return
    index = _list_index(node, segment, prefix)
    if index == len(node):
        node.append(value)
    else:
        node[index] = value


def _list_index(node: List[Any], segment: PathSegment, prefix: Sequence[PathSegment]) -> int:
    if isinstance(segment, str):
        if not _INDEX_PATTERN.fullmatch(segment):
            raise ValidationError(f"Path segment '{_format_path(prefix)}' addresses an array with a non-numeric index")
        segment = int(segment)
    index = segment + len(node) if segment < 0 else segment
    if index < 0 or index > len(node):
        raise ValidationError(f"Array index out of range at '{_format_path(prefix)}'")
    return index


def _format_path(path: Sequence[PathSegment]) -> str:
    return ".".join(str(segment) for segment in path)
