"""
Field search dispatcher - one entry point for field-match queries over every entity kind.
"""

from typing import Any, List, Mapping, Optional

from .entities import require_capability
from .errors import FlexRecordsError, ValidationError
from .schema import Capability, Record, RequestContext
from ..util.logging import logger


def search_by_field(kind: Any, criteria: Mapping[str, Any], ctx: Optional[RequestContext] = None) -> List[Record]:
    """
    Return records of ``kind`` whose coreData or customFields contain ``criteria``.

    Containment follows JSON document semantics: every criteria key must be
    present with an equal (or, for nested objects and arrays, contained)
    value. No match yields an empty list rather than an error.
    """
    if not isinstance(criteria, Mapping):
        raise ValidationError("search criteria must be an object")
    store = require_capability(kind, Capability.SEARCHABLE, "field search")

    try:
        results = store.search(criteria, ctx)
    except FlexRecordsError as e:
        logger.log_operation_failure("field.search", e, {"entity_kind": store.kind.value})
        raise

    logger.log_field_search(store.kind.value, sorted(criteria.keys()), len(results))
    return results
