"""
HTTP surface - translates requests into registry, mutator and search calls.

No rules live here: every domain error carries its own status and code.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .schemas import (
    DashboardSummaryResponse,
    FieldPatchRequest,
    HealthResponse,
    MessageResponse,
    RecordListResponse,
    RecordResponse,
    RecordWriteRequest,
    SchemaCreateRequest,
    SchemaListResponse,
    SchemaResponse,
)
from ..core.config import VERSION, debug_enabled, validate_config
from ..core.db import health_check, init_db
from ..core.entities import create_record, dashboard_summary, get_record, list_records, replace_record
from ..core.errors import FlexRecordsError, ValidationError
from ..core.mutator import remove_field, set_field
from ..core.registry import create_schema_version, get_active_schema, list_schema_versions
from ..core.schema import RequestContext
from ..core.search_service import search_by_field
from ..util.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuse to start on invalid configuration
    issues = validate_config()
    if issues:
        logger.log_operation("config.validate", "invalid", {"issues": issues}, level=logging.ERROR)
        raise ValueError(f"Configuration invalid: {issues}")
    init_db()
    yield


app = FastAPI(
    title="Flexible Records API",
    version=VERSION,
    description="Record store with versioned schemas and path-addressed custom fields",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan
)


@app.exception_handler(FlexRecordsError)
async def flexrecords_error_handler(request: Request, exc: FlexRecordsError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies answer with the same shape as domain validation errors."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg", ""))
    error = ValidationError("; ".join(problems) or "Invalid request")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def request_context(
    x_request_timeout_ms: Optional[int] = Header(None),
    x_request_id: Optional[str] = Header(None),
) -> RequestContext:
    """Build the deadline carrier forwarded to the store."""
    if x_request_timeout_ms is None:
        return RequestContext(request_id=x_request_id)
    return RequestContext.with_timeout(x_request_timeout_ms / 1000.0, request_id=x_request_id)


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint():
    """Check system health."""
    db_health = health_check()
    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health
    )


# Schema definitions
@app.get("/schema/{table}", response_model=SchemaResponse)
def get_table_schema(table: str, ctx: RequestContext = Depends(request_context)):
    return get_active_schema(table, ctx).to_dict()


@app.post("/schema/{table}", response_model=SchemaResponse, status_code=201)
def create_table_schema(table: str, request: SchemaCreateRequest, ctx: RequestContext = Depends(request_context)):
    fields = [f.model_dump(exclude_none=True) for f in request.fields]
    schema = create_schema_version(table, request.version, fields, request.description, ctx)
    return schema.to_dict()


@app.get("/schema/{table}/versions", response_model=SchemaListResponse)
def list_table_schemas(table: str, ctx: RequestContext = Depends(request_context)):
    return {"schemas": [s.to_dict() for s in list_schema_versions(table, ctx)]}


# Dynamic fields
@app.post("/schema/{table}/search", response_model=RecordListResponse)
def search_records(table: str, criteria: Dict[str, Any] = Body(...), ctx: RequestContext = Depends(request_context)):
    return {"results": [r.to_dict() for r in search_by_field(table, criteria, ctx)]}


@app.post("/schema/{table}/{record_id}/fields", response_model=MessageResponse)
def add_field_to_record(table: str, record_id: str, request: FieldPatchRequest,
                        ctx: RequestContext = Depends(request_context)):
    record = set_field(table, record_id, request.fieldPath, request.value, request.isCustom, ctx)
    return {"message": "Field added successfully", "record": record.to_dict()}


@app.delete("/schema/{table}/{record_id}/fields/{field}", response_model=MessageResponse)
def remove_field_from_record(table: str, record_id: str, field: str, ctx: RequestContext = Depends(request_context)):
    record = remove_field(table, record_id, field, ctx)
    return {"message": "Field removed successfully", "record": record.to_dict()}


# Records
@app.post("/records/{kind}", response_model=RecordResponse, status_code=201)
def create_record_endpoint(kind: str, request: RecordWriteRequest, ctx: RequestContext = Depends(request_context)):
    record = create_record(kind, request.attributes(), request.coreData, request.customFields,
                           request.schemaVersion, ctx)
    return record.to_dict()


@app.get("/records/{kind}", response_model=RecordListResponse)
def list_records_endpoint(kind: str, request: Request, ctx: RequestContext = Depends(request_context)):
    filters = dict(request.query_params)
    return {"results": [r.to_dict() for r in list_records(kind, filters, ctx)]}


@app.get("/records/{kind}/{record_id}", response_model=RecordResponse)
def get_record_endpoint(kind: str, record_id: str, ctx: RequestContext = Depends(request_context)):
    return get_record(kind, record_id, ctx).to_dict()


@app.put("/records/{kind}/{record_id}", response_model=RecordResponse)
def replace_record_endpoint(kind: str, record_id: str, request: RecordWriteRequest,
                            ctx: RequestContext = Depends(request_context)):
    record = replace_record(kind, record_id, request.attributes(), request.coreData, request.customFields,
                            request.schemaVersion, ctx)
    return record.to_dict()


@app.get("/dashboard/summary", response_model=DashboardSummaryResponse)
def dashboard_summary_endpoint(ctx: RequestContext = Depends(request_context)):
    summary = dashboard_summary(ctx)
    summary["containers"] = [r.to_dict() for r in summary["containers"]]
    summary["repositories"] = [r.to_dict() for r in summary["repositories"]]
    return summary
