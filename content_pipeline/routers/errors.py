"""
Error log endpoints.

GET    /framework/errors: filtered, paginated error log plus statistics
PATCH  /framework/errors: mark one error resolved
DELETE /framework/errors: clear errors for a component or all
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from content_pipeline.core.logging import get_logger
from content_pipeline.core.models import Component, Severity, utc_now_iso
from content_pipeline.processors import PipelineProcessor
from content_pipeline.routers.dependencies import get_processor

log = get_logger(__name__)
router = APIRouter(prefix="/framework")


class ResolveErrorRequest(BaseModel):
    timestamp: str
    component: Component


@router.get("/errors")
def list_errors(
    component: Component | None = None,
    severity: Severity | None = None,
    resolved: bool | None = None,
    limit: int = Query(50, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    processor: PipelineProcessor = Depends(get_processor),
):
    errors = processor.coordinator.get_errors(component)
    if severity is not None:
        errors = [e for e in errors if e.severity == severity]
    if resolved is not None:
        errors = [e for e in errors if e.resolved == resolved]

    total = len(errors)
    page = errors[offset:offset + limit]
    stats = processor.coordinator.get_error_stats()

    return {
        "errors": [e.to_dict() for e in page],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "has_more": offset + limit < total,
        },
        "statistics": {
            "total_errors": stats["total"],
            "resolved_errors": stats["resolved"],
            "unresolved_errors": stats["unresolved"],
            "by_component": stats["by_component"],
            "by_severity": stats["by_severity"],
        },
        "timestamp": utc_now_iso(),
    }


@router.patch("/errors")
def resolve_error(req: ResolveErrorRequest, processor: PipelineProcessor = Depends(get_processor)):
    if not processor.coordinator.resolve_error(req.timestamp, req.component):
        raise HTTPException(
            status_code=404,
            detail=f"No error logged at {req.timestamp} for {req.component.value}",
        )
    log.info("error_resolved", component=req.component.value, timestamp=req.timestamp)
    return {
        "message": "Error updated successfully",
        "error": {"timestamp": req.timestamp, "component": req.component.value, "resolved": True},
    }


@router.delete("/errors")
def clear_errors(
    component: Component | None = None,
    processor: PipelineProcessor = Depends(get_processor),
):
    processor.coordinator.clear_errors(component)
    if component is not None:
        message = f"Errors for component '{component.value}' cleared successfully"
    else:
        message = "All errors cleared successfully"
    return {"message": message, "component": component.value if component else None}
