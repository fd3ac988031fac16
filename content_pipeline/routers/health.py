"""
Health endpoint.

GET /framework/health: 503 when unhealthy, 200 otherwise
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from content_pipeline.processors import PipelineProcessor
from content_pipeline.routers.dependencies import get_processor

router = APIRouter(prefix="/framework")


@router.get("/health")
def pipeline_health(processor: PipelineProcessor = Depends(get_processor)):
    health = processor.health()
    status_code = 503 if health["status"] == "unhealthy" else 200
    return JSONResponse(content=health, status_code=status_code)
