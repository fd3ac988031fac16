"""
FastAPI application for the content publishing pipeline.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from content_pipeline.config import settings
from content_pipeline.core.context import PipelineContext
from content_pipeline.core.logging import configure_logging, get_logger
from content_pipeline.processors import PipelineProcessor
from content_pipeline.routers.errors import router as errors_router
from content_pipeline.routers.health import router as health_router
from content_pipeline.routers.process import router as process_router

log = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    # Startup
    configure_logging(settings.log_level, settings.log_json)
    context = PipelineContext.create(settings)
    app.state.processor = PipelineProcessor(context)
    log.info("application_starting", max_workers=settings.max_workers)

    yield

    # Shutdown
    context.close()
    log.info("application_stopped")


app = FastAPI(
    title="Content Pipeline",
    description="Classifies submitted messages and publishes them to remote content systems",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(process_router)
app.include_router(errors_router)
app.include_router(health_router)


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "healthy", "version": "1.0.0"}


# Run with: uvicorn content_pipeline.main:app --host 0.0.0.0 --port 8001
