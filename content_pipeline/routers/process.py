"""
Submission processing endpoint.

POST /framework/process: runs one message through the pipeline
"""

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from content_pipeline.core.logging import get_logger
from content_pipeline.core.models import Component, FrameworkInput, Severity
from content_pipeline.processors import PipelineProcessor
from content_pipeline.routers.dependencies import get_processor

log = get_logger(__name__)
router = APIRouter(prefix="/framework")


class EmailPayload(BaseModel):
    subject: str
    body: str
    attachments: list[str] = []   # base64
    sender: str = ""
    timestamp: str = ""


class DestinationPayload(BaseModel):
    name: str
    api_endpoint: str
    auth_type: str
    credentials: str
    api_schema: str = ""          # OpenAPI URL, inline JSON, or empty
    is_active: bool = False
    last_used: str | None = None


class UserContextPayload(BaseModel):
    id: str = ""
    permissions: list[str] = []
    preferences: dict[str, Any] = {}


class ErrorPayload(BaseModel):
    error: str
    severity: Severity = Severity.MEDIUM
    component: Component = Component.ORCHESTRATOR
    timestamp: str | None = None
    resolved: bool = False


class SystemStatePayload(BaseModel):
    active_connections: list[str] = []
    recent_errors: list[ErrorPayload] = []
    total_processed: int = 0
    success_rate: float = 0.0


class ProcessRequest(BaseModel):
    email: EmailPayload
    frontend_connections: list[DestinationPayload] = []
    user_context: UserContextPayload = UserContextPayload()
    system_state: SystemStatePayload = SystemStatePayload()


@router.post("/process")
def process_submission(req: ProcessRequest, processor: PipelineProcessor = Depends(get_processor)):
    """
    Classify, connect, transform and publish one submission.

    Always answers 200 with a FrameworkOutput; failures are reported in
    `status` and `errors` rather than as HTTP errors.
    """
    framework_input = FrameworkInput.from_dict(req.model_dump(mode="json"))
    output = processor.process(framework_input)
    log.info("process_request_complete", status=output.overall.value)
    return output.to_dict()
