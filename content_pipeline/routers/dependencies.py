"""
Shared router dependencies.
"""

from fastapi import Request

from content_pipeline.processors import PipelineProcessor


def get_processor(request: Request) -> PipelineProcessor:
    """The processor built by the application lifespan."""
    return request.app.state.processor
