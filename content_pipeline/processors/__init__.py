"""Submission processors."""

from .base import BaseProcessor
from .pipeline import PipelineProcessor

__all__ = ["BaseProcessor", "PipelineProcessor"]
