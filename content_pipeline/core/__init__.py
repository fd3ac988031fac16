"""Core modules for the content pipeline."""

from .logging import configure_logging, get_logger, bind_context, clear_context
from .exceptions import (
    PipelineError,
    InterpretationError,
    ConnectionValidationError,
    SchemaDiscoveryError,
    TransformError,
    PublishError,
    RecoveryExhaustedError,
)
from .models import (
    Message,
    Destination,
    DestinationUpdate,
    ProcessedContent,
    MediaAsset,
    Schema,
    ErrorRecord,
    Action,
    FrameworkInput,
    FrameworkOutput,
    Component,
    Severity,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "PipelineError",
    "InterpretationError",
    "ConnectionValidationError",
    "SchemaDiscoveryError",
    "TransformError",
    "PublishError",
    "RecoveryExhaustedError",
    "Message",
    "Destination",
    "DestinationUpdate",
    "ProcessedContent",
    "MediaAsset",
    "Schema",
    "ErrorRecord",
    "Action",
    "FrameworkInput",
    "FrameworkOutput",
    "Component",
    "Severity",
]
