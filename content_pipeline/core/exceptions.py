"""
Exceptions raised inside pipeline stages.

Stages convert these into ErrorRecords at their public boundary; only the
processor's outermost handler ever sees one escape.
"""


class PipelineError(Exception):
    """Base class for pipeline failures."""


class InterpretationError(PipelineError):
    """The submitted message is structurally unusable."""


class ConnectionValidationError(PipelineError):
    """A destination definition is incomplete or malformed."""


class SchemaDiscoveryError(PipelineError):
    """A destination schema could not be fetched or parsed."""


class TransformError(PipelineError):
    """Content could not be mapped onto a destination schema."""


class PublishError(PipelineError):
    """An outbound publish request failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RecoveryExhaustedError(PublishError):
    """Every recovery strategy failed for a request."""
