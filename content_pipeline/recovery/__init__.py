"""Error recovery strategies and coordination."""

from .base import (
    BaseRecoveryStrategy,
    ClassifierFailureContext,
    ConnectionFailureContext,
    PipelineFailureContext,
    PublishFailureContext,
    TransformFailureContext,
)
from .registry import register_strategy, get_strategy

# Import strategies to trigger registration via @register_strategy decorator
from .strategies import ClassifierRecovery, ConnectionRecovery, TransformRecovery, PublishRecovery
from .coordinator import ErrorCoordinator

__all__ = [
    "BaseRecoveryStrategy",
    "ClassifierFailureContext",
    "ConnectionFailureContext",
    "PipelineFailureContext",
    "PublishFailureContext",
    "TransformFailureContext",
    "register_strategy",
    "get_strategy",
    "ClassifierRecovery",
    "ConnectionRecovery",
    "TransformRecovery",
    "PublishRecovery",
    "ErrorCoordinator",
]
