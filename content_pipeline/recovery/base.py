"""
Abstract base class for recovery strategies, and the contexts they receive.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Union

from content_pipeline.core.models import Action, Component, ErrorRecord, PublishRequest


@dataclass(frozen=True)
class ClassifierFailureContext:
    subject: str = ""
    attachment_count: int = 0


@dataclass(frozen=True)
class ConnectionFailureContext:
    destination_name: str


@dataclass(frozen=True)
class TransformFailureContext:
    destination_name: str
    content_type: str = ""


@dataclass(frozen=True)
class PublishFailureContext:
    destination_name: str
    attempted_request: PublishRequest | None = None


@dataclass(frozen=True)
class PipelineFailureContext:
    stage: str = ""
    trace_id: str = ""


RecoveryContext = Union[
    ClassifierFailureContext,
    ConnectionFailureContext,
    TransformFailureContext,
    PublishFailureContext,
    PipelineFailureContext,
]


def context_target(context: RecoveryContext | None, default: str = "system") -> str:
    """Destination named by a context, if it names one."""
    return getattr(context, "destination_name", None) or default


class BaseRecoveryStrategy(ABC):
    """Abstract recovery interface: one strategy per pipeline component."""

    component: Component

    @abstractmethod
    def recover(self, error: ErrorRecord, context: RecoveryContext | None) -> list[Action]:
        """
        Propose follow-up actions for an error.

        Args:
            error: The recorded error
            context: Tagged context describing what failed

        Returns:
            Actions to take; empty if the strategy has nothing to offer
        """
        pass
