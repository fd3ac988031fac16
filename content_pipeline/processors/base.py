"""
Abstract base class for submission processors.
"""

from abc import ABC, abstractmethod

from content_pipeline.core.models import FrameworkInput, FrameworkOutput


class BaseProcessor(ABC):
    """Abstract processor interface for content submission pipelines."""

    @abstractmethod
    def process(self, framework_input: FrameworkInput) -> FrameworkOutput:
        """
        Process one submission end to end.

        Args:
            framework_input: Message, destinations and caller state

        Returns:
            FrameworkOutput; never raises
        """
        pass
