"""
Abstract base class for message classifiers.
"""

from abc import ABC, abstractmethod

from content_pipeline.core.models import Message, Interpretation


class BaseClassifier(ABC):
    """Abstract classifier interface."""

    @abstractmethod
    def interpret(self, message: Message) -> Interpretation:
        """
        Classify a message and extract structured content.

        Args:
            message: Submission to classify

        Returns:
            Interpretation with the processed content and any
            non-fatal errors (e.g. undecodable attachments)
        """
        pass

    @abstractmethod
    def clean_body(self, body: str) -> str:
        """
        Strip signatures, quoted replies and reply banners from a body.

        Args:
            body: Full message body

        Returns:
            The new message content only
        """
        pass
