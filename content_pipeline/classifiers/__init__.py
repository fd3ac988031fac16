"""
Message classifiers.

Classification is keyword driven and deterministic; no remote service is involved.
"""

from .base import BaseClassifier
from .keyword import KeywordClassifier


def get_classifier() -> KeywordClassifier:
    """Get the default classifier."""
    return KeywordClassifier()


__all__ = ["BaseClassifier", "KeywordClassifier", "get_classifier"]
