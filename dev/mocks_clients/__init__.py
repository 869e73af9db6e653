"""Mock client modules for development and testing."""

from .mock_group_classifier import MockGroupClassifier

__all__ = [
    "MockGroupClassifier",
]
