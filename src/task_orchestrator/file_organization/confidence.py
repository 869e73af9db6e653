"""Classifies merged groups by the spread of their file confidences."""

from enum import Enum
from typing import Optional

from src.task_orchestrator.config import file_organization_settings
from src.task_orchestrator.file_organization.schemas import ConfidenceSummary


class GroupConfidence(str, Enum):
    HIGH = "high"
    MIXED = "mixed"
    LOW = "low"


class GroupConfidenceAnalyzer:
    """HIGH when every file is confident, LOW when none is, MIXED otherwise."""

    def __init__(self, settings=None):
        self.settings = settings or file_organization_settings

    def classify(self, summary: Optional[ConfidenceSummary]) -> GroupConfidence:
        if summary is None:
            return GroupConfidence.LOW
        if summary.min >= self.settings.high_confidence_threshold:
            return GroupConfidence.HIGH
        if summary.max < self.settings.low_confidence_threshold:
            return GroupConfidence.LOW
        return GroupConfidence.MIXED
