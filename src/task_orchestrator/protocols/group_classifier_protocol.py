"""Protocol for the LLM-backed classifier used by the file organization pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Protocol

from src.task_orchestrator.file_organization.schemas import (
    DedupGroup,
    LowConfidenceFile,
    NullGroupFile,
    WindowFile,
)


@dataclass
class ClassifierUsage:
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass
class ClassifierResponse:
    """Decisions plus the token usage of the call that produced them."""

    items: List = field(default_factory=list)
    usage: ClassifierUsage = field(default_factory=ClassifierUsage)


class GroupClassifierProtocol(Protocol):
    """Protocol defining the expected interface for group classifiers."""

    def classify_window(self, files: List[WindowFile]) -> ClassifierResponse:
        """
        Assign every page of a comparison window to a group.

        ``items`` must be FileAssignment instances, one per page.
        """
        ...

    def resolve_low_confidence(
        self, files: List[LowConfidenceFile]
    ) -> ClassifierResponse:
        """Pick a final group per uncertain page; ``items`` are PageDecision."""
        ...

    def resolve_null_groups(self, files: List[NullGroupFile]) -> ClassifierResponse:
        """Name the group of unnamed pages; ``items`` are PageDecision."""
        ...

    def deduplicate_groups(self, groups: List[DedupGroup]) -> ClassifierResponse:
        """Map group names to canonical names; ``items`` are GroupRenameDecision."""
        ...
