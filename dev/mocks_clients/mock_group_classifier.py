"""Mock group classifier for offline development and testing."""

import logging
from typing import List, Optional

from src.task_orchestrator.file_organization.duplicates import normalize_name
from src.task_orchestrator.file_organization.schemas import (
    DedupGroup,
    FileAssignment,
    GroupRenameDecision,
    LowConfidenceFile,
    NullGroupFile,
    PageDecision,
    WindowFile,
)
from src.task_orchestrator.protocols import ClassifierResponse, ClassifierUsage

logger = logging.getLogger(__name__)


class MockGroupClassifier:
    """
    Deterministic classifier that never calls an LLM.

    Pages are grouped in fixed blocks of ``pages_per_group`` consecutive page
    numbers; resolutions keep the best known answer.
    """

    def __init__(self, pages_per_group: int = 3):
        self.pages_per_group = pages_per_group

    def _usage(self, count: int) -> ClassifierUsage:
        return ClassifierUsage(input_tokens=100 * count, output_tokens=20 * count)

    def _adjacency(self, index: int, page_number: int) -> Optional[int]:
        """5 inside a block, 0 where a new block starts, None for the window's first page."""
        if index == 0:
            return None
        return 0 if (page_number - 1) % self.pages_per_group == 0 else 5

    def classify_window(self, files: List[WindowFile]) -> ClassifierResponse:
        logger.info(f"Mock classifier: classifying {len(files)} pages")
        items = []
        for index, file in enumerate(sorted(files, key=lambda f: f.page_number)):
            block = (file.page_number - 1) // self.pages_per_group + 1
            items.append(
                FileAssignment(
                    page_number=file.page_number,
                    group_name=f"Document {block}",
                    description=f"Pages of mock document {block}",
                    group_name_confidence=4,
                    belongs_to_previous=self._adjacency(index, file.page_number),
                )
            )
        return ClassifierResponse(items=items, usage=self._usage(len(files)))

    def resolve_low_confidence(
        self, files: List[LowConfidenceFile]
    ) -> ClassifierResponse:
        items = [
            PageDecision(
                page_number=f.page_number,
                group_name=f.best_assignment.group_name,
                reason="Kept the highest confidence assignment",
            )
            for f in files
        ]
        return ClassifierResponse(items=items, usage=self._usage(len(files)))

    def resolve_null_groups(self, files: List[NullGroupFile]) -> ClassifierResponse:
        items = [
            PageDecision(
                page_number=f.page_number,
                group_name=f.previous_group or f.next_group or "Ungrouped",
                reason="Joined the preceding group",
            )
            for f in files
        ]
        return ClassifierResponse(items=items, usage=self._usage(len(files)))

    def deduplicate_groups(self, groups: List[DedupGroup]) -> ClassifierResponse:
        canonical = {}
        items = []
        for group in groups:
            key = normalize_name(group.name)
            canonical.setdefault(key, group.name)
            items.append(
                GroupRenameDecision(group_name=group.name, canonical_name=canonical[key])
            )
        return ClassifierResponse(items=items, usage=self._usage(len(groups)))
