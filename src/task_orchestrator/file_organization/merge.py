"""Merges overlapping window results into one grouping of the run's pages."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from src.task_orchestrator.config import file_organization_settings
from src.task_orchestrator.enums import BlankPageHandling
from src.task_orchestrator.exceptions import ValidationError
from src.task_orchestrator.file_organization.aggregator import (
    LoadedWindow,
    PageAssignment,
    WindowComparisonAggregator,
)
from src.task_orchestrator.file_organization.confidence import (
    GroupConfidence,
    GroupConfidenceAnalyzer,
)
from src.task_orchestrator.file_organization.duplicates import DuplicateGroupDetector
from src.task_orchestrator.file_organization.null_groups import (
    NullGroupResolution,
    NullGroupResolver,
)
from src.task_orchestrator.file_organization.schemas import (
    DedupGroup,
    DuplicateCandidate,
    Explanation,
    GroupFile,
    LowConfidenceFile,
    MergedGroup,
    MergeMeta,
    SampleFile,
)

logger = logging.getLogger(__name__)

# (confidence, explanation) of a page placed in a group its best assignment did not name
Placement = Tuple[int, str]


@dataclass
class MergeResult:
    groups: List[MergedGroup]
    meta: MergeMeta
    duplicate_candidates: List[DuplicateCandidate] = field(default_factory=list)


def _explanation(assignment: PageAssignment) -> Explanation:
    return Explanation(
        group_name=assignment.group_name,
        description=assignment.description,
        confidence=assignment.confidence,
        explanation=assignment.explanation,
        window_range=assignment.window_range,
    )


class FileOrganizationMergeService:
    """
    Combines every window's opinion into a single grouping.

    For each page the highest-confidence assignment wins; on a tie the
    earliest window wins. Low confidence pages may then move to a neighbouring
    group on a strong belongs_to_previous signal, and blank pages are handled
    according to ``blank_page_handling``. Uncertain pages become low
    confidence files and similar or mixed groups are forwarded for
    deduplication.
    """

    def __init__(self, settings=None):
        self.settings = settings or file_organization_settings
        self.null_group_resolver = NullGroupResolver()
        self.duplicate_detector = DuplicateGroupDetector(self.settings)
        self.confidence_analyzer = GroupConfidenceAnalyzer(self.settings)

    def validate_windows(self, windows: Sequence[LoadedWindow]) -> None:
        """Every returned page must belong to the window that returned it."""
        for window in windows:
            allowed = set(window.file_ids) or set(
                range(window.window_start, window.window_end + 1)
            )
            for file in window.files:
                if file.page_number not in allowed:
                    raise ValidationError(
                        f"Window {window.window_range} returned page {file.page_number} "
                        f"which is not part of the window"
                    )

    def merge(self, windows: Sequence[LoadedWindow]) -> MergeResult:
        self.validate_windows(windows)
        aggregator = WindowComparisonAggregator(windows, self.settings)
        by_page = aggregator.assignments_by_page()

        file_ids: Dict[int, int] = {}
        for window in windows:
            file_ids.update(window.file_ids)

        best_by_page = {page: self._best(assignments) for page, assignments in by_page.items()}
        group_by_page = {page: best.group_name for page, best in best_by_page.items()}
        placements: Dict[int, Placement] = {}

        adjacency_reassigned = self.resolve_with_adjacency(
            group_by_page, best_by_page, self.adjacency_scores(by_page)
        )
        for page_number, previous_group in adjacency_reassigned.items():
            placements[page_number] = (
                best_by_page[page_number].confidence,
                f"Moved from {previous_group} by adjacency",
            )

        null_resolution, discarded = self.handle_blank_pages(
            group_by_page, file_ids, placements
        )

        groups = self._build_groups(group_by_page, best_by_page, by_page, file_ids, placements)
        low_confidence_files = self._low_confidence_files(by_page, best_by_page, file_ids)
        duplicate_candidates = self.duplicate_detector.find_candidates(groups)
        groups_for_deduplication = self._groups_for_deduplication(
            groups, duplicate_candidates
        )

        meta = MergeMeta(
            low_confidence_files=low_confidence_files,
            null_groups_needing_llm=null_resolution.needs_resolution,
            groups_for_deduplication=groups_for_deduplication,
            auto_assigned_null_pages=null_resolution.auto_assigned,
            adjacency_reassigned_pages={
                page: group_by_page[page] for page in adjacency_reassigned
            },
            discarded_blank_pages=discarded,
        )
        logger.info(
            f"Merged {len(windows)} windows into {len(groups)} groups: "
            f"{len(low_confidence_files)} low confidence, "
            f"{len(adjacency_reassigned)} moved by adjacency, "
            f"{len(null_resolution.needs_resolution)} unresolved null, "
            f"{len(groups_for_deduplication)} groups for deduplication"
        )
        return MergeResult(
            groups=groups, meta=meta, duplicate_candidates=duplicate_candidates
        )

    @staticmethod
    def _best(assignments: List[PageAssignment]) -> PageAssignment:
        best = assignments[0]
        for assignment in assignments[1:]:
            if assignment.confidence > best.confidence:
                best = assignment
        return best

    @staticmethod
    def adjacency_scores(
        by_page: Dict[int, List[PageAssignment]]
    ) -> Dict[int, Optional[int]]:
        """Highest belongs_to_previous score any window gave each page."""
        scores: Dict[int, Optional[int]] = {}
        for page_number, assignments in by_page.items():
            votes = [
                a.belongs_to_previous
                for a in assignments
                if a.belongs_to_previous is not None
            ]
            scores[page_number] = max(votes) if votes else None
        return scores

    def resolve_with_adjacency(
        self,
        group_by_page: Dict[int, str],
        best_by_page: Dict[int, PageAssignment],
        scores: Dict[int, Optional[int]],
    ) -> Dict[int, str]:
        """
        Move low confidence pages to a neighbouring group on a strong adjacency signal.

        Pages above ``low_confidence_threshold`` keep their group. A page whose
        next page claims it more strongly than it claims its previous page
        joins the next group; otherwise a score of at least
        ``adjacency_boundary_threshold`` joins the previous group, so ties go
        to the previous group. Pages are visited in page order and
        ``group_by_page`` is updated in place.

        Returns:
            Page number -> group the page was moved out of
        """
        pages = sorted(group_by_page)
        moved: Dict[int, str] = {}

        for index, page_number in enumerate(pages):
            group_name = group_by_page[page_number]
            if not group_name:
                continue
            if best_by_page[page_number].confidence > self.settings.low_confidence_threshold:
                continue

            to_previous = scores.get(page_number)
            if to_previous is None:
                continue

            from_next = None
            if index + 1 < len(pages):
                from_next = scores.get(pages[index + 1])

            if from_next is not None and from_next > to_previous:
                target = group_by_page[pages[index + 1]]
            elif to_previous >= self.settings.adjacency_boundary_threshold and index > 0:
                target = group_by_page[pages[index - 1]]
            else:
                continue

            # Blank neighbours are left to blank page handling
            if target and target != group_name:
                group_by_page[page_number] = target
                moved[page_number] = group_name

        return moved

    def handle_blank_pages(
        self,
        group_by_page: Dict[int, str],
        file_ids: Dict[int, int],
        placements: Dict[int, Placement],
    ) -> Tuple[NullGroupResolution, List[int]]:
        """
        Apply ``blank_page_handling`` to pages without a group name.

        Returns:
            The null group resolution and the discarded blank pages
        """
        handling = self.settings.blank_page_handling
        blank_pages = sorted(page for page, name in group_by_page.items() if not name)

        if handling == BlankPageHandling.DISCARD:
            return NullGroupResolution(), blank_pages

        if handling == BlankPageHandling.CREATE_BLANK_GROUP:
            for page_number in blank_pages:
                group_by_page[page_number] = self.settings.blank_group_name
                placements[page_number] = (self.settings.default_confidence, "Blank page")
            return NullGroupResolution(), []

        null_resolution = self.null_group_resolver.resolve(group_by_page, file_ids)
        for page_number, group_name in null_resolution.auto_assigned.items():
            group_by_page[page_number] = group_name
            placements[page_number] = (
                self.settings.default_confidence,
                "Assigned to neighbouring group",
            )
        return null_resolution, []

    def _build_groups(
        self,
        group_by_page: Dict[int, str],
        best_by_page: Dict[int, PageAssignment],
        by_page: Dict[int, List[PageAssignment]],
        file_ids: Dict[int, int],
        placements: Dict[int, Placement],
    ) -> List[MergedGroup]:
        groups: Dict[str, MergedGroup] = {}
        for page_number in sorted(group_by_page):
            group_name = group_by_page[page_number]
            if not group_name:
                continue
            best = best_by_page[page_number]
            if page_number in placements:
                confidence, explanation = placements[page_number]
            else:
                confidence = best.confidence
                explanation = best.explanation

            group = groups.get(group_name)
            if group is None:
                group = groups[group_name] = MergedGroup(name=group_name)
            if not group.description:
                group.description = self._description(group_name, by_page, page_number)
            group.files.append(
                GroupFile(
                    file_id=file_ids.get(page_number),
                    page_number=page_number,
                    confidence=confidence,
                    explanation=explanation,
                )
            )

        return sorted(groups.values(), key=lambda g: g.page_numbers[0])

    @staticmethod
    def _description(
        group_name: str, by_page: Dict[int, List[PageAssignment]], page_number: int
    ) -> str:
        for assignment in by_page.get(page_number, []):
            if assignment.group_name == group_name and assignment.description:
                return assignment.description
        return ""

    def _low_confidence_files(
        self,
        by_page: Dict[int, List[PageAssignment]],
        best_by_page: Dict[int, PageAssignment],
        file_ids: Dict[int, int],
    ) -> List[LowConfidenceFile]:
        low_confidence = []
        for page_number, assignments in by_page.items():
            best = best_by_page[page_number]
            distinct_groups = {a.group_name for a in assignments if a.group_name}
            if (
                best.group_name
                and best.confidence < self.settings.low_confidence_threshold
                and len(distinct_groups) > 1
            ):
                low_confidence.append(
                    LowConfidenceFile(
                        file_id=file_ids.get(page_number),
                        page_number=page_number,
                        best_assignment=_explanation(best),
                        all_explanations=[_explanation(a) for a in assignments],
                    )
                )
        return low_confidence

    def _groups_for_deduplication(
        self, groups: List[MergedGroup], candidates: List[DuplicateCandidate]
    ) -> List[DedupGroup]:
        similar: Dict[str, List[str]] = {}
        for candidate in candidates:
            similar.setdefault(candidate.group1, []).append(candidate.group2)
            similar.setdefault(candidate.group2, []).append(candidate.group1)

        flagged = []
        for group in groups:
            summary = group.confidence_summary
            mixed = self.confidence_analyzer.classify(summary) == GroupConfidence.MIXED
            if not mixed and group.name not in similar:
                continue
            flagged.append(
                DedupGroup(
                    name=group.name,
                    description=group.description,
                    file_count=len(group.files),
                    sample_files=[
                        SampleFile(
                            page_number=f.page_number,
                            description=group.description,
                            confidence=f.confidence,
                        )
                        for f in group.files[: self.settings.dedup_sample_size]
                    ],
                    confidence_summary=summary,
                    similar_groups=similar.get(group.name, []),
                )
            )
        return flagged
