"""Typed payloads passed between file organization pipeline stages."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class WindowFile(BaseModel):
    """A page handed to a comparison window."""

    file_id: int
    page_number: int


class WindowMeta(BaseModel):
    """Meta of a comparison_window process."""

    window_start: int
    window_end: int
    window_files: List[WindowFile]

    @property
    def window_range(self) -> str:
        return f"{self.window_start}-{self.window_end}"


class FileAssignment(BaseModel):
    """One page's group assignment returned by a comparison window."""

    model_config = ConfigDict(extra="ignore")

    page_number: int
    group_name: Optional[str] = ""
    description: str = ""
    group_name_confidence: Optional[int] = None
    group_explanation: str = ""
    belongs_to_previous: Optional[int] = Field(default=None, ge=0, le=5)

    @field_validator("group_name", mode="before")
    @classmethod
    def normalize_group_name(cls, value) -> str:
        """Null and whitespace-only names both mean "no group"."""
        if value is None:
            return ""
        return str(value).strip()

    @property
    def is_null_group(self) -> bool:
        return self.group_name == ""


class WindowResult(BaseModel):
    """Output artifact content of a comparison_window process."""

    window_start: int
    window_end: int
    files: List[FileAssignment] = Field(default_factory=list)


class ConfidenceSummary(BaseModel):
    avg: float
    min: int
    max: int


class GroupFile(BaseModel):
    """A page placed in a merged group."""

    file_id: Optional[int] = None
    page_number: int
    confidence: int
    explanation: str = ""


class MergedGroup(BaseModel):
    """Content of a group artifact produced by the merge and resolution stages."""

    name: str
    description: str = ""
    files: List[GroupFile] = Field(default_factory=list)

    @property
    def page_numbers(self) -> List[int]:
        return sorted(f.page_number for f in self.files)

    @property
    def confidence_summary(self) -> Optional[ConfidenceSummary]:
        confidences = [f.confidence for f in self.files]
        if not confidences:
            return None
        return ConfidenceSummary(
            avg=round(sum(confidences) / len(confidences), 2),
            min=min(confidences),
            max=max(confidences),
        )


class Explanation(BaseModel):
    """One window's opinion about a page."""

    group_name: str
    description: str = ""
    confidence: int
    explanation: str = ""
    window_range: Optional[str] = None


class LowConfidenceFile(BaseModel):
    file_id: Optional[int] = None
    page_number: int
    best_assignment: Explanation
    all_explanations: List[Explanation]


class NullGroupFile(BaseModel):
    """Page without a group whose neighbours disagree."""

    file_id: Optional[int] = None
    page_number: int
    previous_group: Optional[str] = None
    next_group: Optional[str] = None


class SampleFile(BaseModel):
    page_number: int
    description: str = ""
    confidence: int


class DedupGroup(BaseModel):
    """Bounded view of a group forwarded to duplicate resolution."""

    name: str
    description: str = ""
    file_count: int
    sample_files: List[SampleFile]
    confidence_summary: Optional[ConfidenceSummary] = None
    similar_groups: List[str] = Field(default_factory=list)


class DuplicateCandidate(BaseModel):
    group1: str
    group2: str
    similarity: float


class MergeMeta(BaseModel):
    """Meta stored on the merge process; drives the resolution stages."""

    low_confidence_files: List[LowConfidenceFile] = Field(default_factory=list)
    null_groups_needing_llm: List[NullGroupFile] = Field(default_factory=list)
    groups_for_deduplication: List[DedupGroup] = Field(default_factory=list)
    auto_assigned_null_pages: Dict[int, str] = Field(default_factory=dict)
    adjacency_reassigned_pages: Dict[int, str] = Field(default_factory=dict)
    discarded_blank_pages: List[int] = Field(default_factory=list)
    failed_windows: List[str] = Field(default_factory=list)


# --- Resolution decisions returned by the classifier ---


class PageDecision(BaseModel):
    """Final group for a single page."""

    page_number: int
    group_name: str
    reason: str = ""


class GroupRenameDecision(BaseModel):
    """Rename ``group_name`` to ``canonical_name``; equal names fold groups together."""

    group_name: str
    canonical_name: str
    reason: str = ""
