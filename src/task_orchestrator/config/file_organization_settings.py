"""Settings for the file organization window / merge / resolution pipeline."""

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.task_orchestrator.enums import BlankPageHandling


class FileOrganizationSettings(BaseSettings):
    """Tunable thresholds of the file organization pipeline."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    comparison_window_size: int = Field(
        default=5,
        ge=2,
        le=100,
        title="Comparison Window Size",
        description="Number of pages analysed together in one comparison window.",
        alias="FILE_ORG_WINDOW_SIZE",
    )
    comparison_window_overlap: int = Field(
        default=1,
        ge=1,
        title="Comparison Window Overlap",
        description="Pages shared between two consecutive windows.",
        alias="FILE_ORG_WINDOW_OVERLAP",
    )
    low_confidence_threshold: int = Field(
        default=3,
        title="Low Confidence Threshold",
        description="Best confidence below this value flags a page for low confidence resolution.",
        alias="FILE_ORG_LOW_CONFIDENCE_THRESHOLD",
    )
    high_confidence_threshold: int = Field(
        default=4,
        title="High Confidence Threshold",
        description="Minimum confidence of every file for a group to count as high confidence.",
        alias="FILE_ORG_HIGH_CONFIDENCE_THRESHOLD",
    )
    default_confidence: int = Field(
        default=3,
        title="Default Confidence",
        description="Confidence assumed when a window result omits it.",
        alias="FILE_ORG_DEFAULT_CONFIDENCE",
    )
    duplicate_similarity_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        title="Duplicate Similarity Threshold",
        description="Name similarity at which two groups are duplicate candidates.",
        alias="FILE_ORG_DUPLICATE_SIMILARITY_THRESHOLD",
    )
    dedup_sample_size: int = Field(
        default=3,
        ge=1,
        title="Dedup Sample Size",
        description="Maximum sample files forwarded per group to duplicate resolution.",
        alias="FILE_ORG_DEDUP_SAMPLE_SIZE",
    )
    allow_merge_with_failed_windows: bool = Field(
        default=False,
        title="Allow Merge With Failed Windows",
        description="Create the merge process when every window is terminal even "
        "if some of them did not complete successfully.",
        alias="FILE_ORG_ALLOW_MERGE_WITH_FAILED_WINDOWS",
    )
    adjacency_boundary_threshold: int = Field(
        default=2,
        ge=0,
        le=5,
        title="Adjacency Boundary Threshold",
        description="Minimum belongs_to_previous score that moves a low confidence "
        "page into the previous page's group.",
        alias="FILE_ORG_ADJACENCY_BOUNDARY_THRESHOLD",
    )
    blank_page_handling: BlankPageHandling = Field(
        default=BlankPageHandling.JOIN_PREVIOUS,
        title="Blank Page Handling",
        description="join_previous, create_blank_group or discard.",
        alias="FILE_ORG_BLANK_PAGE_HANDLING",
    )
    blank_group_name: str = Field(
        default="Blank Pages",
        min_length=1,
        title="Blank Group Name",
        description="Group collecting blank pages under create_blank_group.",
        alias="FILE_ORG_BLANK_GROUP_NAME",
    )

    @model_validator(mode="after")
    def validate_overlap(self) -> "FileOrganizationSettings":
        """Overlap must leave the window room to advance."""
        if self.comparison_window_overlap >= self.comparison_window_size:
            raise ValueError(
                "comparison_window_overlap must be smaller than comparison_window_size"
            )
        return self
