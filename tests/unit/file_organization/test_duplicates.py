"""Unit tests for duplicate group name detection."""

import pytest

from src.task_orchestrator.file_organization.duplicates import (
    DuplicateGroupDetector,
    levenshtein,
    name_similarity,
    normalize_name,
)
from src.task_orchestrator.file_organization.schemas import MergedGroup


def test_normalize_name():
    assert normalize_name("  Acme,  Medical. Inc ") == "acme medical inc"


@pytest.mark.parametrize(
    "a, b, expected",
    [("kitten", "sitting", 3), ("", "abc", 3), ("same", "same", 0)],
)
def test_levenshtein(a, b, expected):
    assert levenshtein(a, b) == expected


class TestNameSimilarity:
    def test_identical_after_normalization(self):
        assert name_similarity("Acme Medical", "acme, medical") == 1.0

    def test_location_variant(self):
        assert name_similarity("Acme Medical", "Acme Medical (Denver)") == 0.95

    def test_substring_has_floor(self):
        assert name_similarity("Acme", "Acme Medical Group") == 0.85

    def test_unrelated_names_are_dissimilar(self):
        assert name_similarity("Invoices", "Tax Returns") < 0.5

    def test_empty_names_never_match(self):
        assert name_similarity("", "") == 0.0


class TestDuplicateGroupDetector:
    def test_finds_pairs_above_threshold(self):
        groups = [
            MergedGroup(name="Invoices"),
            MergedGroup(name="Invoice"),
            MergedGroup(name="Tax Returns"),
        ]

        candidates = DuplicateGroupDetector().find_candidates(groups)

        assert [(c.group1, c.group2) for c in candidates] == [("Invoices", "Invoice")]
        assert candidates[0].similarity >= 0.7

    def test_no_candidates_for_distinct_groups(self):
        groups = [MergedGroup(name="Invoices"), MergedGroup(name="Contracts")]

        assert DuplicateGroupDetector().find_candidates(groups) == []
