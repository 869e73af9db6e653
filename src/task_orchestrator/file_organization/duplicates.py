"""Detects groups whose names likely refer to the same entity."""

import re
from typing import List, Sequence

from src.task_orchestrator.config import file_organization_settings
from src.task_orchestrator.file_organization.schemas import (
    DuplicateCandidate,
    MergedGroup,
)

_PUNCTUATION = re.compile(r"[,.:;]")
_WHITESPACE = re.compile(r"\s+")
# "Acme Medical" vs "Acme Medical (Denver)"
_LOCATION_SUFFIX = re.compile(r"^(?P<base>.+?)\s*\((?P<location>[^)]+)\)$")

EXACT_SIMILARITY = 1.0
LOCATION_VARIANT_SIMILARITY = 0.95
SUBSTRING_MIN_SIMILARITY = 0.85


def normalize_name(name: str) -> str:
    normalized = _PUNCTUATION.sub("", name.lower())
    return _WHITESPACE.sub(" ", normalized).strip()


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance: unit cost for each insertion, deletion and substitution."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (char_a != char_b),
                )
            )
        previous = current
    return previous[-1]


def _strip_location(name: str) -> str:
    match = _LOCATION_SUFFIX.match(name)
    return match.group("base").strip() if match else name


def name_similarity(name1: str, name2: str) -> float:
    """Similarity of two group names in [0, 1]."""
    a = normalize_name(name1)
    b = normalize_name(name2)
    if not a or not b:
        return 0.0
    if a == b:
        return EXACT_SIMILARITY

    if _strip_location(a) == _strip_location(b):
        return LOCATION_VARIANT_SIMILARITY

    shorter, longer = sorted((a, b), key=len)
    if shorter in longer:
        return max(SUBSTRING_MIN_SIMILARITY, len(shorter) / len(longer))

    return 1 - levenshtein(a, b) / max(len(a), len(b))


class DuplicateGroupDetector:
    def __init__(self, settings=None):
        self.settings = settings or file_organization_settings

    def find_candidates(self, groups: Sequence[MergedGroup]) -> List[DuplicateCandidate]:
        """Every pair of groups at or above the similarity threshold, most similar first."""
        threshold = self.settings.duplicate_similarity_threshold
        candidates = []
        for i, first in enumerate(groups):
            for second in groups[i + 1 :]:
                similarity = name_similarity(first.name, second.name)
                if similarity >= threshold:
                    candidates.append(
                        DuplicateCandidate(
                            group1=first.name,
                            group2=second.name,
                            similarity=round(similarity, 3),
                        )
                    )
        return sorted(candidates, key=lambda c: (-c.similarity, c.group1, c.group2))
