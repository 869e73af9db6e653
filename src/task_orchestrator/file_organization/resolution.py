"""Applies classifier decisions to merged groups."""

import logging
from typing import Dict, List, Optional, Sequence

from src.task_orchestrator.file_organization.schemas import (
    GroupFile,
    GroupRenameDecision,
    MergedGroup,
    PageDecision,
)

logger = logging.getLogger(__name__)


def _sorted_groups(groups: Dict[str, MergedGroup]) -> List[MergedGroup]:
    non_empty = [g for g in groups.values() if g.files]
    for group in non_empty:
        group.files.sort(key=lambda f: f.page_number)
    return sorted(non_empty, key=lambda g: g.page_numbers[0])


def apply_page_decisions(
    groups: Sequence[MergedGroup],
    decisions: Sequence[PageDecision],
    file_ids: Optional[Dict[int, int]] = None,
    confidence: int = 3,
) -> List[MergedGroup]:
    """
    Move each decided page into its decided group.

    Pages not yet in any group (unresolved null pages) are added with the
    given confidence. Groups left empty are dropped.
    """
    file_ids = file_ids or {}
    by_name: Dict[str, MergedGroup] = {
        g.name: g.model_copy(deep=True) for g in groups
    }

    for decision in decisions:
        target_name = decision.group_name.strip()
        if not target_name:
            logger.warning(f"Ignoring empty group decision for page {decision.page_number}")
            continue

        moved: Optional[GroupFile] = None
        for group in by_name.values():
            for file in list(group.files):
                if file.page_number == decision.page_number:
                    group.files.remove(file)
                    moved = file
        if moved is None:
            moved = GroupFile(
                file_id=file_ids.get(decision.page_number),
                page_number=decision.page_number,
                confidence=confidence,
            )
        if decision.reason:
            moved.explanation = decision.reason

        target = by_name.get(target_name)
        if target is None:
            target = by_name[target_name] = MergedGroup(name=target_name)
        target.files.append(moved)

    return _sorted_groups(by_name)


def apply_rename_decisions(
    groups: Sequence[MergedGroup], decisions: Sequence[GroupRenameDecision]
) -> List[MergedGroup]:
    """Rename groups to their canonical names, folding groups that end up with the same name."""
    renames = {
        d.group_name: d.canonical_name.strip()
        for d in decisions
        if d.canonical_name and d.canonical_name.strip()
    }
    by_name: Dict[str, MergedGroup] = {}
    for group in groups:
        name = renames.get(group.name, group.name)
        target = by_name.get(name)
        if target is None:
            target = by_name[name] = MergedGroup(
                name=name, description=group.description
            )
        elif not target.description:
            target.description = group.description
        target.files.extend(f.model_copy() for f in group.files)
        if name != group.name:
            logger.info(f"Group '{group.name}' renamed to '{name}'")
    return _sorted_groups(by_name)
