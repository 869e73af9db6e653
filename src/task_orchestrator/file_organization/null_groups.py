"""Assigns pages without a group to a neighbouring group when unambiguous."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from src.task_orchestrator.file_organization.schemas import NullGroupFile


@dataclass
class NullGroupResolution:
    auto_assigned: Dict[int, str] = field(default_factory=dict)
    needs_resolution: List[NullGroupFile] = field(default_factory=list)


class NullGroupResolver:
    """
    Looks at the nearest named page before and after each unnamed page.

    Both neighbours named and different -> needs resolution.
    Only one side named, or both the same -> take that group.
    No named neighbour at all -> needs resolution without context.
    """

    def resolve(
        self,
        group_by_page: Dict[int, str],
        file_ids: Optional[Dict[int, int]] = None,
    ) -> NullGroupResolution:
        file_ids = file_ids or {}
        pages = sorted(group_by_page)
        result = NullGroupResolution()

        for index, page_number in enumerate(pages):
            if group_by_page[page_number]:
                continue

            previous_group = self._nearest(group_by_page, reversed(pages[:index]))
            next_group = self._nearest(group_by_page, pages[index + 1 :])

            if previous_group and next_group and previous_group != next_group:
                result.needs_resolution.append(
                    NullGroupFile(
                        file_id=file_ids.get(page_number),
                        page_number=page_number,
                        previous_group=previous_group,
                        next_group=next_group,
                    )
                )
            elif previous_group or next_group:
                result.auto_assigned[page_number] = previous_group or next_group
            else:
                result.needs_resolution.append(
                    NullGroupFile(
                        file_id=file_ids.get(page_number), page_number=page_number
                    )
                )

        return result

    @staticmethod
    def _nearest(group_by_page: Dict[int, str], pages) -> Optional[str]:
        for page_number in pages:
            if group_by_page[page_number]:
                return group_by_page[page_number]
        return None
