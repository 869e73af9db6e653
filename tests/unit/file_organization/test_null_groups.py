"""Unit tests for NullGroupResolver."""

from src.task_orchestrator.file_organization.null_groups import NullGroupResolver


class TestNullGroupResolver:
    def test_same_neighbours_auto_assign(self):
        result = NullGroupResolver().resolve({1: "A", 2: "", 3: "A"})

        assert result.auto_assigned == {2: "A"}
        assert result.needs_resolution == []

    def test_different_neighbours_need_resolution(self):
        result = NullGroupResolver().resolve({1: "A", 2: "", 3: "B"}, {2: 42})

        assert result.auto_assigned == {}
        [unresolved] = result.needs_resolution
        assert unresolved.file_id == 42
        assert (unresolved.previous_group, unresolved.next_group) == ("A", "B")

    def test_only_one_named_side_takes_that_group(self):
        result = NullGroupResolver().resolve({1: "", 2: "", 3: "B"})

        assert result.auto_assigned == {1: "B", 2: "B"}

    def test_nearest_named_page_is_used(self):
        result = NullGroupResolver().resolve({1: "A", 2: "", 3: "", 4: "A"})

        assert result.auto_assigned == {2: "A", 3: "A"}

    def test_no_named_neighbour_needs_resolution_without_context(self):
        result = NullGroupResolver().resolve({1: "", 2: ""})

        assert result.auto_assigned == {}
        assert [(f.page_number, f.previous_group, f.next_group) for f in result.needs_resolution] == [
            (1, None, None),
            (2, None, None),
        ]
