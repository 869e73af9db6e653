"""Unit tests for cross-window conflict detection."""

from itertools import permutations

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.task_orchestrator.file_organization.aggregator import (
    LoadedWindow,
    WindowComparisonAggregator,
    load_windows,
)
from src.task_orchestrator.file_organization.schemas import FileAssignment
from tests.fixtures.db.task_states import create_task_run, create_window_process
from tests.fixtures.windows import make_window


class TestConflictReport:
    """Tests for WindowComparisonAggregator.conflict_report."""

    def test_disagreeing_windows_conflict(self):
        w1 = make_window(1, 5, {5: "GroupA"})
        w2 = make_window(5, 9, {5: "GroupB"})

        report = WindowComparisonAggregator([w1, w2]).conflict_report()

        assert report.conflict_pages == [5]
        names = {a.group_name for a in report.conflicts[5]}
        ranges = {a.window_range for a in report.conflicts[5]}
        assert names == {"GroupA", "GroupB"}
        assert ranges == {"1-5", "5-9"}

    def test_agreeing_windows_do_not_conflict(self):
        w1 = make_window(1, 5, {5: "GroupA"})
        w2 = make_window(5, 9, {5: "GroupA"})

        report = WindowComparisonAggregator([w1, w2]).conflict_report()

        assert report.conflicts == {}
        assert 5 in report.consistent

    def test_null_group_is_a_distinct_name(self):
        w1 = make_window(1, 5, {5: "GroupA"})
        w2 = make_window(5, 9, {5: None})

        report = WindowComparisonAggregator([w1, w2]).conflict_report()

        assert report.conflict_pages == [5]
        assert {c.group_name for c in report.candidates(5)} == {"GroupA", ""}

    def test_candidates_ranked_by_average_confidence(self):
        w1 = make_window(1, 5, {5: "GroupA"}, {5: 2})
        w2 = make_window(5, 9, {5: "GroupB"}, {5: 5})
        w3 = make_window(4, 8, {5: "GroupA"}, {5: 4})

        candidates = WindowComparisonAggregator([w1, w2, w3]).conflict_report().candidates(5)

        assert [(c.group_name, c.avg_confidence) for c in candidates] == [
            ("GroupB", 5.0),
            ("GroupA", 3.0),
        ]

    def test_missing_confidence_uses_default(self):
        window = LoadedWindow(
            window_start=1,
            window_end=2,
            files=[FileAssignment(page_number=1, group_name="GroupA")],
        )

        assignments = WindowComparisonAggregator([window]).page_analysis(1)

        assert assignments[0].confidence == 3

    def test_three_overlapping_windows_scenario(self):
        w1 = make_window(1, 10, {p: "Invoices" for p in range(1, 11)})
        w2_groups = {p: "Receipts" for p in range(8, 16)}
        w2_groups[8] = "Invoices"
        w2_groups[9] = "Invoices"
        w2 = make_window(8, 15, w2_groups)
        w3 = make_window(13, 20, {p: "Receipts" for p in range(13, 21)})

        report = WindowComparisonAggregator([w1, w2, w3]).conflict_report()

        assert report.conflict_pages == [10]
        assert {c.group_name for c in report.candidates(10)} == {"Invoices", "Receipts"}


class TestOrderIndependence:
    @pytest.fixture
    def windows(self):
        return [
            make_window(1, 5, {1: "A", 2: "A", 3: "A", 4: "B", 5: "B"}, process_id=1),
            make_window(4, 8, {4: "A", 5: "B", 6: "B", 7: "C", 8: "C"}, process_id=2),
            make_window(7, 10, {7: "C", 8: "D", 9: "D", 10: "D"}, process_id=3),
        ]

    def test_every_permutation_produces_the_same_report(self, windows):
        reports = [
            WindowComparisonAggregator(list(order)).conflict_report()
            for order in permutations(windows)
        ]

        first = reports[0]
        assert first.conflict_pages == [4, 8]
        for report in reports[1:]:
            assert report.conflicts == first.conflicts
            assert report.consistent == first.consistent


class TestGroupViews:
    def test_group_pages_is_case_insensitive(self):
        w1 = make_window(1, 3, {1: "Invoices", 2: "Invoices", 3: "Receipts"})
        w2 = make_window(3, 5, {3: "invoices", 4: "Receipts", 5: "Receipts"})

        pages = WindowComparisonAggregator([w1, w2]).group_pages("INVOICES")

        assert sorted(pages) == [1, 2, 3]

    def test_load_windows_reads_process_outputs(self, db_session):
        task_run = create_task_run(db_session)
        create_window_process(db_session, task_run, 1, 3, groups={1: "A", 2: "A", 3: "B"})
        create_window_process(db_session, task_run, 3, 5, groups={3: "B"}, state="running")
        db_session.refresh(task_run)

        windows = load_windows(db_session, task_run)

        assert [w.window_range for w in windows] == ["1-3", "3-5"]
        assert [f.group_name for f in windows[0].files] == ["A", "A", "B"]
        assert windows[0].status == "Completed"
        assert windows[1].status == "Running"
        assert windows[0].file_ids == {1: 1001, 2: 1002, 3: 1003}

    def test_load_windows_keeps_adjacency_scores(self, db_session):
        task_run = create_task_run(db_session)
        create_window_process(
            db_session, task_run, 1, 3, groups={1: "A", 2: "A", 3: "A"}, adjacency={2: 4, 3: 5}
        )
        db_session.refresh(task_run)

        windows = load_windows(db_session, task_run)

        assert [f.belongs_to_previous for f in windows[0].files] == [None, 4, 5]


class TestFileAssignment:
    def test_adjacency_score_accepts_zero_to_five(self):
        file = FileAssignment.model_validate(
            {"page_number": 2, "group_name": "Invoices", "group_name_confidence": 2, "belongs_to_previous": 4}
        )

        assert file.belongs_to_previous == 4

    def test_adjacency_score_above_five_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            FileAssignment.model_validate({"page_number": 2, "belongs_to_previous": 6})
