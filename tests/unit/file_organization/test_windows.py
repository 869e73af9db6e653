"""Unit tests for comparison window planning."""

import pytest

from src.task_orchestrator.enums import FileOrganizationOperation
from src.task_orchestrator.exceptions import ValidationError
from src.task_orchestrator.file_organization.schemas import WindowFile
from src.task_orchestrator.file_organization.windows import (
    WindowProcessService,
    plan_windows,
    validate_window_parameters,
)
from tests.fixtures.db.task_states import create_task_run


def _files(count):
    return [WindowFile(file_id=100 + page, page_number=page) for page in range(1, count + 1)]


def _ranges(windows):
    return [window.window_range for window in windows]


class TestPlanWindows:
    """Tests for plan_windows."""

    def test_single_page_overlap(self):
        assert _ranges(plan_windows(_files(10), 5, 1)) == ["1-5", "5-9", "9-10"]

    def test_two_page_overlap(self):
        assert _ranges(plan_windows(_files(10), 5, 2)) == ["1-5", "4-8", "7-10"]

    def test_exact_fit_is_one_window(self):
        assert _ranges(plan_windows(_files(5), 5, 1)) == ["1-5"]

    def test_single_file_has_nothing_to_compare(self):
        assert plan_windows(_files(1), 5, 1) == []

    def test_no_files(self):
        assert plan_windows([], 5, 1) == []

    def test_files_are_ordered_by_page_number(self):
        files = list(reversed(_files(6)))

        windows = plan_windows(files, 3, 1)

        assert _ranges(windows) == ["1-3", "3-5", "5-6"]
        assert [f.page_number for f in windows[0].window_files] == [1, 2, 3]

    def test_consecutive_windows_share_overlap_pages(self):
        windows = plan_windows(_files(20), 6, 2)

        for previous, current in zip(windows, windows[1:]):
            shared = {f.page_number for f in previous.window_files} & {
                f.page_number for f in current.window_files
            }
            assert len(shared) == 2

    def test_every_page_is_covered(self):
        windows = plan_windows(_files(23), 5, 1)

        covered = {f.page_number for w in windows for f in w.window_files}
        assert covered == set(range(1, 24))


class TestValidateWindowParameters:
    @pytest.mark.parametrize(
        "window_size, overlap",
        [(1, 0), (101, 1), (5, 0), (5, 5), (5, 6)],
    )
    def test_rejects_invalid_parameters(self, window_size, overlap):
        with pytest.raises(ValidationError):
            validate_window_parameters(window_size, overlap)

    def test_accepts_valid_parameters(self):
        validate_window_parameters(2, 1)
        validate_window_parameters(100, 99)


class TestWindowProcessService:
    def test_creates_one_process_per_window(self, db_session):
        task_run = create_task_run(db_session, page_count=10)

        processes = WindowProcessService(db_session).create_window_processes(
            task_run, window_size=5, overlap=1
        )
        db_session.commit()

        assert len(processes) == 3
        assert all(
            p.operation == FileOrganizationOperation.COMPARISON_WINDOW.value
            for p in processes
        )
        assert [(p.meta["window_start"], p.meta["window_end"]) for p in processes] == [
            (1, 5),
            (5, 9),
            (9, 10),
        ]
        assert processes[0].name == "Comparison Window (pages 1-5)"

    def test_window_files_reference_input_artifacts(self, db_session):
        task_run = create_task_run(db_session, page_count=3)
        service = WindowProcessService(db_session)

        files = service.files_for_task_run(task_run)

        assert [f.page_number for f in files] == [1, 2, 3]
        assert len({f.file_id for f in files}) == 3
