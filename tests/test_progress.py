"""Tests for core/progress.py."""

import pytest

from core.progress import STEP_LABELS, TOTAL_STEPS, ProgressTracker, percent_for


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_percent_is_rounded_share_of_twelve_steps():
    assert percent_for(0) == 0
    assert percent_for(1) == 8
    assert percent_for(6) == 50
    assert percent_for(TOTAL_STEPS) == 100


def test_start_step_records_default_label():
    tracker = ProgressTracker()
    step = tracker.start_step(2)
    assert step.label == STEP_LABELS[2]
    assert tracker.current is step


def test_start_step_rejects_out_of_range_index():
    tracker = ProgressTracker()
    with pytest.raises(ValueError):
        tracker.start_step(13)
    with pytest.raises(ValueError):
        tracker.start_step(-1)


def test_lower_index_is_permitted_and_elapsed_never_rolls_back():
    clock = FakeClock()
    tracker = ProgressTracker(clock=clock)

    clock.now += 1.0
    tracker.start_step(7)
    first = tracker.elapsed_ms()

    clock.now += 0.5
    tracker.start_step(3)
    assert tracker.get_progress()["step"] == 3
    assert tracker.elapsed_ms() >= first
    assert [s.index for s in tracker.steps] == [7, 3]


def test_get_progress_reports_terminal_step():
    clock = FakeClock()
    tracker = ProgressTracker(clock=clock)
    tracker.start_step(TOTAL_STEPS, "done")
    clock.now += 2

    progress = tracker.get_progress()
    assert progress == {
        "step": TOTAL_STEPS,
        "percent": 100,
        "elapsed_ms": 2000,
        "label": "done",
        "terminal": True,
    }


def test_get_progress_before_any_step():
    progress = ProgressTracker().get_progress()
    assert progress["step"] == 0
    assert progress["terminal"] is False
