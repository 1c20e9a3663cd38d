"""Unit tests for the background board refresher."""

import pytest

from taiti.classification import BoardRefresher, TaskClassifier
from taiti.errors import CancelledError, TrackerConnectivityError
from taiti.models import ScenarioSet
from taiti.progress import ProgressReporter


def _populate(tracker):
    tracker.add_item("a", "TODO", ["me"])
    tracker.add_item("b", "DOING", ["bob"])
    tracker.add_item("c", "TODO", ["carol"])
    tracker.attach_scenarios("a", ScenarioSet(files={"f.feature": [12, 20]}))
    tracker.attach_scenarios("b", ScenarioSet(files={"f.feature": [12]}))
    tracker.attach_scenarios("c", ScenarioSet(files={"h.feature": [1]}))


def test_refresh_publishes_scored_snapshot(tracker):
    """Test a full pass classifies and scores my unstarted tasks."""
    _populate(tracker)

    with BoardRefresher(TaskClassifier(tracker), current_user_id="me") as refresher:
        snapshot = refresher.refresh("board").result(timeout=5)

        assert refresher.snapshot is snapshot
        assert set(snapshot.scores) == {"a"}
        assert snapshot.scores["a"].rate == 50
        assert snapshot.classification.find("a").conflict_rate == 50.0


def test_second_refresh_returns_running_future(blocking_tracker):
    """Test that only one pass runs at a time."""
    tracker = blocking_tracker
    _populate(tracker)

    with BoardRefresher(TaskClassifier(tracker), current_user_id="me") as refresher:
        first = refresher.refresh("board")
        assert tracker.entered.wait(timeout=5)

        second = refresher.refresh("board")
        assert second is first
        assert refresher.running

        tracker.release.set()
        first.result(timeout=5)
        assert not refresher.running


def test_cancelled_pass_keeps_previous_snapshot(blocking_tracker):
    """Test that cancellation leaves the published snapshot untouched."""
    tracker = blocking_tracker
    _populate(tracker)
    tracker.release.set()

    with BoardRefresher(TaskClassifier(tracker), current_user_id="me") as refresher:
        previous = refresher.refresh("board").result(timeout=5)

        tracker.release.clear()
        tracker.entered.clear()
        future = refresher.refresh("board", ProgressReporter())
        assert tracker.entered.wait(timeout=5)
        assert refresher.cancel() is True
        tracker.release.set()

        with pytest.raises(CancelledError):
            future.result(timeout=5)
        assert refresher.snapshot is previous


def test_failed_pass_keeps_previous_snapshot(tracker):
    """Test that a connectivity failure does not publish anything."""
    tracker.fail_on.add("list_items")

    with BoardRefresher(TaskClassifier(tracker), current_user_id="me") as refresher:
        future = refresher.refresh("board")

        with pytest.raises(TrackerConnectivityError):
            future.result(timeout=5)
        assert refresher.snapshot is None


def test_cancel_without_running_pass(tracker):
    """Test cancel is a no-op when idle."""
    with BoardRefresher(TaskClassifier(tracker)) as refresher:
        assert refresher.cancel() is False
