"""Unit tests for scenario and task models."""

import pytest
from pydantic import ValidationError

from taiti.models import ClassificationSnapshot, ScenarioReference, ScenarioSet, Task, TaskBucket


def test_add_deduplicates_references():
    """Test that a (file, line) pair is stored once."""
    scenario_set = ScenarioSet()

    assert scenario_set.add("a.feature", 3) is True
    assert scenario_set.add("a.feature", 3) is False
    assert scenario_set.add_lines("a.feature", [3, 5, 5, 7]) == 2

    assert scenario_set.lines_for("a.feature") == [3, 5, 7]
    assert len(scenario_set) == 3


def test_add_rejects_non_positive_lines():
    """Test that line numbers must be positive."""
    with pytest.raises(ValueError):
        ScenarioSet().add("a.feature", 0)

    with pytest.raises(ValidationError):
        ScenarioSet(files={"a.feature": [1, -2]})


def test_constructor_dedupes_and_drops_empty_files():
    """Test validation of the files mapping."""
    scenario_set = ScenarioSet(files={"a.feature": [4, 4, 2], "b.feature": []})

    assert scenario_set.files == {"a.feature": [4, 2]}
    assert scenario_set.file_paths() == ["a.feature"]


def test_remove_drops_empty_file_entry():
    """Test removing the last line of a file removes the file."""
    scenario_set = ScenarioSet(files={"a.feature": [1, 2], "b.feature": [9]})

    assert scenario_set.remove("b.feature", 9) is True
    assert scenario_set.remove("b.feature", 9) is False
    assert scenario_set.file_paths() == ["a.feature"]


def test_references_keep_file_order():
    """Test that references follow file insertion order."""
    scenario_set = ScenarioSet()
    scenario_set.add("z.feature", 2)
    scenario_set.add("a.feature", 1)
    scenario_set.add("z.feature", 1)

    assert [str(ref) for ref in scenario_set.references()] == ["z.feature:2", "z.feature:1", "a.feature:1"]
    assert ScenarioReference(file_path="z.feature", line=1) in scenario_set
    assert ScenarioReference(file_path="a.feature", line=2) not in scenario_set


def test_equality_ignores_order():
    """Test that sets holding the same references are equal."""
    first = ScenarioSet(files={"a.feature": [1, 2], "b.feature": [3]})
    second = ScenarioSet(files={"b.feature": [3], "a.feature": [2, 1]})

    assert first == second
    assert first != ScenarioSet(files={"a.feature": [1]})


def test_shared_with_is_symmetric():
    """Test that the shared references do not depend on argument order."""
    first = ScenarioSet(files={"f.feature": [12, 20], "g.feature": [1]})
    second = ScenarioSet(files={"f.feature": [12, 30], "h.feature": [1]})

    assert first.shared_with(second) == second.shared_with(first)
    assert first.shared_with(second).references() == [ScenarioReference(file_path="f.feature", line=12)]


def test_from_references_and_copy():
    """Test building from references and copying independently."""
    refs = [
        ScenarioReference(file_path="a.feature", line=5),
        ScenarioReference(file_path="a.feature", line=5),
        ScenarioReference(file_path="b.feature", line=1),
    ]
    scenario_set = ScenarioSet.from_references(refs)
    clone = scenario_set.copy_set()
    clone.add("c.feature", 1)

    assert len(scenario_set) == 2
    assert len(clone) == 3


def test_task_ownership_helpers():
    """Test assignment checks on tasks."""
    task = Task(id="1", name="Task", assignee_ids={"me", "you"})

    assert task.is_assigned_to("me")
    assert not task.is_solely_owned_by("me")
    assert not task.is_assigned_to(None)
    assert Task(id="2", name="Solo", assignee_ids={"me"}).is_solely_owned_by("me")


def test_snapshot_lookup():
    """Test finding tasks and their buckets in a snapshot."""
    mine = Task(id="1", name="Mine", scenarios=ScenarioSet(files={"a.feature": [1]}))
    other = Task(id="2", name="Other", scenarios=ScenarioSet(files={"a.feature": [1]}))
    bare = Task(id="3", name="Bare")

    snapshot = ClassificationSnapshot(mine_unstarted=(mine,), others_pending=(other,), no_scenario=(bare,))

    assert snapshot.bucket_of("2") is TaskBucket.OTHERS_PENDING
    assert snapshot.bucket_of("4") is None
    assert snapshot.find("3") is bare
    assert [task.id for task in snapshot.all_tasks()] == ["1", "2", "3"]
    assert snapshot.as_tuple() == ([mine], [other], [bare])


@pytest.mark.parametrize("path", ["", " a.feature", "a.feature ", '"a.feature"', "a.feature\r"])
def test_reference_rejects_untransferable_paths(path):
    """Test file path validation on single references."""
    with pytest.raises(ValidationError):
        ScenarioReference(file_path=path, line=1)
