"""Tests for the command-line interface."""

import pytest
from typer.testing import CliRunner

from taiti import cli
from taiti.models import ScenarioSet, TaitiSettings

runner = CliRunner()


@pytest.fixture
def connected(tracker, monkeypatch):
    """Route CLI commands to the in-memory tracker."""
    monkeypatch.setattr(cli, "_connect", lambda settings: (tracker, "board"))
    return tracker


def test_version():
    """Test version output."""
    result = runner.invoke(cli.app, ["version"])

    assert result.exit_code == 0
    assert "version" in result.stdout


def test_status_reports_user(connected):
    """Test status with a reachable tracker."""
    result = runner.invoke(cli.app, ["status"])

    assert result.exit_code == 0
    assert "Connected to board board as me" in result.stdout


def test_status_without_configuration(monkeypatch):
    """Test status when Trello is not configured."""
    for name in ("TAITI_TRELLO_API_KEY", "TAITI_TRELLO_TOKEN", "TAITI_TRELLO_BOARD"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(cli, "_load_settings", lambda: TaitiSettings(_env_file=None))

    result = runner.invoke(cli.app, ["status"])

    assert result.exit_code == 1
    assert "not configured" in result.stdout


def test_refresh_shows_buckets(connected):
    """Test refresh prints scored tasks."""
    connected.add_item("a", "TODO", ["me"], name="Login form")
    connected.add_item("b", "DOING", ["bob"], name="Login API")
    connected.attach_scenarios("a", ScenarioSet(files={"f.feature": [12]}))
    connected.attach_scenarios("b", ScenarioSet(files={"f.feature": [12]}))

    result = runner.invoke(cli.app, ["refresh"])

    assert result.exit_code == 0
    assert "Login form" in result.stdout
    assert "Owner" in result.stdout
    assert "100%" in result.stdout


def test_refresh_connectivity_failure(connected):
    """Test pass-level errors exit with code 1."""
    connected.fail_on.add("list_items")

    result = runner.invoke(cli.app, ["refresh"])

    assert result.exit_code == 1
    assert "Error" in result.stdout


def test_conflicts_ranks_others(connected):
    """Test the per-task conflict view."""
    connected.add_item("a", "TODO", ["me"], name="Login form")
    connected.add_item("b", "DOING", ["bob"], name="Login API")
    connected.add_item("c", "DOING", ["carol"], name="Cart")
    connected.attach_scenarios("a", ScenarioSet(files={"f.feature": [12, 20]}))
    connected.attach_scenarios("b", ScenarioSet(files={"f.feature": [12]}))
    connected.attach_scenarios("c", ScenarioSet(files={"h.feature": [1]}))

    result = runner.invoke(cli.app, ["conflicts", "a"])

    assert result.exit_code == 0
    assert "Login API" in result.stdout
    assert "50%" in result.stdout
    assert "Cart" not in result.stdout


def test_conflicts_unknown_task(connected):
    """Test an id that is not on the board."""
    result = runner.invoke(cli.app, ["conflicts", "zzz"])

    assert result.exit_code == 1


def test_scenarios_set_show_delete(connected, feature_repo):
    """Test the scenario commands against one task."""
    repo = str(feature_repo)

    result = runner.invoke(cli.app, ["scenarios", "set", "a", "features/login.feature:3", "--repo", repo])
    assert result.exit_code == 0
    assert "Saved 1 scenario" in result.stdout

    result = runner.invoke(cli.app, ["scenarios", "show", "a", "--repo", repo])
    assert result.exit_code == 0
    assert "Successful login" in result.stdout

    result = runner.invoke(cli.app, ["scenarios", "delete", "a"])
    assert result.exit_code == 0
    assert connected.markers("a") == []

    result = runner.invoke(cli.app, ["scenarios", "show", "a", "--repo", repo])
    assert "has no scenarios" in result.stdout


def test_scenarios_set_reports_orphan(connected, feature_repo):
    """Test the message for an inconsistent write."""
    connected.fail_on.update({"post_comment", "delete_attachment"})

    result = runner.invoke(
        cli.app, ["scenarios", "set", "a", "features/login.feature:3", "--repo", str(feature_repo)]
    )

    assert result.exit_code == 1
    assert "by hand" in result.stdout


def test_features_lists_scenarios(feature_repo):
    """Test listing feature files."""
    result = runner.invoke(cli.app, ["features", "--repo", str(feature_repo)])

    assert result.exit_code == 0
    assert "Add item" in result.stdout
