"""Scenario persistence on the issue tracker."""

from taiti.sync.scenario_sync import SENTINEL_MARKER, PurgeReport, ScenarioSync
from taiti.sync.transfer import SCENARIO_FILE_NAME, TransferFormatError, is_scenario_attachment

__all__ = [
    "ScenarioSync",
    "PurgeReport",
    "SENTINEL_MARKER",
    "SCENARIO_FILE_NAME",
    "TransferFormatError",
    "is_scenario_attachment",
]
