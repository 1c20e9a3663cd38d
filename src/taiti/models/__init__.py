"""Data models for tasks, scenarios and configuration."""

from taiti.models.config import BucketRules, TaitiSettings
from taiti.models.scenario import ScenarioReference, ScenarioSet
from taiti.models.task import (
    ClassificationSnapshot,
    ConflictDetail,
    ListState,
    Task,
    TaskBucket,
    TaskRef,
)

__all__ = [
    "ScenarioReference",
    "ScenarioSet",
    "Task",
    "TaskRef",
    "TaskBucket",
    "ListState",
    "ConflictDetail",
    "ClassificationSnapshot",
    "BucketRules",
    "TaitiSettings",
]
