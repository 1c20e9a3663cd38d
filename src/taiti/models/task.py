"""Data models for tracker tasks and their classification."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field

from taiti.models.scenario import ScenarioSet


UNASSIGNED_OWNER = "Unassigned"
UNKNOWN_OWNER = "Unassigned/Unknown"


class TaskBucket(str, Enum):
    """Mutually exclusive classification of a task within one pass."""

    MINE_UNSTARTED = "mine_unstarted"
    OTHERS_PENDING = "others_pending"
    NO_SCENARIO = "no_scenario"


class ListState(str, Enum):
    """Semantic state of a tracker list or workflow state."""

    UNSTARTED = "unstarted"
    STARTED = "started"
    UNMAPPED = "unmapped"


class TaskRef(BaseModel):
    """Lightweight reference to a task."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Tracker item id")
    name: str = Field(..., description="Item title")
    url: str = Field("", description="Link to the item on the tracker")


class ConflictDetail(BaseModel):
    """Scenario lines of one file that the target shares with another task."""

    file_path: str = Field(..., description="Scenario file both tasks touch")
    lines: List[int] = Field(default_factory=list, description="Shared line numbers")
    other_task_id: str = Field(..., description="Id of the other task")
    other_task_name: str = Field(..., description="Name of the other task")


class Task(BaseModel):
    """A tracker work item together with its scenarios and conflict outputs."""

    id: str = Field(..., description="Tracker item id")
    name: str = Field(..., description="Item title")
    url: str = Field("", description="Link to the item on the tracker")
    list_id: str = Field("", description="Tracker list / workflow state id")
    list_name: str = Field("", description="Human readable list / state name")
    description: str = Field("", description="Item description")
    assignee_ids: Set[str] = Field(default_factory=set, description="Ids of assigned members")
    label_names: List[str] = Field(default_factory=list, description="Label names on the item")
    owner_name: str = Field(UNASSIGNED_OWNER, description="Display name of the task owner")

    # None means no scenario set was ever attached
    scenarios: Optional[ScenarioSet] = Field(None, description="Selected scenarios, if any")
    scenario_error: Optional[str] = Field(None, description="Why reading scenarios failed, if it did")

    # Recomputed on every scoring pass, never persisted
    conflict_rate: float = Field(0.0, ge=0.0, description="Displayed conflict rate in percent")
    conflicting_tasks: List[TaskRef] = Field(default_factory=list, description="Tasks sharing scenarios")
    conflict_details: List[ConflictDetail] = Field(
        default_factory=list, description="Shared scenario lines per other task and file"
    )

    @property
    def has_scenarios(self) -> bool:
        return self.scenarios is not None

    def ref(self) -> TaskRef:
        return TaskRef(id=self.id, name=self.name, url=self.url)

    def is_assigned_to(self, member_id: Optional[str]) -> bool:
        return member_id is not None and member_id in self.assignee_ids

    def is_solely_owned_by(self, member_id: Optional[str]) -> bool:
        return member_id is not None and self.assignee_ids == {member_id}

    def reset_conflicts(self) -> None:
        self.conflict_rate = 0.0
        self.conflicting_tasks = []
        self.conflict_details = []


class ClassificationSnapshot(BaseModel):
    """Immutable result of one classification pass."""

    model_config = ConfigDict(frozen=True)

    mine_unstarted: Tuple[Task, ...] = Field(default_factory=tuple)
    others_pending: Tuple[Task, ...] = Field(default_factory=tuple)
    no_scenario: Tuple[Task, ...] = Field(default_factory=tuple)
    skipped_ids: Tuple[str, ...] = Field(
        default_factory=tuple, description="Items outside every bucket (done lists, own started work)"
    )
    errors: Dict[str, str] = Field(default_factory=dict, description="Scenario read errors per item id")
    user_id: Optional[str] = Field(None, description="Member id the pass classified for")
    created_at: datetime = Field(default_factory=datetime.now)

    def as_tuple(self) -> Tuple[List[Task], List[Task], List[Task]]:
        """Return (mine_unstarted, others_pending, no_scenario) as lists."""
        return (list(self.mine_unstarted), list(self.others_pending), list(self.no_scenario))

    def bucket(self, bucket: TaskBucket) -> Tuple[Task, ...]:
        if bucket is TaskBucket.MINE_UNSTARTED:
            return self.mine_unstarted
        if bucket is TaskBucket.OTHERS_PENDING:
            return self.others_pending
        return self.no_scenario

    def bucket_of(self, task_id: str) -> Optional[TaskBucket]:
        for bucket in TaskBucket:
            if any(task.id == task_id for task in self.bucket(bucket)):
                return bucket
        return None

    def all_tasks(self) -> List[Task]:
        return [*self.mine_unstarted, *self.others_pending, *self.no_scenario]

    def find(self, task_id: str) -> Optional[Task]:
        for task in self.all_tasks():
            if task.id == task_id:
                return task
        return None
