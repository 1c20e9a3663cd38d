"""Partitions tracker items into the three task buckets."""

from typing import Dict, List, Optional

import structlog

from taiti.errors import ItemScenarioReadError, TrackerConnectivityError
from taiti.models.config import BucketRules
from taiti.models.task import UNASSIGNED_OWNER, ClassificationSnapshot, ListState, Task, TaskBucket
from taiti.progress import ProgressReporter
from taiti.sync.scenario_sync import ScenarioSync
from taiti.tracker.base import RawItem, TrackerClient, TrackerError

logger = structlog.get_logger(__name__)


def _fallback_owner(item: RawItem) -> str:
    # trackers that do not resolve names still expose member ids
    return item.assignee_ids[0] if item.assignee_ids else UNASSIGNED_OWNER


def task_from_raw_item(item: RawItem) -> Task:
    """Convert a tracker item into a Task without scenarios."""
    return Task(
        id=item.id,
        name=item.name,
        url=item.url,
        list_id=item.state_id,
        list_name=item.state_name or "",
        description=item.description,
        assignee_ids=set(item.assignee_ids),
        label_names=list(item.label_names),
        owner_name=item.owner_name or _fallback_owner(item),
    )


class TaskClassifier:
    """Builds a ClassificationSnapshot from the items of a board.

    A pass only reads from the tracker.
    """

    def __init__(
        self,
        client: TrackerClient,
        sync: Optional[ScenarioSync] = None,
        rules: Optional[BucketRules] = None,
    ) -> None:
        self.client = client
        self.sync = sync or ScenarioSync(client)
        self.rules = rules or BucketRules()

    def candidate_bucket(self, task: Task, current_user_id: str) -> Optional[TaskBucket]:
        """Bucket a task belongs to before its scenarios are looked at.

        Returns:
            MINE_UNSTARTED or OTHERS_PENDING, or None if the task is skipped
        """
        state = self.rules.state_for(task.list_id, task.list_name or None)

        if state is ListState.UNSTARTED and task.is_assigned_to(current_user_id):
            return TaskBucket.MINE_UNSTARTED
        if state in (ListState.UNSTARTED, ListState.STARTED) and not task.is_solely_owned_by(current_user_id):
            return TaskBucket.OTHERS_PENDING
        return None

    def _resolve_user(self, current_user_id: Optional[str]) -> str:
        if current_user_id:
            return current_user_id
        try:
            return self.client.get_authenticated_user_id()
        except TrackerError as e:
            raise TrackerConnectivityError(f"Could not identify the current user: {e}") from e

    def classify(
        self,
        scope_id: str,
        current_user_id: Optional[str] = None,
        progress: Optional[ProgressReporter] = None,
    ) -> ClassificationSnapshot:
        """Run one classification pass.

        Args:
            scope_id: Board / project id
            current_user_id: Member to classify for; defaults to the
                authenticated user
            progress: Optional reporter, checked for cancellation before
                each item

        Returns:
            A new ClassificationSnapshot

        Raises:
            TrackerConnectivityError: If the items or the current user cannot
                be fetched
            CancelledError: If cancellation was requested; partial results
                are discarded
        """
        user_id = self._resolve_user(current_user_id)

        try:
            items = self.client.list_items(scope_id)
        except TrackerError as e:
            raise TrackerConnectivityError(f"Could not list items of {scope_id}: {e}") from e

        logger.info("classification_started", scope_id=scope_id, items=len(items), user_id=user_id)

        buckets: Dict[TaskBucket, List[Task]] = {bucket: [] for bucket in TaskBucket}
        skipped: List[str] = []
        errors: Dict[str, str] = {}

        for index, item in enumerate(items):
            if progress is not None:
                progress.check_cancelled("classification")
                progress.update(index / len(items), item.name)

            task = task_from_raw_item(item)
            candidate = self.candidate_bucket(task, user_id)
            if candidate is None:
                skipped.append(task.id)
                continue

            try:
                task.scenarios = self.sync.read(task.id)
            except ItemScenarioReadError as e:
                logger.warning("scenario_read_failed", item_id=task.id, error=str(e))
                task.scenario_error = str(e)
                errors[task.id] = str(e)

            bucket = candidate if task.scenarios is not None else TaskBucket.NO_SCENARIO
            buckets[bucket].append(task)

        if progress is not None:
            progress.update(1.0, "")

        snapshot = ClassificationSnapshot(
            mine_unstarted=tuple(buckets[TaskBucket.MINE_UNSTARTED]),
            others_pending=tuple(buckets[TaskBucket.OTHERS_PENDING]),
            no_scenario=tuple(buckets[TaskBucket.NO_SCENARIO]),
            skipped_ids=tuple(skipped),
            errors=errors,
            user_id=user_id,
        )
        logger.info(
            "classification_finished",
            scope_id=scope_id,
            mine_unstarted=len(snapshot.mine_unstarted),
            others_pending=len(snapshot.others_pending),
            no_scenario=len(snapshot.no_scenario),
            skipped=len(skipped),
            errors=len(errors),
        )
        return snapshot
