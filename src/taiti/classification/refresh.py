"""Background refresh of the board snapshot."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Dict, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from taiti.classification.classifier import TaskClassifier
from taiti.conflicts.scorer import ConflictScorer, ScoreResult
from taiti.errors import CancelledError
from taiti.models.task import ClassificationSnapshot
from taiti.progress import CancellationToken, ProgressReporter

logger = structlog.get_logger(__name__)


class BoardSnapshot(BaseModel):
    """Classification of a board plus the scores of the user's unstarted tasks."""

    model_config = ConfigDict(frozen=True)

    scope_id: str
    classification: ClassificationSnapshot
    scores: Dict[str, ScoreResult] = Field(default_factory=dict, description="Score per MineUnstarted task id")
    refreshed_at: datetime = Field(default_factory=datetime.now)


class BoardRefresher:
    """Runs classification and scoring passes off the caller's thread.

    At most one pass runs at a time. The published snapshot only changes
    when a pass completes; cancelled or failed passes leave it untouched.
    """

    def __init__(
        self,
        classifier: TaskClassifier,
        scorer: Optional[ConflictScorer] = None,
        current_user_id: Optional[str] = None,
    ) -> None:
        self.classifier = classifier
        self.scorer = scorer or ConflictScorer()
        self.current_user_id = current_user_id

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="taiti-refresh")
        self._lock = threading.Lock()
        self._snapshot: Optional[BoardSnapshot] = None
        self._running: Optional[Future] = None
        self._token: Optional[CancellationToken] = None

    @property
    def snapshot(self) -> Optional[BoardSnapshot]:
        with self._lock:
            return self._snapshot

    @property
    def running(self) -> bool:
        with self._lock:
            return self._running is not None and not self._running.done()

    def refresh(self, scope_id: str, progress: Optional[ProgressReporter] = None) -> Future:
        """Start a pass, or return the one already running.

        Args:
            scope_id: Board / project id
            progress: Optional reporter; its token is used for cancellation

        Returns:
            Future resolving to the new BoardSnapshot
        """
        with self._lock:
            if self._running is not None and not self._running.done():
                return self._running

            reporter = progress or ProgressReporter()
            self._token = reporter.token
            future = self._executor.submit(self._run_pass, scope_id, reporter)
            self._running = future
            return future

    def cancel(self) -> bool:
        """Request cancellation of the running pass.

        Returns:
            True if a pass was running
        """
        with self._lock:
            if self._running is None or self._running.done() or self._token is None:
                return False
            self._token.cancel()
            return True

    def build_snapshot(self, scope_id: str, progress: ProgressReporter) -> BoardSnapshot:
        """Classify a board and score its MineUnstarted tasks."""
        classification = self.classifier.classify(scope_id, self.current_user_id, progress)

        population = list(classification.others_pending)
        scores: Dict[str, ScoreResult] = {}
        for task in classification.mine_unstarted:
            progress.check_cancelled("scoring")
            scores[task.id] = self.scorer.apply(task, population, progress)

        return BoardSnapshot(scope_id=scope_id, classification=classification, scores=scores)

    def _run_pass(self, scope_id: str, progress: ProgressReporter) -> BoardSnapshot:
        try:
            snapshot = self.build_snapshot(scope_id, progress)
        except CancelledError:
            logger.info("refresh_cancelled", scope_id=scope_id)
            raise
        except Exception as e:
            logger.error("refresh_failed", scope_id=scope_id, error=str(e))
            raise

        with self._lock:
            self._snapshot = snapshot
        logger.info("refresh_published", scope_id=scope_id, scored=len(snapshot.scores))
        return snapshot

    def shutdown(self, wait: bool = True) -> None:
        self.cancel()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "BoardRefresher":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()
