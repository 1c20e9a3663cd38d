"""Conflict-risk scoring of a task against the work of others."""

import math
from typing import List, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, Field

from taiti.conflicts.analyzer import CodeConflictAnalyzer
from taiti.errors import CancelledError, DeepAnalysisError
from taiti.models.task import ConflictDetail, Task, TaskRef
from taiti.progress import ProgressReporter

logger = structlog.get_logger(__name__)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


class ScoreResult(BaseModel):
    """Conflict score of one target task."""

    rate: int = Field(0, ge=0, description="Displayed conflict rate in percent")
    overlap_rate: int = Field(0, ge=0, description="Share of others sharing a scenario, in percent")
    deep_rate: Optional[int] = Field(None, description="Mean pairwise code risk in percent, if analyzed")
    conflicting_tasks: List[TaskRef] = Field(default_factory=list)
    details: List[ConflictDetail] = Field(default_factory=list)
    failed_pairs: List[str] = Field(
        default_factory=list, description="Ids of other tasks whose deep analysis failed"
    )


class RankedConflict(BaseModel):
    """One other task's pairwise conflict with a target."""

    task: TaskRef
    rate: int = Field(..., ge=0, le=100)
    shared_references: int = Field(0, ge=0)


def _others_with_scenarios(target: Task, population: Sequence[Task]) -> List[Task]:
    return [
        other
        for other in population
        if other.id != target.id and other.scenarios is not None and not other.scenarios.is_empty()
    ]


class ConflictScorer:
    """Scores tasks by scenario overlap and, optionally, by deep code analysis."""

    def __init__(self, analyzer: Optional[CodeConflictAnalyzer] = None) -> None:
        self.analyzer = analyzer

    def _pair_risk(self, target: Task, other: Task) -> float:
        """Deep risk of one pair; raises DeepAnalysisError on any failure."""
        try:
            risk = self.analyzer.compute_pairwise_risk(target, other)
        except DeepAnalysisError:
            raise
        except CancelledError:
            raise
        except Exception as e:
            raise DeepAnalysisError(target.id, other.id, str(e)) from e

        try:
            risk = float(risk)
        except (TypeError, ValueError) as e:
            raise DeepAnalysisError(target.id, other.id, f"non-numeric risk {risk!r}") from e
        if math.isnan(risk) or not 0.0 <= risk <= 1.0:
            raise DeepAnalysisError(target.id, other.id, f"risk {risk} outside [0, 1]")
        return risk

    def _deep_risks(
        self,
        target: Task,
        others: List[Task],
        progress: Optional[ProgressReporter],
    ) -> Tuple[List[float], List[str]]:
        risks: List[float] = []
        failed: List[str] = []
        for index, other in enumerate(others):
            if progress is not None:
                progress.check_cancelled(f"deep analysis of {target.id}")
                progress.update(index / len(others), other.name)
            try:
                risks.append(self._pair_risk(target, other))
            except DeepAnalysisError as e:
                logger.warning("deep_analysis_failed", task_id=target.id, other_id=other.id, error=str(e))
                risks.append(0.0)
                failed.append(other.id)
        if progress is not None and others:
            progress.update(1.0, target.name)
        return risks, failed

    def score(
        self,
        target: Task,
        population: Sequence[Task],
        progress: Optional[ProgressReporter] = None,
    ) -> ScoreResult:
        """Score a target task against a population of other tasks.

        Args:
            target: Task to score
            population: Other tasks; an entry with the target's id is ignored
            progress: Optional reporter, checked for cancellation between pairs

        Returns:
            ScoreResult for the target

        Raises:
            CancelledError: If cancellation was requested during deep analysis
        """
        if target.scenarios is None or target.scenarios.is_empty():
            return ScoreResult(deep_rate=0 if self.analyzer else None)

        others = _others_with_scenarios(target, population)
        conflicting: List[TaskRef] = []
        details: List[ConflictDetail] = []

        for other in others:
            shared = target.scenarios.shared_with(other.scenarios)
            if shared.is_empty():
                continue
            conflicting.append(other.ref())
            for path in shared.file_paths():
                details.append(
                    ConflictDetail(
                        file_path=path,
                        lines=shared.lines_for(path),
                        other_task_id=other.id,
                        other_task_name=other.name,
                    )
                )

        overlap_rate = round_half_up(len(conflicting) / len(others) * 100) if others else 0

        deep_rate: Optional[int] = None
        failed: List[str] = []
        if self.analyzer is not None:
            risks, failed = self._deep_risks(target, others, progress)
            deep_rate = round_half_up(sum(risks) / len(risks) * 100) if risks else 0

        result = ScoreResult(
            rate=deep_rate if deep_rate is not None else overlap_rate,
            overlap_rate=overlap_rate,
            deep_rate=deep_rate,
            conflicting_tasks=conflicting,
            details=details,
            failed_pairs=failed,
        )
        logger.debug(
            "task_scored",
            task_id=target.id,
            rate=result.rate,
            conflicting=len(conflicting),
            others=len(others),
        )
        return result

    def apply(
        self,
        target: Task,
        population: Sequence[Task],
        progress: Optional[ProgressReporter] = None,
    ) -> ScoreResult:
        """Score a target and store the outputs on it."""
        result = self.score(target, population, progress)
        target.conflict_rate = float(result.rate)
        target.conflicting_tasks = list(result.conflicting_tasks)
        target.conflict_details = list(result.details)
        return result

    def rank(
        self,
        target: Task,
        population: Sequence[Task],
        progress: Optional[ProgressReporter] = None,
    ) -> List[RankedConflict]:
        """Rank other tasks by their pairwise conflict with the target.

        Without an analyzer a pair's rate is the share of the target's
        scenarios the other task also selected. Pairs rated 0 are left out.
        """
        if target.scenarios is None or target.scenarios.is_empty():
            return []

        total = len(target.scenarios)
        ranked: List[RankedConflict] = []
        for other in _others_with_scenarios(target, population):
            if progress is not None:
                progress.check_cancelled(f"ranking conflicts of {target.id}")
            shared = len(target.scenarios.shared_with(other.scenarios))
            if self.analyzer is not None:
                try:
                    rate = round_half_up(self._pair_risk(target, other) * 100)
                except DeepAnalysisError as e:
                    logger.warning("deep_analysis_failed", task_id=target.id, other_id=other.id, error=str(e))
                    rate = 0
            else:
                rate = round_half_up(shared / total * 100)
            if rate > 0:
                ranked.append(RankedConflict(task=other.ref(), rate=rate, shared_references=shared))

        ranked.sort(key=lambda entry: (-entry.rate, entry.task.name, entry.task.id))
        return ranked

    @staticmethod
    def rank_tasks(tasks: Sequence[Task]) -> List[Task]:
        """Order tasks by descending conflict rate, then name and id."""
        return sorted(tasks, key=lambda task: (-task.conflict_rate, task.name, task.id))
