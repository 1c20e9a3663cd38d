"""Pluggable code-level conflict analysis."""

from abc import ABC, abstractmethod

from taiti.models.task import Task


class CodeConflictAnalyzer(ABC):
    """Estimates how likely two tasks are to touch the same code.

    Implementations typically map each task's scenarios to the code they
    exercise and compare the two footprints.
    """

    @abstractmethod
    def compute_pairwise_risk(self, task_a: Task, task_b: Task) -> float:
        """Compute the conflict risk of a pair of tasks.

        Args:
            task_a: Target task
            task_b: Other task

        Returns:
            Risk between 0.0 and 1.0

        Raises:
            DeepAnalysisError: If the pair cannot be analyzed
        """
        pass
