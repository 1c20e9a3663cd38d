"""Task classification and background refresh."""

from taiti.classification.classifier import TaskClassifier, task_from_raw_item
from taiti.classification.refresh import BoardRefresher, BoardSnapshot

__all__ = ["TaskClassifier", "task_from_raw_item", "BoardRefresher", "BoardSnapshot"]
