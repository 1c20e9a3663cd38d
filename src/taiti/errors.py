"""Error taxonomy for the synchronization and conflict-risk engine."""

from typing import Optional


class TaitiError(Exception):
    """Base exception for all engine errors."""
    pass


class TrackerConnectivityError(TaitiError):
    """Raised when the tracker cannot be reached or refuses the credentials.

    Fatal to a whole classification pass.
    """
    pass


class ItemScenarioReadError(TaitiError):
    """Raised when one item's scenario set cannot be fetched or parsed."""

    def __init__(self, item_id: str, message: str):
        self.item_id = item_id
        super().__init__(f"Could not read scenarios of item {item_id}: {message}")


class ScenarioWriteError(TaitiError):
    """Raised when a scenario write failed without leaving orphaned data.

    Attributes:
        item_id: Item the write targeted
        stage: Step that failed ("upload" or "comment")
        rolled_back: True if an uploaded attachment was removed again
    """

    def __init__(self, item_id: str, stage: str, message: str, rolled_back: bool = False):
        self.item_id = item_id
        self.stage = stage
        self.rolled_back = rolled_back
        super().__init__(f"Writing scenarios of item {item_id} failed at {stage}: {message}")


class ScenarioWriteInconsistentError(TaitiError):
    """Raised when the compensating delete of a write failed.

    The item is left with an attachment that has no marker comment and
    needs manual cleanup, so handlers of ScenarioWriteError must not catch it.
    """

    def __init__(self, item_id: str, attachment_id: str, message: str):
        self.item_id = item_id
        self.attachment_id = attachment_id
        super().__init__(
            f"Item {item_id} is inconsistent: attachment {attachment_id} was uploaded "
            f"but its marker comment could not be posted and removing it failed: {message}"
        )


class DeepAnalysisError(TaitiError):
    """Raised when one pairwise code-conflict computation fails."""

    def __init__(self, task_a_id: str, task_b_id: str, message: str):
        self.task_a_id = task_a_id
        self.task_b_id = task_b_id
        super().__init__(f"Deep analysis of {task_a_id} vs {task_b_id} failed: {message}")


class CancelledError(TaitiError):
    """Raised when a pass observes a cancellation request."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Operation cancelled")
