"""Reads and writes a task's scenario set through the tracker.

A scenario set lives on the tracker as two objects: an attached transfer file
and a comment whose text is the sentinel marker. The tracker does not link
them, so the attachment is recognized by name (see is_scenario_attachment).
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import structlog

from taiti.errors import ItemScenarioReadError, ScenarioWriteError, ScenarioWriteInconsistentError
from taiti.models.scenario import ScenarioSet
from taiti.sync.transfer import SCENARIO_FILE_NAME, TransferFormatError, decode, is_scenario_attachment, serialize
from taiti.tracker.base import Attachment, Comment, TrackerClient, TrackerError

logger = structlog.get_logger(__name__)

SENTINEL_MARKER = "[TAITI] Scenarios"


@dataclass
class PurgeReport:
    """Outcome of removing scenario data from an item.

    Attributes:
        deleted_comments: Ids of marker comments removed
        deleted_attachments: Ids of scenario attachments removed
        failures: One message per object that could not be listed or removed
    """
    deleted_comments: List[str] = field(default_factory=list)
    deleted_attachments: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.failures


class ScenarioSync:
    """Scenario persistence on top of a TrackerClient.

    Writes and deletes on the same item are serialized by a per-item lock.
    Reads are side-effect free and take no lock. One lock is kept per item id
    ever written or deleted, for the lifetime of the instance, so a
    long-running process should create a new ScenarioSync per board session.
    """

    def __init__(
        self,
        client: TrackerClient,
        marker: str = SENTINEL_MARKER,
        file_name: str = SCENARIO_FILE_NAME,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            client: Tracker client used for every remote call
            marker: Text of the marker comment
            file_name: Name given to uploaded transfer files
        """
        if not is_scenario_attachment(file_name):
            raise ValueError(f"Scenario file name {file_name!r} would not be recognized on read")

        self.client = client
        self.marker = marker
        self.file_name = file_name
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _item_lock(self, item_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[item_id]

    def _is_marker(self, comment: Comment) -> bool:
        return comment.text.strip() == self.marker

    # ============================================================================
    # Read
    # ============================================================================

    def read(self, item_id: str) -> Optional[ScenarioSet]:
        """Fetch the scenario set attached to an item.

        Args:
            item_id: Tracker item id

        Returns:
            The scenario set, or None if the item carries no marker comment

        Raises:
            ItemScenarioReadError: If the marker exists but the data cannot be
                fetched or parsed, or a tracker call fails
        """
        try:
            comments = self.client.get_comments(item_id)
        except TrackerError as e:
            raise ItemScenarioReadError(item_id, f"listing comments failed: {e}") from e

        if not any(self._is_marker(comment) for comment in comments):
            return None

        try:
            attachments = self.client.get_attachments(item_id)
        except TrackerError as e:
            raise ItemScenarioReadError(item_id, f"listing attachments failed: {e}") from e

        candidates = [attachment for attachment in attachments if is_scenario_attachment(attachment.name)]
        if not candidates:
            raise ItemScenarioReadError(item_id, "marker comment found but no scenario attachment")
        if len(candidates) > 1:
            logger.warning(
                "multiple_scenario_attachments",
                item_id=item_id,
                attachment_ids=[attachment.id for attachment in candidates],
            )
        attachment = candidates[-1]

        try:
            content = self.client.download_attachment(attachment)
        except TrackerError as e:
            raise ItemScenarioReadError(item_id, f"downloading {attachment.name} failed: {e}") from e

        try:
            scenario_set = decode(content)
        except TransferFormatError as e:
            raise ItemScenarioReadError(item_id, f"{attachment.name} is malformed: {e}") from e

        logger.debug("scenarios_read", item_id=item_id, references=len(scenario_set))
        return scenario_set

    # ============================================================================
    # Write / delete
    # ============================================================================

    def _purge(self, item_id: str) -> PurgeReport:
        """Best-effort removal of marker comments and scenario attachments."""
        report = PurgeReport()

        try:
            comments = self.client.get_comments(item_id)
        except TrackerError as e:
            comments = []
            report.failures.append(f"listing comments failed: {e}")
            logger.warning("scenario_purge_list_comments_failed", item_id=item_id, error=str(e))

        for comment in comments:
            if not self._is_marker(comment):
                continue
            try:
                self.client.delete_comment(comment.id)
                report.deleted_comments.append(comment.id)
            except TrackerError as e:
                report.failures.append(f"deleting comment {comment.id} failed: {e}")
                logger.warning("scenario_marker_delete_failed", item_id=item_id, comment_id=comment.id, error=str(e))

        try:
            attachments = self.client.get_attachments(item_id)
        except TrackerError as e:
            attachments = []
            report.failures.append(f"listing attachments failed: {e}")
            logger.warning("scenario_purge_list_attachments_failed", item_id=item_id, error=str(e))

        for attachment in attachments:
            if not is_scenario_attachment(attachment.name):
                continue
            try:
                self.client.delete_attachment(item_id, attachment.id)
                report.deleted_attachments.append(attachment.id)
            except TrackerError as e:
                report.failures.append(f"deleting attachment {attachment.id} failed: {e}")
                logger.warning(
                    "scenario_attachment_delete_failed",
                    item_id=item_id,
                    attachment_id=attachment.id,
                    error=str(e),
                )

        return report

    def write(self, item_id: str, scenario_set: ScenarioSet) -> Attachment:
        """Replace the scenario set of an item.

        Steps run strictly in order: purge old data, serialize, upload the
        transfer file, post the marker comment. If the comment cannot be
        posted the uploaded attachment is deleted again.

        Args:
            item_id: Tracker item id
            scenario_set: Scenarios to store

        Returns:
            The uploaded attachment

        Raises:
            ScenarioWriteError: If the upload or the comment failed and no
                orphaned attachment was left behind
            ScenarioWriteInconsistentError: If the comment failed and the
                uploaded attachment could not be removed
        """
        with self._item_lock(item_id):
            report = self._purge(item_id)
            if not report.clean:
                logger.warning("scenario_purge_incomplete", item_id=item_id, failures=len(report.failures))

            content = serialize(scenario_set)

            try:
                attachment = self.client.upload_attachment(item_id, self.file_name, content)
            except TrackerError as e:
                raise ScenarioWriteError(item_id, "upload", str(e)) from e

            try:
                self.client.post_comment(item_id, self.marker)
            except TrackerError as comment_error:
                logger.warning(
                    "scenario_marker_post_failed",
                    item_id=item_id,
                    attachment_id=attachment.id,
                    error=str(comment_error),
                )
                try:
                    self.client.delete_attachment(item_id, attachment.id)
                except TrackerError as rollback_error:
                    logger.error(
                        "scenario_rollback_failed",
                        item_id=item_id,
                        attachment_id=attachment.id,
                        error=str(rollback_error),
                    )
                    raise ScenarioWriteInconsistentError(
                        item_id, attachment.id, str(rollback_error)
                    ) from rollback_error
                raise ScenarioWriteError(item_id, "comment", str(comment_error), rolled_back=True) from comment_error

            logger.info(
                "scenarios_written",
                item_id=item_id,
                files=len(scenario_set.files),
                references=len(scenario_set),
            )
            return attachment

    def delete(self, item_id: str) -> PurgeReport:
        """Remove the scenario set of an item.

        Succeeds as a no-op when the item has no scenario data. Failures to
        remove individual objects are logged and listed in the report.
        """
        with self._item_lock(item_id):
            report = self._purge(item_id)

        logger.info(
            "scenarios_deleted",
            item_id=item_id,
            comments=len(report.deleted_comments),
            attachments=len(report.deleted_attachments),
            failures=len(report.failures),
        )
        return report
