"""Shared fixtures: an in-memory tracker with failure injection."""

import itertools
import threading
from typing import Dict, List, Optional, Set

import git
import pytest

from taiti.models import ScenarioSet
from taiti.sync import SENTINEL_MARKER, ScenarioSync
from taiti.sync.transfer import SCENARIO_FILE_NAME, serialize
from taiti.tracker.base import Attachment, Comment, RawItem, TrackerClient, TrackerError


class FakeTracker(TrackerClient):
    """TrackerClient keeping boards, comments and attachments in memory.

    Put an operation name in ``fail_on`` to make every call of it raise
    TrackerError, e.g. ``fail_on.add("post_comment")``.
    """

    def __init__(self, user_id: str = "me") -> None:
        self.user_id = user_id
        self.items: Dict[str, List[RawItem]] = {}
        self.comments: Dict[str, List[Comment]] = {}
        self.attachments: Dict[str, List[Attachment]] = {}
        self.files: Dict[str, bytes] = {}
        self.fail_on: Set[str] = set()
        self.calls: List[str] = []
        self._ids = itertools.count(1)

    def _call(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise TrackerError(f"{name} failed", status_code=500)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}{next(self._ids)}"

    # Test helpers

    def add_item(
        self,
        item_id: str,
        list_name: str,
        assignees: Optional[List[str]] = None,
        board: str = "board",
        name: Optional[str] = None,
    ) -> RawItem:
        item = RawItem(
            id=item_id,
            name=name or f"Task {item_id}",
            url=f"https://tracker.test/{item_id}",
            state_id=f"list-{list_name.lower()}",
            state_name=list_name,
            assignee_ids=list(assignees or []),
        )
        self.items.setdefault(board, []).append(item)
        return item

    def attach_scenarios(self, item_id: str, scenario_set: ScenarioSet) -> None:
        """Store a scenario set directly, bypassing failure injection."""
        attachment = Attachment(
            id=self._next_id("att"), name=SCENARIO_FILE_NAME, url=f"https://files.test/{item_id}"
        )
        self.attachments.setdefault(item_id, []).append(attachment)
        self.files[attachment.id] = serialize(scenario_set)
        self.comments.setdefault(item_id, []).append(Comment(id=self._next_id("c"), text=SENTINEL_MARKER))

    def markers(self, item_id: str) -> List[Comment]:
        return [comment for comment in self.comments.get(item_id, []) if comment.text.strip() == SENTINEL_MARKER]

    # TrackerClient

    def list_items(self, scope_id: str) -> List[RawItem]:
        self._call("list_items")
        return list(self.items.get(scope_id, []))

    def get_comments(self, item_id: str) -> List[Comment]:
        self._call("get_comments")
        return list(self.comments.get(item_id, []))

    def get_attachments(self, item_id: str) -> List[Attachment]:
        self._call("get_attachments")
        return list(self.attachments.get(item_id, []))

    def upload_attachment(self, item_id: str, filename: str, content: bytes) -> Attachment:
        self._call("upload_attachment")
        attachment = Attachment(id=self._next_id("att"), name=filename, url=f"https://files.test/{item_id}")
        self.attachments.setdefault(item_id, []).append(attachment)
        self.files[attachment.id] = content
        return attachment

    def post_comment(self, item_id: str, text: str) -> Comment:
        self._call("post_comment")
        comment = Comment(id=self._next_id("c"), text=text)
        self.comments.setdefault(item_id, []).append(comment)
        return comment

    def delete_comment(self, comment_id: str) -> None:
        self._call("delete_comment")
        for comments in self.comments.values():
            for comment in comments:
                if comment.id == comment_id:
                    comments.remove(comment)
                    return
        raise TrackerError(f"comment {comment_id} not found", status_code=404)

    def delete_attachment(self, item_id: str, attachment_id: str) -> None:
        self._call("delete_attachment")
        attachments = self.attachments.get(item_id, [])
        for attachment in attachments:
            if attachment.id == attachment_id:
                attachments.remove(attachment)
                self.files.pop(attachment_id, None)
                return
        raise TrackerError(f"attachment {attachment_id} not found", status_code=404)

    def get_authenticated_user_id(self) -> str:
        self._call("get_authenticated_user_id")
        return self.user_id

    def download_attachment(self, attachment: Attachment) -> bytes:
        self._call("download_attachment")
        try:
            return self.files[attachment.id]
        except KeyError as e:
            raise TrackerError(f"attachment {attachment.id} not found", status_code=404) from e


@pytest.fixture
def tracker():
    """Empty in-memory tracker."""
    return FakeTracker()


@pytest.fixture
def sync(tracker):
    """ScenarioSync over the in-memory tracker."""
    return ScenarioSync(tracker)


@pytest.fixture
def feature_repo(tmp_path):
    """Git repository with two tracked feature files and one untracked."""
    repo = git.Repo.init(tmp_path)
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    features = tmp_path / "features"
    features.mkdir()
    (features / "login.feature").write_text(
        "Feature: Login\n"
        "\n"
        "  Scenario: Successful login\n"
        "    Given a registered user\n"
        "\n"
        "  Scenario Outline: Failed login\n"
        "    Given <user>\n"
    )
    (features / "cart.feature").write_text("Feature: Cart\n  Scenario: Add item\n")
    (tmp_path / "README.md").write_text("# Shop\n")
    repo.index.add(["features/login.feature", "features/cart.feature", "README.md"])
    repo.index.commit("Add features")

    (features / "draft.feature").write_text("Feature: Draft\n")
    return tmp_path


class BlockingTracker(FakeTracker):
    """FakeTracker whose list_items waits until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def list_items(self, scope_id: str) -> List[RawItem]:
        self.entered.set()
        self.release.wait(timeout=5)
        return super().list_items(scope_id)


@pytest.fixture
def blocking_tracker():
    """Tracker that holds a pass inside list_items until released."""
    tracker = BlockingTracker()
    yield tracker
    tracker.release.set()


class HoldingTracker(FakeTracker):
    """FakeTracker that holds uploads to items in ``hold`` until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.hold: Set[str] = set()
        self.entered = threading.Event()
        self.release = threading.Event()

    def upload_attachment(self, item_id: str, filename: str, content: bytes) -> Attachment:
        if item_id in self.hold:
            self.entered.set()
            self.release.wait(timeout=5)
        return super().upload_attachment(item_id, filename, content)


@pytest.fixture
def holding_tracker():
    """Tracker that parks writes to held items inside the upload step."""
    tracker = HoldingTracker()
    yield tracker
    tracker.release.set()
