"""Issue tracker clients."""

from taiti.tracker.base import Attachment, Comment, RawItem, TrackerClient, TrackerError
from taiti.tracker.trello import TrelloClient, extract_board_id, owner_display_name

__all__ = [
    "TrackerClient",
    "TrackerError",
    "RawItem",
    "Comment",
    "Attachment",
    "TrelloClient",
    "extract_board_id",
    "owner_display_name",
]
