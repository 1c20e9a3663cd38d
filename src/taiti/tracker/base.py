"""Base class for issue tracker clients."""

from abc import ABC, abstractmethod
from typing import List, Optional

from pydantic import BaseModel, Field


class TrackerError(Exception):
    """Raised when a tracker call fails.

    Attributes:
        status_code: HTTP-like status of the failed call, if one was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message if status_code is None else f"{message} (status {status_code})")


class RawItem(BaseModel):
    """A work item as returned by the tracker."""

    id: str = Field(..., description="Item id")
    name: str = Field(..., description="Item title")
    url: str = Field("", description="Link to the item")
    state_id: str = Field("", description="List / workflow state id")
    state_name: Optional[str] = Field(None, description="List / workflow state name, if resolved")
    description: str = Field("", description="Item description")
    assignee_ids: List[str] = Field(default_factory=list, description="Assigned member ids")
    label_names: List[str] = Field(default_factory=list, description="Label names")
    owner_name: Optional[str] = Field(None, description="Display name of the first assignee, if resolved")


class Comment(BaseModel):
    """A comment on a work item."""

    id: str = Field(..., description="Comment id")
    text: str = Field("", description="Comment body")
    has_attachment_hint: bool = Field(False, description="Whether the tracker links an attachment to it")


class Attachment(BaseModel):
    """A file attached to a work item."""

    id: str = Field(..., description="Attachment id")
    name: str = Field(..., description="File name")
    url: str = Field("", description="Download URL")


class TrackerClient(ABC):
    """Abstract capability the engine needs from an issue tracker.

    Every method raises TrackerError on failure.
    """

    @abstractmethod
    def list_items(self, scope_id: str) -> List[RawItem]:
        """List all items of a board / project visible to the credentials."""
        pass

    @abstractmethod
    def get_comments(self, item_id: str) -> List[Comment]:
        pass

    @abstractmethod
    def get_attachments(self, item_id: str) -> List[Attachment]:
        pass

    @abstractmethod
    def upload_attachment(self, item_id: str, filename: str, content: bytes) -> Attachment:
        pass

    @abstractmethod
    def post_comment(self, item_id: str, text: str) -> Comment:
        pass

    @abstractmethod
    def delete_comment(self, comment_id: str) -> None:
        pass

    @abstractmethod
    def delete_attachment(self, item_id: str, attachment_id: str) -> None:
        pass

    @abstractmethod
    def get_authenticated_user_id(self) -> str:
        pass

    @abstractmethod
    def download_attachment(self, attachment: Attachment) -> bytes:
        pass
