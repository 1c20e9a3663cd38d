"""Trello implementation of the tracker client."""

import re
from typing import Any, Dict, List, Optional

import httpx
import structlog

from taiti.models.task import UNASSIGNED_OWNER, UNKNOWN_OWNER
from taiti.tracker.base import Attachment, Comment, RawItem, TrackerClient, TrackerError

logger = structlog.get_logger(__name__)

TRELLO_API_URL = "https://api.trello.com/1"

_BOARD_URL_PATTERN = re.compile(r"^https?://trello\.com/b/([a-zA-Z0-9]+)(?:/[^/?#]+)*/?$")
_BOARD_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")

_CARD_FIELDS = "id,name,idList,idMembers,desc,url,labels,closed"

# Trello returns 50 actions per card unless asked for more; 1000 is its maximum
COMMENT_LIMIT = 1000


def extract_board_id(board: str) -> str:
    """Extract a board id from a Trello board URL or return a bare id.

    Args:
        board: Board id or URL such as https://trello.com/b/AbC123/my-board

    Returns:
        The board id

    Raises:
        ValueError: If the value is neither a board URL nor an id
    """
    if board is None or not board.strip():
        raise ValueError("Board URL or id must not be empty")

    board = board.strip()
    match = _BOARD_URL_PATTERN.match(board)
    if match:
        return match.group(1)
    if _BOARD_ID_PATTERN.match(board):
        return board

    raise ValueError(
        f"Invalid board URL or id: {board}. "
        "Expected https://trello.com/b/BOARD_ID/board-name or a bare board id"
    )


def owner_display_name(assignee_ids: List[str], member_names: Dict[str, str]) -> str:
    """Name shown as the owner of a card: its first assignee with a known name.

    Returns:
        The member name, UNASSIGNED_OWNER for cards without members, or
        UNKNOWN_OWNER when no assignee is a known board member
    """
    if not assignee_ids:
        return UNASSIGNED_OWNER
    for member_id in assignee_ids:
        name = member_names.get(member_id)
        if name:
            return name
    return UNKNOWN_OWNER


class TrelloClient(TrackerClient):
    """Talks to the Trello REST API.

    Key and token travel as query parameters on every call, attachment
    downloads use the OAuth header Trello requires for file URLs.

    Example:
        >>> client = TrelloClient("key", "token", "https://trello.com/b/AbC123/team")
        >>> items = client.list_items(client.board_id)
    """

    def __init__(
        self,
        api_key: str,
        token: str,
        board: str,
        api_url: str = TRELLO_API_URL,
        timeout: float = 45.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_key: Trello API key
            token: Trello token for the user
            board: Board id or board URL
            api_url: Base API URL
            timeout: Request timeout in seconds
            http_client: Pre-configured httpx client (mostly for tests)

        Raises:
            ValueError: If credentials are empty or the board is invalid
        """
        if not api_key or not api_key.strip():
            raise ValueError("Trello API key must not be empty")
        if not token or not token.strip():
            raise ValueError("Trello token must not be empty")

        self.api_key = api_key.strip()
        self.token = token.strip()
        self.board_id = extract_board_id(board)
        self.api_url = api_url.rstrip("/")
        self._http = http_client or httpx.Client(timeout=timeout, follow_redirects=True)

    # ============================================================================
    # Transport
    # ============================================================================

    def _auth_params(self) -> Dict[str, str]:
        return {"key": self.api_key, "token": self.token}

    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        files: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        query = self._auth_params()
        if params:
            query.update(params)

        url = f"{self.api_url}{endpoint}"
        logger.debug("trello_request", method=method, endpoint=endpoint)

        try:
            response = self._http.request(method, url, params=query, files=files, data=data)
        except httpx.HTTPError as e:
            raise TrackerError(f"Trello request {method} {endpoint} failed: {e}") from e

        if not response.is_success:
            raise TrackerError(
                f"Trello request {method} {endpoint} failed: {response.text[:200]}",
                status_code=response.status_code,
            )
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise TrackerError(f"Invalid JSON response from Trello: {e}", response.status_code) from e

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "TrelloClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ============================================================================
    # Board
    # ============================================================================

    def check_board(self) -> int:
        """Return the HTTP status of the configured board.

        Transport failures are raised as TrackerError, API statuses are
        returned so callers can tell 401 from 404.
        """
        try:
            response = self._http.get(f"{self.api_url}/boards/{self.board_id}", params=self._auth_params())
        except httpx.HTTPError as e:
            raise TrackerError(f"Could not reach Trello: {e}") from e
        return response.status_code

    def get_list_names(self, board_id: str) -> Dict[str, str]:
        """Map list ids of a board to their names."""
        lists = self._json(self._request("GET", f"/boards/{board_id}/lists", {"fields": "id,name"}))
        return {str(item["id"]): str(item.get("name", "")) for item in lists}

    def get_board_members(self, board_id: str) -> Dict[str, str]:
        """Map member ids of a board to their display names.

        The full name is used when set, the username otherwise.
        """
        members = self._json(
            self._request("GET", f"/boards/{board_id}/members", {"fields": "id,fullName,username"})
        )
        return {
            str(member["id"]): str(member.get("fullName") or member.get("username") or "")
            for member in members
        }

    def list_items(self, scope_id: str) -> List[RawItem]:
        """List the open cards of a board with list and owner names resolved.

        Args:
            scope_id: Board id

        Returns:
            One RawItem per open card
        """
        cards = self._json(self._request("GET", f"/boards/{scope_id}/cards", {"fields": _CARD_FIELDS}))
        list_names = self.get_list_names(scope_id)
        member_names = self.get_board_members(scope_id)

        items = []
        for card in cards:
            if card.get("closed"):
                continue
            list_id = str(card.get("idList", ""))
            assignee_ids = [str(member) for member in card.get("idMembers") or []]
            items.append(
                RawItem(
                    id=str(card["id"]),
                    name=str(card.get("name", "")),
                    url=str(card.get("url", "")),
                    state_id=list_id,
                    state_name=list_names.get(list_id),
                    description=str(card.get("desc") or ""),
                    assignee_ids=assignee_ids,
                    label_names=[str(label.get("name", "")) for label in card.get("labels") or []],
                    owner_name=owner_display_name(assignee_ids, member_names),
                )
            )

        logger.info("trello_cards_listed", board_id=scope_id, count=len(items))
        return items

    def get_authenticated_user_id(self) -> str:
        member = self._json(self._request("GET", "/members/me", {"fields": "id"}))
        try:
            return str(member["id"])
        except (KeyError, TypeError) as e:
            raise TrackerError("Trello did not return the authenticated member id") from e

    # ============================================================================
    # Comments
    # ============================================================================

    def get_comments(self, item_id: str) -> List[Comment]:
        actions = self._json(
            self._request("GET", f"/cards/{item_id}/actions", {"filter": "commentCard", "limit": COMMENT_LIMIT})
        )
        comments = []
        for action in actions:
            data = action.get("data") or {}
            if "text" not in data:
                logger.warning("trello_comment_without_text", card_id=item_id, action_id=action.get("id"))
                continue
            comments.append(Comment(id=str(action["id"]), text=str(data["text"])))
        return comments

    def post_comment(self, item_id: str, text: str) -> Comment:
        action = self._json(self._request("POST", f"/cards/{item_id}/actions/comments", {"text": text}))
        data = action.get("data") or {}
        return Comment(id=str(action["id"]), text=str(data.get("text", text)))

    def delete_comment(self, comment_id: str) -> None:
        self._request("DELETE", f"/actions/{comment_id}")

    # ============================================================================
    # Attachments
    # ============================================================================

    @staticmethod
    def _to_attachment(payload: Dict[str, Any]) -> Attachment:
        return Attachment(
            id=str(payload["id"]),
            name=str(payload.get("fileName") or payload.get("name") or ""),
            url=str(payload.get("url", "")),
        )

    def get_attachments(self, item_id: str) -> List[Attachment]:
        payload = self._json(self._request("GET", f"/cards/{item_id}/attachments"))
        return [self._to_attachment(item) for item in payload]

    def upload_attachment(self, item_id: str, filename: str, content: bytes) -> Attachment:
        response = self._request(
            "POST",
            f"/cards/{item_id}/attachments",
            files={"file": (filename, content, "text/csv")},
            data={"name": filename},
        )
        attachment = self._to_attachment(self._json(response))
        logger.info("trello_attachment_uploaded", card_id=item_id, attachment_id=attachment.id)
        return attachment

    def delete_attachment(self, item_id: str, attachment_id: str) -> None:
        self._request("DELETE", f"/cards/{item_id}/attachments/{attachment_id}")

    def download_attachment(self, attachment: Attachment) -> bytes:
        if not attachment.url:
            raise TrackerError(f"Attachment {attachment.id} has no download URL")

        headers = {
            "Authorization": f'OAuth oauth_consumer_key="{self.api_key}", oauth_token="{self.token}"'
        }
        try:
            response = self._http.get(attachment.url, headers=headers)
        except httpx.HTTPError as e:
            raise TrackerError(f"Downloading attachment {attachment.id} failed: {e}") from e

        if not response.is_success:
            raise TrackerError(f"Downloading attachment {attachment.id} failed", response.status_code)
        return response.content
