"""Configuration models."""

from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from taiti.models.task import ListState


class BucketRules(BaseModel):
    """Maps tracker lists / workflow states to their semantic state.

    A list matches by id first, then by name (case-insensitive, surrounding
    whitespace ignored).
    """

    unstarted: List[str] = Field(
        default_factory=lambda: ["TODO", "To Do", "Backlog", "Unstarted"],
        description="List ids or names whose items have not been started",
    )
    started: List[str] = Field(
        default_factory=lambda: ["DOING", "In Progress", "Started"],
        description="List ids or names whose items are being worked on",
    )

    class Config:
        """Pydantic config."""
        json_schema_extra = {
            "example": {
                "unstarted": ["TODO", "Backlog"],
                "started": ["DOING", "5f1c2a9e8b7d6c5b4a3f2e1d"],
            }
        }

    @staticmethod
    def _normalize(value: str) -> str:
        return value.strip().casefold()

    def state_for(self, list_id: str, list_name: Optional[str] = None) -> ListState:
        """Resolve the semantic state of a list.

        Args:
            list_id: Tracker id of the list or workflow state
            list_name: Display name of the list, if known

        Returns:
            UNSTARTED, STARTED or UNMAPPED
        """
        if list_id in self.unstarted:
            return ListState.UNSTARTED
        if list_id in self.started:
            return ListState.STARTED

        if list_name:
            name = self._normalize(list_name)
            if name in {self._normalize(v) for v in self.unstarted}:
                return ListState.UNSTARTED
            if name in {self._normalize(v) for v in self.started}:
                return ListState.STARTED

        return ListState.UNMAPPED


class TaitiSettings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings are prefixed with TAITI_ (e.g., TAITI_TRELLO_API_KEY) and may
    also come from a .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="TAITI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Trello
    trello_api_key: Optional[str] = None
    trello_token: Optional[str] = None
    trello_board: Optional[str] = Field(None, description="Board id or https://trello.com/b/<id>/... URL")
    trello_api_url: str = "https://api.trello.com/1"
    request_timeout: float = 45.0

    # Classification
    unstarted_lists: List[str] = Field(default_factory=lambda: BucketRules().unstarted)
    started_lists: List[str] = Field(default_factory=lambda: BucketRules().started)

    # Project layout
    scenarios_folder: str = "features"

    # Logging
    log_level: str = "INFO"

    def bucket_rules(self) -> BucketRules:
        return BucketRules(unstarted=list(self.unstarted_lists), started=list(self.started_lists))

    @property
    def is_trello_configured(self) -> bool:
        return bool(self.trello_api_key and self.trello_token and self.trello_board)
