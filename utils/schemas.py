"""
Pydantic schemas shared by the connectors, the search adapters and the API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════════
# Credentials
# ═══════════════════════════════════════════════════════════════════════════════


class ProviderCredential(BaseModel):
    """
    Decrypted bearer token(s) for one (user, provider) pair.

    ``account_id`` is the provider-scoped identity returned by the exchange:
    the Slack user id, the Notion bot id or the Google account id.
    """

    provider: str
    access_token: str
    refresh_token: Optional[str] = None
    account_id: Optional[str] = None
    account_label: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: List[str] = Field(default_factory=list)
    provider_meta: Dict[str, Any] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════════
# Normalized search results
# ═══════════════════════════════════════════════════════════════════════════════


class SlackResult(BaseModel):
    provider: Literal["slack"] = "slack"
    type: Literal["message", "file"] = "message"
    text: str = ""
    user: str = ""
    channel: str = "unknown"
    ts: Optional[str] = None
    permalink: Optional[str] = None


class NotionResult(BaseModel):
    provider: Literal["notion"] = "notion"
    id: str
    title: str = "Untitled"
    url: Optional[str] = None
    object: str = "page"  # "page" | "database"


class DriveResult(BaseModel):
    provider: Literal["google_drive"] = "google_drive"
    type: Literal["Google Drive"] = "Google Drive"
    title: str = "Untitled"
    url: str = "#"
    icon: str


NormalizedResult = Annotated[
    Union[SlackResult, NotionResult, DriveResult],
    Field(discriminator="provider"),
]


# ═══════════════════════════════════════════════════════════════════════════════
# Search request / response
# ═══════════════════════════════════════════════════════════════════════════════


class SearchResults(BaseModel):
    slack: List[SlackResult] = Field(default_factory=list)
    notion: List[NotionResult] = Field(default_factory=list)
    google_drive: List[DriveResult] = Field(default_factory=list)


class SearchResponse(BaseModel):
    """
    Merged federated search output.

    ``failed_providers`` lists providers whose call failed and contributed
    nothing; it is what tells "nothing matched" apart from "all failed".
    ``error`` is only set on total failure.
    """

    query: str = ""
    results: SearchResults = Field(default_factory=SearchResults)
    failed_providers: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def merged(self) -> List[Union[SlackResult, NotionResult, DriveResult]]:
        """Slack, then Notion, then Google Drive. No re-ranking."""
        return [*self.results.slack, *self.results.notion, *self.results.google_drive]


class ConnectionInfo(BaseModel):
    """Token-free view of a stored connection for the account page."""

    provider: str
    account_label: Optional[str] = None
    account_id: Optional[str] = None
    scopes: List[str] = Field(default_factory=list)
    connected_at: Optional[str] = None
    updated_at: Optional[str] = None
    expires_at: Optional[str] = None
