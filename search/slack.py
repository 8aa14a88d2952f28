"""
Slack message search via ``search.messages`` with the user's token.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from search.base import BaseSearchProvider
from utils.schemas import ProviderCredential, SlackResult

logger = logging.getLogger(__name__)

_SLACK_SEARCH_URL = "https://slack.com/api/search.messages"

# Slack's search treats a bare "*" as match-all; sorted by timestamp it
# yields the most recent messages across every channel the user can read.
RECENT_MESSAGES_QUERY = "*"


# ── Wire schema ────────────────────────────────────────────────────────


class _SlackChannel(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None


class _SlackMatch(BaseModel):
    type: str = "message"
    text: str = ""
    user: Optional[str] = None
    username: Optional[str] = None
    channel: Optional[_SlackChannel] = None
    ts: Optional[str] = None
    permalink: Optional[str] = None


class _SlackMessages(BaseModel):
    total: int = 0
    matches: List[_SlackMatch] = Field(default_factory=list)


class _SlackSearchResponse(BaseModel):
    ok: bool
    error: Optional[str] = None
    messages: Optional[_SlackMessages] = None


# ── Adapter ────────────────────────────────────────────────────────────


def normalize_match(match: _SlackMatch) -> SlackResult:
    return SlackResult(
        type="message",
        text=match.text,
        user=match.username or match.user or "",
        channel=(match.channel.name if match.channel and match.channel.name else "unknown"),
        ts=match.ts,
        permalink=match.permalink,
    )


class SlackSearchProvider(BaseSearchProvider):
    @property
    def provider_name(self) -> str:
        return "slack"

    async def fetch(self, query: str, credential: ProviderCredential) -> List[SlackResult]:
        payload = await self._request_json(
            "GET",
            _SLACK_SEARCH_URL,
            params={
                "query": query,
                "count": self.page_size,
                "sort": "timestamp",
                "sort_dir": "desc",
            },
            headers={"Authorization": f"Bearer {credential.access_token}"},
        )
        try:
            body = _SlackSearchResponse.model_validate(payload)
        except ValidationError as exc:
            raise self._fail("malformed search.messages response", exc) from exc

        if not body.ok:
            # e.g. missing_scope when the token lacks search:read
            raise self._fail(body.error or "unknown_error")
        if body.messages is None:
            return []
        return [normalize_match(m) for m in body.messages.matches]

    async def recent_messages(self, credential: ProviderCredential) -> List[SlackResult]:
        """Most recent messages: the same search path with the match-all query."""
        return await self.search(RECENT_MESSAGES_QUERY, credential)
