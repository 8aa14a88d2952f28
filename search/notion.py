"""
Notion search via ``POST /v1/search`` with the integration's token.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from search.base import BaseSearchProvider
from utils.schemas import NotionResult, ProviderCredential

logger = logging.getLogger(__name__)

_NOTION_SEARCH_URL = "https://api.notion.com/v1/search"

UNTITLED = "Untitled"


# ── Wire schema ────────────────────────────────────────────────────────


class _RichText(BaseModel):
    plain_text: str = ""


class _NotionProperty(BaseModel):
    type: str = ""
    title: Optional[List[_RichText]] = None

    @field_validator("title", mode="before")
    @classmethod
    def _spans_only(cls, value: Any) -> Any:
        # Database schemas carry ``"title": {}`` rather than a span list
        return value if isinstance(value, list) else None


class _NotionObject(BaseModel):
    object: str = "page"
    id: str
    url: Optional[str] = None
    properties: Dict[str, _NotionProperty] = Field(default_factory=dict)


class _NotionSearchResponse(BaseModel):
    results: List[_NotionObject] = Field(default_factory=list)
    has_more: bool = False


# ── Adapter ────────────────────────────────────────────────────────────


def extract_title(properties: Dict[str, _NotionProperty]) -> str:
    """Plain text of the property whose type is ``title``, else ``Untitled``."""
    title_prop = next((p for p in properties.values() if p.type == "title"), None)
    if title_prop is None or not title_prop.title:
        return UNTITLED
    return "".join(span.plain_text for span in title_prop.title) or UNTITLED


def _to_result(obj: _NotionObject) -> NotionResult:
    return NotionResult(
        id=obj.id,
        title=extract_title(obj.properties),
        url=obj.url,
        object=obj.object,
    )


def normalize_object(raw: Dict[str, Any]) -> NotionResult:
    return _to_result(_NotionObject.model_validate(raw))


class NotionSearchProvider(BaseSearchProvider):
    @property
    def provider_name(self) -> str:
        return "notion"

    async def fetch(self, query: str, credential: ProviderCredential) -> List[NotionResult]:
        payload = await self._request_json(
            "POST",
            _NOTION_SEARCH_URL,
            json={"query": query, "page_size": self.page_size},
            headers={
                "Authorization": f"Bearer {credential.access_token}",
                "Notion-Version": self._settings.notion_api_version,
                "Content-Type": "application/json",
            },
        )
        try:
            body = _NotionSearchResponse.model_validate(payload)
        except ValidationError as exc:
            raise self._fail("malformed search response", exc) from exc

        logger.debug("Notion returned %d results for %r", len(body.results), query)
        return [_to_result(obj) for obj in body.results]
