"""
FederatedSearch: one query fanned out to every connected provider.

Providers are searched concurrently with ``asyncio.gather`` over
individually-wrapped calls, so latency is bounded by the slowest provider
and one provider's failure never cancels or affects the others.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional, Tuple

from search.base import BaseSearchProvider
from search.google_drive import GoogleDriveSearchProvider
from search.notion import NotionSearchProvider
from search.slack import SlackSearchProvider
from utils.schemas import ProviderCredential, SearchResponse, SearchResults, SlackResult

logger = logging.getLogger(__name__)

SEARCH_FAILED_MESSAGE = "Search failed."


def _usable(credential: Optional[ProviderCredential]) -> bool:
    return credential is not None and bool(credential.access_token)


def default_providers() -> List[BaseSearchProvider]:
    """List order is merge order: Slack, then Notion, then Google Drive."""
    return [SlackSearchProvider(), NotionSearchProvider(), GoogleDriveSearchProvider()]


class FederatedSearch:
    def __init__(self, providers: Optional[List[BaseSearchProvider]] = None) -> None:
        self._providers: Dict[str, BaseSearchProvider] = {
            p.provider_name: p for p in (providers or default_providers())
        }

    def candidates(
        self, credentials: Mapping[str, Optional[ProviderCredential]]
    ) -> List[str]:
        """Providers, in merge order, for which the user holds a usable token."""
        return [name for name in self._providers if _usable(credentials.get(name))]

    async def _run_one(
        self, name: str, query: str, credential: ProviderCredential
    ) -> Tuple[str, List[Any], bool]:
        """Search one provider; any exception becomes an empty, failed subset."""
        try:
            results = await self._providers[name].fetch(query, credential)
            return name, results, True
        except Exception as exc:
            logger.warning("Provider %s failed for query %r: %s", name, query, exc)
            return name, [], False

    async def search(
        self,
        query: str,
        credentials: Mapping[str, Optional[ProviderCredential]],
    ) -> SearchResponse:
        """
        Search every connected provider and merge.

        An empty query or a user with no credentials returns an empty
        response without any network call.  Failed providers are listed in
        ``failed_providers``; ``error`` is set only if the fan-out itself
        breaks.
        """
        response = SearchResponse(query=query)
        if not query or not query.strip():
            return response

        names = self.candidates(credentials)
        if not names:
            logger.info("No connected providers; skipping search")
            return response

        try:
            outcomes = await asyncio.gather(
                *(self._run_one(name, query, credentials[name]) for name in names)
            )
        except Exception as exc:
            logger.error("Search failed: %s", exc)
            response.error = SEARCH_FAILED_MESSAGE
            return response

        by_name = {name: (results, ok) for name, results, ok in outcomes}
        grouped: Dict[str, List[Any]] = {}
        for name in self._providers:
            results, ok = by_name.get(name, ([], True))
            grouped[name] = results
            if not ok:
                response.failed_providers.append(name)

        response.results = SearchResults(
            slack=grouped.get("slack", []),
            notion=grouped.get("notion", []),
            google_drive=grouped.get("google_drive", []),
        )
        logger.info(
            "Search %r: %s",
            query,
            ", ".join(f"{n}={len(grouped[n])}" for n in names),
        )
        return response

    async def recent_messages(
        self, credentials: Mapping[str, Optional[ProviderCredential]]
    ) -> List[SlackResult]:
        """Slack's recent messages; empty if Slack is not connected."""
        slack = self._providers.get("slack")
        credential = credentials.get("slack")
        if not isinstance(slack, SlackSearchProvider) or not _usable(credential):
            return []
        return await slack.recent_messages(credential)
