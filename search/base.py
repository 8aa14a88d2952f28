"""
BaseSearchProvider — one external search API behind a uniform contract.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional

import httpx

from config.settings import Settings, config
from utils.exceptions import ProviderSearchFailed
from utils.schemas import NormalizedResult, ProviderCredential

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], httpx.AsyncClient]


class BaseSearchProvider(ABC):
    """
    Subclasses implement ``fetch``, which raises ``ProviderSearchFailed`` on
    any transport, API or schema error.  ``search`` is the never-raising
    wrapper: it logs the failure and returns an empty list.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client_factory: Optional[ClientFactory] = None,
    ) -> None:
        self._settings = settings or config
        self._client_factory = client_factory or (lambda: httpx.AsyncClient(timeout=30.0))

    @property
    @abstractmethod
    def provider_name(self) -> str:
        ...

    @property
    def page_size(self) -> int:
        return self._settings.search_page_size

    @abstractmethod
    async def fetch(self, query: str, credential: ProviderCredential) -> List[NormalizedResult]:
        """Run the search and return normalized results. May raise."""
        ...

    async def search(self, query: str, credential: ProviderCredential) -> List[NormalizedResult]:
        try:
            return await self.fetch(query, credential)
        except Exception as exc:
            logger.error("Error searching %s: %s", self.provider_name, exc)
            return []

    def _fail(self, reason: str, cause: Optional[BaseException] = None) -> ProviderSearchFailed:
        return ProviderSearchFailed(self.provider_name, reason, cause)

    async def _request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send one request and return the decoded JSON body."""
        try:
            async with self._client_factory() as client:
                resp = await client.request(method, url, **kwargs)
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as exc:
            raise self._fail(f"HTTP {exc.response.status_code}", exc) from exc
        except httpx.HTTPError as exc:
            raise self._fail(f"transport error: {exc}", exc) from exc
        except ValueError as exc:
            raise self._fail("response is not JSON", exc) from exc
