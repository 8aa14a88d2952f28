"""
Google Drive file-name search via ``files.list``.

``googleapiclient`` is synchronous, so building the service and executing
the request are offloaded with ``asyncio.to_thread()`` to keep the event
loop free for the sibling provider calls.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from pydantic import BaseModel, Field, ValidationError

from config.settings import Settings
from search.base import BaseSearchProvider
from utils.schemas import DriveResult, ProviderCredential

logger = logging.getLogger(__name__)

FALLBACK_ICON = "https://ssl.gstatic.com/docs/doclist/images/icon_10_generic_list.png"

_FIELDS = "files(id, name, webViewLink, iconLink, mimeType)"

ServiceFactory = Callable[[ProviderCredential], Any]


# ── Wire schema ────────────────────────────────────────────────────────


class _DriveFile(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    webViewLink: Optional[str] = None
    iconLink: Optional[str] = None
    mimeType: Optional[str] = None


class _DriveFileList(BaseModel):
    files: List[_DriveFile] = Field(default_factory=list)


# ── Adapter ────────────────────────────────────────────────────────────


def build_name_query(query: str) -> str:
    """Drive query matching non-trashed files whose name contains ``query``."""
    escaped = query.replace("\\", "\\\\").replace("'", "\\'")
    return f"name contains '{escaped}' and trashed = false"


def _build_service(credential: ProviderCredential) -> Any:
    creds = Credentials(token=credential.access_token)
    return build("drive", "v3", credentials=creds, cache_discovery=False)


class GoogleDriveSearchProvider(BaseSearchProvider):
    def __init__(
        self,
        settings: Optional[Settings] = None,
        service_factory: Optional[ServiceFactory] = None,
    ) -> None:
        super().__init__(settings)
        self._service_factory = service_factory or _build_service

    @property
    def provider_name(self) -> str:
        return "google_drive"

    def _list_files(self, query: str, credential: ProviderCredential) -> Any:
        service = self._service_factory(credential)
        return (
            service.files()
            .list(q=build_name_query(query), fields=_FIELDS, pageSize=self.page_size)
            .execute()
        )

    async def fetch(self, query: str, credential: ProviderCredential) -> List[DriveResult]:
        try:
            payload = await asyncio.to_thread(self._list_files, query, credential)
        except Exception as exc:
            raise self._fail(str(exc), exc) from exc

        try:
            body = _DriveFileList.model_validate(payload or {})
        except ValidationError as exc:
            raise self._fail("malformed files.list response", exc) from exc

        return [
            DriveResult(
                title=f.name or "Untitled",
                url=f.webViewLink or "#",
                icon=f.iconLink or FALLBACK_ICON,
            )
            for f in body.files
        ]
