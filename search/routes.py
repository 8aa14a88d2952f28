"""
Search API routes.

Route prefix: /api/v1/search
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user_id
from connectors.credential_store import get_user_credentials
from search.aggregator import SEARCH_FAILED_MESSAGE, FederatedSearch
from utils.schemas import SearchResponse, SlackResult

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])

_search = FederatedSearch()


def get_federated_search() -> FederatedSearch:
    return _search


@router.get("", response_model=SearchResponse)
async def search(
    q: str = Query("", description="Search query"),
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    federated: FederatedSearch = Depends(get_federated_search),
) -> SearchResponse:
    """
    Search every connected provider.

    Credentials are read from the store on each request, so a connection
    completed in another tab is picked up immediately.
    """
    if not q.strip():
        return SearchResponse(query=q)
    try:
        credentials = await get_user_credentials(user_id, db_session=session)
    except Exception as exc:
        logger.error("Search failed loading credentials for %s: %s", user_id, exc)
        return SearchResponse(query=q, error=SEARCH_FAILED_MESSAGE)
    return await federated.search(q, credentials)


@router.get("/recent")
async def recent_messages(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    federated: FederatedSearch = Depends(get_federated_search),
) -> Dict[str, List[Any]]:
    """Most recent Slack messages visible to the user."""
    credentials = await get_user_credentials(user_id, db_session=session)
    messages: List[SlackResult] = await federated.recent_messages(credentials)
    return {"slack": [m.model_dump() for m in messages]}
