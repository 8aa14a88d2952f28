"""
Tests for the federated search fan-out and merge.
"""

import asyncio
from typing import List
from unittest.mock import AsyncMock, patch

import pytest

from search.aggregator import SEARCH_FAILED_MESSAGE, FederatedSearch
from search.base import BaseSearchProvider
from search.slack import SlackSearchProvider
from utils.schemas import DriveResult, NotionResult, ProviderCredential, SlackResult


class FakeProvider(BaseSearchProvider):
    """Returns canned results after an optional delay, or raises."""

    def __init__(self, name: str, results=None, delay: float = 0.0, error: Exception = None):
        super().__init__()
        self._name = name
        self._results = results or []
        self._delay = delay
        self._error = error
        self.calls: List[str] = []

    @property
    def provider_name(self) -> str:
        return self._name

    async def fetch(self, query, credential):
        self.calls.append(query)
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return list(self._results)


def _creds(*providers) -> dict:
    return {p: ProviderCredential(provider=p, access_token=f"{p}-token") for p in providers}


SLACK_HIT = SlackResult(text="standup notes", user="ada", channel="eng", ts="1", permalink="https://s/1")
NOTION_HIT = NotionResult(id="n1", title="Standup", url="https://notion.so/n1", object="page")
DRIVE_HIT = DriveResult(title="standup.doc", url="https://docs/1", icon="https://icon")


class TestShortCircuits:
    @pytest.mark.asyncio
    async def test_no_credentials_makes_no_calls(self):
        providers = [FakeProvider("slack", [SLACK_HIT]), FakeProvider("notion", [NOTION_HIT])]
        response = await FederatedSearch(providers).search("standup", {})

        assert response.merged == []
        assert response.failed_providers == []
        assert response.error is None
        assert all(p.calls == [] for p in providers)

    @pytest.mark.asyncio
    async def test_empty_token_is_not_a_credential(self):
        slack = FakeProvider("slack", [SLACK_HIT])
        creds = {"slack": ProviderCredential(provider="slack", access_token="")}
        response = await FederatedSearch([slack]).search("standup", creds)
        assert response.merged == []
        assert slack.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query", ["", "   "])
    async def test_empty_query_makes_no_calls(self, query):
        slack = FakeProvider("slack", [SLACK_HIT])
        response = await FederatedSearch([slack]).search(query, _creds("slack"))

        assert response.query == query
        assert response.merged == []
        assert slack.calls == []


class TestFanOut:
    @pytest.mark.asyncio
    async def test_only_connected_providers_are_called(self):
        slack = FakeProvider("slack", [SLACK_HIT])
        notion = FakeProvider("notion", [NOTION_HIT])
        drive = FakeProvider("google_drive", [DRIVE_HIT])

        response = await FederatedSearch([slack, notion, drive]).search("standup", _creds("notion"))

        assert slack.calls == [] and drive.calls == []
        assert notion.calls == ["standup"]
        assert response.merged == [NOTION_HIT]

    @pytest.mark.asyncio
    async def test_failing_provider_is_isolated(self):
        slack = FakeProvider("slack", error=asyncio.TimeoutError())
        notion = FakeProvider("notion", [NOTION_HIT])

        response = await FederatedSearch([slack, notion]).search("standup", _creds("slack", "notion"))

        assert response.merged == [NOTION_HIT]
        assert response.results.slack == []
        assert response.failed_providers == ["slack"]
        assert response.error is None

    @pytest.mark.asyncio
    async def test_all_failing_differs_from_empty(self):
        slack = FakeProvider("slack", error=RuntimeError("401"))
        notion = FakeProvider("notion", error=ValueError("bad json"))

        response = await FederatedSearch([slack, notion]).search("standup", _creds("slack", "notion"))

        assert response.merged == []
        assert response.failed_providers == ["slack", "notion"]
        assert response.query == "standup"

    @pytest.mark.asyncio
    async def test_calls_run_concurrently(self):
        notion_started = asyncio.Event()

        class WaitsForNotion(FakeProvider):
            async def fetch(self, query, credential):
                # Deadlocks (and times out) if providers ran one after another
                await asyncio.wait_for(notion_started.wait(), timeout=1.0)
                return [SLACK_HIT]

        class SignalsStart(FakeProvider):
            async def fetch(self, query, credential):
                notion_started.set()
                return [NOTION_HIT]

        response = await FederatedSearch(
            [WaitsForNotion("slack"), SignalsStart("notion")]
        ).search("standup", _creds("slack", "notion"))

        assert response.failed_providers == []
        assert response.merged == [SLACK_HIT, NOTION_HIT]

    @pytest.mark.asyncio
    async def test_merge_order_ignores_completion_order(self):
        # Drive finishes first, Slack last
        providers = [
            FakeProvider("slack", [SLACK_HIT], delay=0.05),
            FakeProvider("notion", [NOTION_HIT], delay=0.02),
            FakeProvider("google_drive", [DRIVE_HIT]),
        ]
        response = await FederatedSearch(providers).search(
            "standup", _creds("slack", "notion", "google_drive")
        )
        assert response.merged == [SLACK_HIT, NOTION_HIT, DRIVE_HIT]

    @pytest.mark.asyncio
    async def test_merge_order_ignores_registration_order(self):
        providers = [
            FakeProvider("google_drive", [DRIVE_HIT]),
            FakeProvider("notion", [NOTION_HIT]),
            FakeProvider("slack", [SLACK_HIT]),
        ]
        response = await FederatedSearch(providers).search(
            "standup", _creds("slack", "notion", "google_drive")
        )
        assert response.merged == [SLACK_HIT, NOTION_HIT, DRIVE_HIT]

    @pytest.mark.asyncio
    async def test_fan_out_breakdown_reports_search_failed(self):
        slack = FakeProvider("slack", [SLACK_HIT])
        with patch("search.aggregator.asyncio.gather", side_effect=RuntimeError("loop closed")):
            response = await FederatedSearch([slack]).search("standup", _creds("slack"))

        assert response.error == SEARCH_FAILED_MESSAGE
        assert response.query == "standup"


class TestRecentMessages:
    @pytest.mark.asyncio
    async def test_delegates_to_slack_wildcard_search(self):
        slack = SlackSearchProvider()
        slack.search = AsyncMock(return_value=[SLACK_HIT])

        messages = await FederatedSearch([slack]).recent_messages(_creds("slack"))

        assert messages == [SLACK_HIT]
        slack.search.assert_awaited_once()
        assert slack.search.await_args.args[0] == "*"

    @pytest.mark.asyncio
    async def test_without_slack_credential_is_empty(self):
        slack = SlackSearchProvider()
        slack.search = AsyncMock(return_value=[SLACK_HIT])
        assert await FederatedSearch([slack]).recent_messages(_creds("notion")) == []
        slack.search.assert_not_awaited()
