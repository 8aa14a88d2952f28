"""
Test helpers for mocking provider HTTP APIs with ``httpx.MockTransport``.
"""

from typing import Callable, List

import httpx


class RecordingTransport:
    """Records every request and answers with ``responder(request)``."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: List[httpx.Request] = []
        self._responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._responder(request)

    def client_factory(self) -> Callable[[], httpx.AsyncClient]:
        # A fresh client per call; callers close it with ``async with``
        return lambda: httpx.AsyncClient(transport=httpx.MockTransport(self))


def json_responder(payload, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    return lambda _request: httpx.Response(status_code, json=payload)
