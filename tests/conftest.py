"""
Shared test configuration and fixtures for ATPI tests.

Provides a fake aiohttp ClientSession that serves canned responses by URL and records every request, so tests can
assert both on results and on which network calls were (or were not) made.
"""

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import aiohttp
import pytest


class FakeResponse:
    def __init__(
        self,
        status: int = 200,
        body: Union[str, bytes] = "",
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.status = status
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        self.headers = headers or {}

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "FakeResponse":
        return cls(status=status, body=json.dumps(data), headers={"Content-Type": "application/json"})

    async def read(self) -> bytes:
        return self._body


Route = Union[FakeResponse, BaseException, Callable[[str], Any]]


class _FakeRequestContext:
    def __init__(self, session: "FakeClientSession", url: str) -> None:
        self._session = session
        self._url = url

    async def __aenter__(self) -> FakeResponse:
        route = self._session.route_for(self._url)
        if isinstance(route, BaseException):
            raise route
        if callable(route):
            result = route(self._url)
            if asyncio.iscoroutine(result):
                result = await result
            if isinstance(result, BaseException):
                raise result
            return result
        return route

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        return False


class FakeClientSession:
    """Stand-in for aiohttp.ClientSession.get.

    Routes are matched on the exact URL first, then on the longest registered prefix. Unmatched URLs fail like an
    unreachable host.
    """

    def __init__(self, routes: Optional[Dict[str, Route]] = None) -> None:
        self.routes: Dict[str, Route] = dict(routes or {})
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def route_for(self, url: str) -> Route:
        if url in self.routes:
            return self.routes[url]
        matches = [prefix for prefix in self.routes if url.startswith(prefix)]
        if matches:
            return self.routes[max(matches, key=len)]
        return aiohttp.ClientConnectionError(f"no route to {url}")

    def get(self, url: str, **kwargs: Any) -> _FakeRequestContext:
        self.calls.append((url, kwargs))
        return _FakeRequestContext(self, url)

    @property
    def urls(self) -> List[str]:
        return [url for url, _ in self.calls]


def hang(seconds: float = 10.0) -> Callable[[str], Any]:
    """Route that never answers within a short test timeout."""

    async def _hang(url: str) -> FakeResponse:
        await asyncio.sleep(seconds)
        return FakeResponse(status=200)

    return _hang


@pytest.fixture
def fake_session() -> FakeClientSession:
    return FakeClientSession()
