"""Fixtures for the Lightning bindings: credentials on disk and a routing mock API."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest


class FakeNodeApi:
    """Routes ``(method, path)`` to canned responses and records requests.

    A route value is a JSON body, an ``httpx.Response`` or a callable taking
    the request.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, response: Any) -> None:
        self.routes[(method, path)] = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": f"no route {request.method} {request.url.path}"})
        if isinstance(route, Callable):
            route = route(request)
        if isinstance(route, httpx.Response):
            return route
        return httpx.Response(200, json=route)

    def last(self, method: str, path: str) -> httpx.Request:
        return [r for r in self.requests if r.method == method and r.url.path == path][-1]


@pytest.fixture
def api() -> FakeNodeApi:
    return FakeNodeApi()


@pytest.fixture
def transport(api) -> httpx.MockTransport:
    return httpx.MockTransport(api)


@pytest.fixture
def credentials(network):
    """Write the macaroons the LND and Core Lightning nodes read."""
    alice, bob = network.nodes.lightning
    for path in (alice.paths.admin_macaroon, bob.paths.macaroon):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_bytes(b"\x02\x01mac")
    return network
