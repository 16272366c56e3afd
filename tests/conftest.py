"""Shared fixtures: an in-memory web server exposing a ``.git`` tree."""

from __future__ import annotations

from collections import Counter

import httpx
import pytest

from dotgit.core.dispatcher import BulkDispatcher
from dotgit.core.fetcher import Fetcher, MirrorWriter
from dotgit.core.target import Target

BASE_URL = "http://example.test"


class FakeServer:
    """Routes keyed by URL path, served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, dict[str, str], bytes]] = {}
        self.requests: list[str] = []

    # -- route helpers -------------------------------------------------------

    def file(
        self,
        path: str,
        body: bytes | str,
        content_type: str = "application/octet-stream",
    ) -> None:
        data = body.encode("utf-8") if isinstance(body, str) else body
        self.routes["/" + path] = (200, {"content-type": content_type}, data)

    def redirect(self, path: str) -> None:
        self.routes["/" + path] = (301, {"location": f"{BASE_URL}/{path}/"}, b"")

    def listing(self, path: str, entries: list[str], *, extra: str = "") -> None:
        links = "".join(f'<a href="{e}">{e}</a>\n' for e in entries)
        page = (
            "<html><body><h1>Index</h1>"
            '<a href="?C=N;O=D">Name</a> <a href="/">root</a> <a href="../">Parent</a>\n'
            f"{links}{extra}</body></html>"
        )
        self.routes["/" + path] = (200, {"content-type": "text/html; charset=utf-8"}, page.encode())

    def directory(self, path: str, entries: list[str]) -> None:
        """A directory: bare path redirects, ``path/`` serves the listing."""
        self.redirect(path)
        self.listing(path + "/", entries)

    # -- transport -----------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(path)
        status, headers, body = self.routes.get(
            path, (404, {"content-type": "text/html"}, b"<html>Not Found</html>")
        )
        return httpx.Response(status, headers=headers, content=body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def hits(self) -> Counter:
        return Counter(self.requests)


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def target() -> Target:
    return Target.from_url(BASE_URL + "/.git/")


@pytest.fixture
def writer(tmp_path) -> MirrorWriter:
    return MirrorWriter(tmp_path)


@pytest.fixture
def dispatcher() -> BulkDispatcher:
    return BulkDispatcher(4)


@pytest.fixture
def make_fetcher():
    """Factory for fetchers bound to a ``FakeServer``."""

    def factory(target: Target, server: FakeServer, **kwargs) -> Fetcher:
        return Fetcher(target, transport=server.transport, **kwargs)

    return factory
