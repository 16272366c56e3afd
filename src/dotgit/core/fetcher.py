"""Fetch files relative to a target's base URL.

The fetch path is built from two layers that can be tested on their own:

1. ``RetryPolicy`` re-issues a request on transport errors, sleeping
   with exponential backoff and jitter between attempts.
2. ``with_deadline`` bounds the whole retry sequence; once it expires
   the request is abandoned no matter how many attempts are left.

Redirects are never followed: a 301/302 for a directory is meaningful to
the listing crawler, so it is handed back as an ordinary response.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import httpx

from .errors import FetchError, FetchTimeout, UndecodableBody, UnsafePath
from .models import FetchOutcome, ResponseKind
from .target import Target, is_safe_path

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_RETRIES = 3
DEFAULT_TIMEOUT = 10.0
_BASE_DELAY = 0.010
_BACKOFF_FACTOR = 10
_REDIRECT_STATUSES = (301, 302)


# ---------------------------------------------------------------------------
# Retry + deadline
# ---------------------------------------------------------------------------

@dataclass
class RetryPolicy:
    """Exponential backoff with full jitter.

    ``attempts`` is the total number of tries. The delay before try
    ``n + 1`` is ``base_delay * factor ** n``, scaled by a random factor
    in ``[0, 1)`` when *jitter* is on.
    """

    attempts: int = DEFAULT_RETRIES
    base_delay: float = _BASE_DELAY
    factor: float = _BACKOFF_FACTOR
    jitter: bool = True

    def delays(self) -> list[float]:
        out: list[float] = []
        for n in range(max(1, self.attempts) - 1):
            delay = self.base_delay * self.factor ** n
            if self.jitter:
                delay *= random.random()
            out.append(delay)
        return out

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        retry_on: tuple[type[BaseException], ...] = (httpx.TransportError,),
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        label: str = "",
    ) -> T:
        """Run *operation* until it succeeds or the attempts run out.

        The last exception is re-raised once every attempt has failed.
        """
        delays = self.delays()
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except retry_on as exc:
                if attempt > len(delays):
                    raise
                wait = delays[attempt - 1]
                logger.debug(
                    "Request %s failed (attempt %d/%d): %s, retrying in %.3fs",
                    label, attempt, len(delays) + 1, exc, wait,
                )
                await sleep(wait)


async def with_deadline(awaitable: Awaitable[T], seconds: float, *, url: str = "") -> T:
    """Await *awaitable*, raising ``FetchTimeout`` after *seconds*."""
    try:
        return await asyncio.wait_for(awaitable, timeout=seconds)
    except asyncio.TimeoutError as exc:
        raise FetchTimeout(url, f"timed out after {seconds:g}s") from exc


# ---------------------------------------------------------------------------
# Response helpers
# ---------------------------------------------------------------------------

def classify(response: httpx.Response) -> ResponseKind:
    """Map a response status onto the crawler's three cases."""
    if response.status_code == 200:
        return ResponseKind.OK
    if response.status_code in _REDIRECT_STATUSES:
        return ResponseKind.REDIRECT
    return ResponseKind.OTHER


def is_html(response: httpx.Response) -> bool:
    """Return True if the response declares an HTML body."""
    content_type = response.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower() == "text/html"


def has_empty_length(response: httpx.Response) -> bool:
    return response.headers.get("content-length", "").strip() == "0"


def decode_text(response: httpx.Response) -> str:
    """Decode a body that must be UTF-8 text."""
    try:
        return response.content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise UndecodableBody(f"{response.request.url} is not valid UTF-8: {exc}") from exc


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------

class Fetcher:
    """Issues GET requests for paths relative to a ``Target``.

    Parameters
    ----------
    target
        Base URL every path is resolved against.
    retries
        Total attempts per request on transport errors.
    timeout
        Deadline in seconds for the whole attempt sequence.
    transport
        Optional ``httpx`` transport, mainly for tests
        (``httpx.MockTransport``).
    """

    def __init__(
        self,
        target: Target,
        *,
        retries: int = DEFAULT_RETRIES,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self.target = target
        self.timeout = timeout
        self.policy = RetryPolicy(attempts=retries)
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            transport=transport,
            follow_redirects=False,
            timeout=httpx.Timeout(timeout),
        )

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -- public API ----------------------------------------------------------

    async def get(self, path: str) -> httpx.Response:
        """Fetch *path* with retries under the overall deadline."""
        url = self.target.url_for(path)

        async def attempt() -> httpx.Response:
            return await self._client.get(url)

        try:
            response = await with_deadline(
                self.policy.call(attempt, sleep=self._sleep, label=url),
                self.timeout,
                url=url,
            )
        except httpx.TransportError as exc:
            raise FetchError(
                url, f"failed after {self.policy.attempts} attempt(s): {exc}"
            ) from exc
        except httpx.HTTPError as exc:
            # Not retried: a body that fails to decode will fail again
            raise FetchError(url, f"request failed: {exc}") from exc

        logger.debug("GET %s -> %d", url, response.status_code)
        return response


# ---------------------------------------------------------------------------
# Disk mirror
# ---------------------------------------------------------------------------

class MirrorWriter:
    """Writes fetched files under *root* at their repository path."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self.files_written = 0

    def local_path(self, path: str) -> Path:
        if not is_safe_path(path) or path.endswith("/"):
            raise UnsafePath(f"Cannot map {path!r} to a file under {self.root}")
        return self.root.joinpath(*path.split("/"))

    async def write(self, path: str, data: bytes) -> Path:
        destination = self.local_path(path)
        await asyncio.to_thread(_write_file, destination, data)
        self.files_written += 1
        return destination


def _write_file(destination: Path, data: bytes) -> None:
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(data)


async def fetch_file(fetcher: Fetcher, writer: MirrorWriter, path: str) -> FetchOutcome:
    """Download a single file known by name.

    Only a 200 with a non-HTML body is written; an HTML page at a file
    path is almost always the server's "not found" page.
    """
    response = await fetcher.get(path)
    url = fetcher.target.url_for(path)
    kind = classify(response)
    if kind != ResponseKind.OK:
        reason = f"responded with status code {response.status_code}"
    elif is_html(response):
        reason = "responded with HTML, probably not found"
    else:
        await writer.write(path, response.content)
        return FetchOutcome.delivered(path, len(response.content))

    logger.warning("%s %s", url, reason)
    return FetchOutcome.skipped(path, reason)
