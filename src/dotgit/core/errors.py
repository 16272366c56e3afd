"""Exception hierarchy shared by every dotgit component.

Three families exist:

- ``FatalError`` subclasses abort the whole run and reach the CLI.
- Per-item errors (``FetchError``, ``UndecodableBody``, ``UnsafePath``)
  are raised for a single path and stop at the bulk dispatcher.
- Parse-local errors (``MalformedPackIndex``) are caught where a local
  file is read; that source then contributes nothing.
"""

from __future__ import annotations


class DumperError(Exception):
    """Base class for all dotgit errors."""


# ---------------------------------------------------------------------------
# Fatal
# ---------------------------------------------------------------------------

class FatalError(DumperError):
    """An error that stops the run before checkout."""


class InvalidTarget(FatalError):
    """The target URL cannot be normalised into a base URL."""


class NotAGitHead(FatalError):
    """``.git/HEAD`` is missing or does not look like a git HEAD file."""


class OutputNotWritable(FatalError):
    """The output directory cannot be created or written to."""


class CheckoutError(FatalError):
    """The final ``git checkout`` step failed in strict mode."""


# ---------------------------------------------------------------------------
# Per-item
# ---------------------------------------------------------------------------

class FetchError(DumperError):
    """A request failed after its retry budget was spent."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class FetchTimeout(FetchError):
    """The overall deadline for a request expired."""


class UndecodableBody(DumperError):
    """A body that must be text is not valid UTF-8."""


class UnsafePath(DumperError, ValueError):
    """A path would resolve outside the target's base URL."""


# ---------------------------------------------------------------------------
# Parse-local
# ---------------------------------------------------------------------------

class MalformedPackIndex(DumperError):
    """A ``.idx`` file has a bad signature or ends early."""
