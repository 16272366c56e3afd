"""Enums and pydantic models passed between dotgit components."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class DumpMode(str, Enum):
    """Strategy chosen after probing the target."""
    LISTING = "listing"
    BLIND = "blind"


class DumpState(str, Enum):
    """States of the orchestrator."""
    INIT = "init"
    PROBING = "probing"
    LISTING = "listing"
    BLIND = "blind"
    DONE = "done"


class ResponseKind(str, Enum):
    """How a response status is interpreted by the crawlers."""
    OK = "ok"
    REDIRECT = "redirect"
    OTHER = "other"


class OutcomeKind(str, Enum):
    """Result of one fetch-and-process sequence."""
    DELIVERED = "delivered"
    REDIRECTED = "redirected"
    SKIPPED = "skipped"


class Stage(str, Enum):
    """Steps recorded by the orchestrator, in the order they ran."""
    PROBE = "probe"
    LISTING_CRAWL = "listing_crawl"
    KNOWN_FILES = "known_files"
    REF_DISCOVERY = "ref_discovery"
    PACK_DISCOVERY = "pack_discovery"
    OBJECT_RECONCILIATION = "object_reconciliation"
    CHECKOUT = "checkout"


# ---------------------------------------------------------------------------
# Fetch outcome
# ---------------------------------------------------------------------------

class FetchOutcome(BaseModel):
    """What happened to a single path.

    ``DELIVERED`` carries the number of bytes written, ``REDIRECTED``
    carries the follow-up path (a directory index), ``SKIPPED`` carries
    the reason.
    """

    kind: OutcomeKind
    path: str
    size: int = 0
    follow: Optional[str] = None
    reason: str = ""

    @classmethod
    def delivered(cls, path: str, size: int) -> "FetchOutcome":
        return cls(kind=OutcomeKind.DELIVERED, path=path, size=size)

    @classmethod
    def redirected(cls, path: str, follow: str) -> "FetchOutcome":
        return cls(kind=OutcomeKind.REDIRECTED, path=path, follow=follow)

    @classmethod
    def skipped(cls, path: str, reason: str) -> "FetchOutcome":
        return cls(kind=OutcomeKind.SKIPPED, path=path, reason=reason)


# ---------------------------------------------------------------------------
# Run result
# ---------------------------------------------------------------------------

class DumpResult(BaseModel):
    """Summary of a finished run."""

    base_url: str
    mode: Optional[DumpMode] = None
    stages: list[Stage] = Field(default_factory=list)
    files_written: int = 0
    objects_scheduled: int = 0
    checkout_ok: Optional[bool] = None

    @property
    def tolerate_errors(self) -> bool:
        return self.mode == DumpMode.BLIND
