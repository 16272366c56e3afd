"""Crawl a ``.git`` directory exposed through directory listings.

Each wave hands the current frontier to the bulk dispatcher. Files are
written to disk and produce nothing further; directories (a 301/302
answer, or a path that already ends in ``/``) are listed and every entry
becomes a candidate for the next wave. The crawl stops when a wave
produces no unseen path.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .dispatcher import BulkDispatcher
from .fetcher import Fetcher, MirrorWriter, classify, decode_text, is_html
from .models import FetchOutcome, OutcomeKind, ResponseKind
from .parser import list_entries

logger = logging.getLogger(__name__)

LISTING_SEEDS = (".git", ".gitignore")


@dataclass
class CrawlReport:
    """What a listing crawl did."""

    waves: int = 0
    visited: set[str] = field(default_factory=set)
    delivered: list[str] = field(default_factory=list)


class ListingCrawler:
    """Wave-by-wave crawler for servers with directory indexes enabled."""

    def __init__(
        self,
        fetcher: Fetcher,
        writer: MirrorWriter,
        dispatcher: BulkDispatcher,
    ) -> None:
        self.fetcher = fetcher
        self.writer = writer
        self.dispatcher = dispatcher

    async def list_directory(self, path: str) -> list[str]:
        """Fetch a directory index page and return its entries as paths."""
        if not path.endswith("/"):
            path += "/"
        response = await self.fetcher.get(path)
        if classify(response) != ResponseKind.OK:
            logger.warning(
                "%s responded with status code %d",
                self.fetcher.target.url_for(path), response.status_code,
            )
            return []
        if not is_html(response):
            logger.warning(
                "%s responded without content type text/html",
                self.fetcher.target.url_for(path),
            )
        return [f"{path}{entry}" for entry in list_entries(decode_text(response))]

    async def visit(self, path: str) -> tuple[FetchOutcome, list[str]]:
        """Process one path, returning its outcome and any child paths."""
        if path.endswith("/"):
            children = await self.list_directory(path)
            return FetchOutcome.redirected(path, path), children

        response = await self.fetcher.get(path)
        kind = classify(response)
        if kind == ResponseKind.REDIRECT:
            follow = f"{path}/"
            return FetchOutcome.redirected(path, follow), await self.list_directory(follow)
        if kind == ResponseKind.OK:
            await self.writer.write(path, response.content)
            return FetchOutcome.delivered(path, len(response.content)), []

        reason = f"responded with status code {response.status_code}"
        logger.warning("%s %s", self.fetcher.target.url_for(path), reason)
        return FetchOutcome.skipped(path, reason), []

    async def crawl(self, seeds: tuple[str, ...] | list[str] = LISTING_SEEDS) -> CrawlReport:
        """Run waves until the frontier is empty."""
        report = CrawlReport()
        frontier = set(seeds)
        while frontier:
            report.waves += 1
            report.visited |= frontier
            logger.debug("Listing wave %d: %d path(s)", report.waves, len(frontier))

            results = await self.dispatcher.run(sorted(frontier), self.visit)

            next_frontier: set[str] = set()
            for outcome, children in results:
                if outcome.kind == OutcomeKind.DELIVERED:
                    report.delivered.append(outcome.path)
                next_frontier.update(children)
            frontier = next_frontier - report.visited
        return report
