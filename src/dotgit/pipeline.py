"""Orchestration pipeline — probes the target and drives the crawlers.

States::

    INIT -> PROBING -> LISTING | BLIND -> DONE

Probing checks that ``.git/HEAD`` really is a git HEAD file, then looks
at the ``.git/`` index page. If it lists ``HEAD`` the server exposes
directory listings and the whole tree is crawled. Otherwise files are
reconstructed blindly, in a fixed order where each stage relies on files
fetched by the previous one:

1. well-known files (index, ``objects/info/packs``, hooks, ...);
2. ref discovery (refs and reflogs named inside fetched metadata);
3. pack discovery (``.idx``/``.pack`` pairs from ``objects/info/packs``);
4. object reconciliation and download of every loose object.

Finally the tree is checked out. Blind mode can never prove that every
object was found, so its checkout tolerates errors.
"""

from __future__ import annotations

import asyncio
import logging
import os
from functools import partial
from pathlib import Path
from typing import Callable

import httpx

from .config import DumpConfig
from .core.checkout import git_checkout
from .core.crawler import ListingCrawler
from .core.dispatcher import BulkDispatcher
from .core.errors import DumperError, NotAGitHead, OutputNotWritable, UndecodableBody
from .core.fetcher import (
    Fetcher,
    MirrorWriter,
    classify,
    decode_text,
    fetch_file,
    has_empty_length,
    is_html,
)
from .core.models import DumpMode, DumpResult, DumpState, ResponseKind, Stage
from .core.objects import collect_objects, pack_paths
from .core.parser import is_git_head, list_entries, lists_head
from .core.refs import KNOWN_FILES, RefDiscovery
from .core.target import Target

logger = logging.getLogger(__name__)

# (repository directory, tolerate errors) -> checkout succeeded
Checkout = Callable[[Path, bool], bool]

HEAD_PATH = ".git/HEAD"
GIT_DIR_INDEX = ".git/"


def prepare_output_dir(path: Path | str) -> Path:
    """Create *path* if needed and make sure files can be written there."""
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise OutputNotWritable(f"Cannot create output directory {path}: {exc}") from exc
    if not path.is_dir() or not os.access(path, os.W_OK | os.X_OK):
        raise OutputNotWritable(f"Output directory {path} is not writable")
    return path


class GitDumper:
    """Reconstructs a repository from an exposed ``.git`` directory.

    Usage::

        dumper = GitDumper(DumpConfig(url="https://example.com/.git", output_dir=out))
        result = await dumper.run()
        print(result.mode, result.files_written)

    Parameters
    ----------
    config
        Run options. The URL is normalised immediately, so an invalid
        target fails here with ``InvalidTarget``.
    transport
        Optional ``httpx`` transport handed to the fetcher.
    checkout
        Callable run once the files are on disk; *None* skips checkout.
    """

    def __init__(
        self,
        config: DumpConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        checkout: Checkout | None = git_checkout,
    ) -> None:
        self.config = config
        self.target = Target.from_url(config.url)
        self.state = DumpState.INIT
        self._transport = transport
        self._checkout = checkout if config.checkout else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self) -> DumpResult:
        """Probe the target, download everything reachable and check out."""
        root = prepare_output_dir(self.config.output_dir)
        result = DumpResult(base_url=self.target.url)
        writer = MirrorWriter(root)

        async with Fetcher(
            self.target,
            retries=self.config.retries,
            timeout=self.config.timeout,
            transport=self._transport,
        ) as fetcher:
            self.state = DumpState.PROBING
            result.stages.append(Stage.PROBE)
            head = await self.probe(fetcher)
            logger.info("%s/%s is a git HEAD (%s)", self.target, HEAD_PATH, head)

            result.mode = await self.detect_mode(fetcher)
            if result.mode == DumpMode.LISTING:
                self.state = DumpState.LISTING
                await self._run_listing(fetcher, writer, result)
            else:
                self.state = DumpState.BLIND
                await self._run_blind(fetcher, writer, result)

        result.files_written = writer.files_written

        if self._checkout is not None:
            result.stages.append(Stage.CHECKOUT)
            if result.tolerate_errors:
                logger.info("Performing a lenient git checkout; blind mode may have missed objects")
            else:
                logger.info("Performing a strict git checkout")
            result.checkout_ok = await asyncio.to_thread(
                self._checkout, root, result.tolerate_errors
            )

        self.state = DumpState.DONE
        return result

    async def probe(self, fetcher: Fetcher) -> str:
        """Fetch ``.git/HEAD`` and return its stripped contents.

        Raises ``NotAGitHead`` if the file is missing, empty, HTML, not
        text, or neither a symbolic ref nor a commit hash.
        """
        url = f"{self.target}/{HEAD_PATH}"
        try:
            response = await fetcher.get(HEAD_PATH)
        except DumperError as exc:
            raise NotAGitHead(f"Could not fetch {url}: {exc}") from exc

        if classify(response) != ResponseKind.OK:
            raise NotAGitHead(f"{url} responded with status code {response.status_code}")
        if has_empty_length(response):
            raise NotAGitHead(f"{url} responded with content-length equal to zero")
        if is_html(response):
            raise NotAGitHead(f"{url} responded with HTML")
        try:
            text = decode_text(response)
        except UndecodableBody as exc:
            raise NotAGitHead(f"{url} is not a text file") from exc
        if not is_git_head(text):
            raise NotAGitHead(f"{url} is not a git HEAD")
        return text.strip()

    async def detect_mode(self, fetcher: Fetcher) -> DumpMode:
        """``LISTING`` if the ``.git/`` index page lists ``HEAD``."""
        url = f"{self.target}/{GIT_DIR_INDEX}"
        logger.info("Testing %s", url)
        try:
            response = await fetcher.get(GIT_DIR_INDEX)
            if classify(response) != ResponseKind.OK:
                logger.info("%s responded with status code %d", url, response.status_code)
                return DumpMode.BLIND
            if not is_html(response):
                logger.warning("%s responded without content type text/html", url)
            entries = list_entries(decode_text(response))
        except DumperError as exc:
            logger.warning("Could not read %s: %s", url, exc)
            return DumpMode.BLIND
        return DumpMode.LISTING if lists_head(entries) else DumpMode.BLIND

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    async def _run_listing(
        self, fetcher: Fetcher, writer: MirrorWriter, result: DumpResult
    ) -> None:
        result.stages.append(Stage.LISTING_CRAWL)
        logger.info("Recursively downloading %s/%s", self.target, GIT_DIR_INDEX)
        crawler = ListingCrawler(
            fetcher, writer, BulkDispatcher(self.config.jobs, label="resource")
        )
        report = await crawler.crawl()
        logger.info(
            "Listing crawl finished after %d wave(s), %d file(s) downloaded",
            report.waves, len(report.delivered),
        )

    async def _run_blind(
        self, fetcher: Fetcher, writer: MirrorWriter, result: DumpResult
    ) -> None:
        root = writer.root
        files = BulkDispatcher(self.config.jobs, label="resource")
        download = partial(fetch_file, fetcher, writer)

        result.stages.append(Stage.KNOWN_FILES)
        logger.info("Fetching common files")
        await files.run(KNOWN_FILES, download)

        result.stages.append(Stage.REF_DISCOVERY)
        logger.info("Finding refs")
        refs = RefDiscovery(
            fetcher, writer, BulkDispatcher(self.config.jobs, label="reference")
        )
        report = await refs.discover()
        logger.info(
            "Ref discovery finished after %d wave(s), %d of %d candidate(s) found",
            report.waves, len(report.found), len(report.requested),
        )

        result.stages.append(Stage.PACK_DISCOVERY)
        logger.info("Finding packs")
        packs = await asyncio.to_thread(pack_paths, root)
        await files.run(packs, download)

        result.stages.append(Stage.OBJECT_RECONCILIATION)
        logger.info("Finding objects")
        objects = await asyncio.to_thread(collect_objects, root)
        object_paths = objects.paths()
        result.objects_scheduled = len(object_paths)
        logger.info("Fetching %d object(s)", len(object_paths))
        await BulkDispatcher(self.config.jobs, label="object").run(object_paths, download)


def dump(config: DumpConfig, **kwargs) -> DumpResult:
    """Synchronous wrapper around ``GitDumper.run``."""
    return asyncio.run(GitDumper(config, **kwargs).run())
