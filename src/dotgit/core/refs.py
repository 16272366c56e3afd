"""Discover git references on servers without directory listings.

Ref names cannot be enumerated up front: custom branches, stashes and
worktree refs only show up inside metadata that has already been
fetched. Discovery therefore starts from ``REF_FILES``, scans every
fetched file for ``refs/...`` names and requests each name's value file
and reflog, wave after wave, until no new path turns up.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .dispatcher import BulkDispatcher
from .fetcher import Fetcher, MirrorWriter, classify, decode_text, is_html
from .models import FetchOutcome, OutcomeKind, ResponseKind
from .parser import find_refs
from .target import is_safe_path

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Manifests
# ---------------------------------------------------------------------------

# Files fetched once, by name
KNOWN_FILES = (
    ".gitignore",
    ".git/COMMIT_EDITMSG",
    ".git/description",
    ".git/hooks/applypatch-msg.sample",
    ".git/hooks/commit-msg.sample",
    ".git/hooks/fsmonitor-watchman.sample",
    ".git/hooks/post-commit.sample",
    ".git/hooks/post-receive.sample",
    ".git/hooks/post-update.sample",
    ".git/hooks/pre-applypatch.sample",
    ".git/hooks/pre-commit.sample",
    ".git/hooks/pre-merge-commit.sample",
    ".git/hooks/pre-push.sample",
    ".git/hooks/pre-rebase.sample",
    ".git/hooks/pre-receive.sample",
    ".git/hooks/prepare-commit-msg.sample",
    ".git/hooks/push-to-checkout.sample",
    ".git/hooks/update.sample",
    ".git/index",
    ".git/info/exclude",
    ".git/objects/info/packs",
)

# Seeds for ref discovery; each is fetched and scanned for ref names
REF_FILES = (
    ".git/FETCH_HEAD",
    ".git/HEAD",
    ".git/ORIG_HEAD",
    ".git/config",
    ".git/info/refs",
    ".git/logs/HEAD",
    ".git/logs/refs/heads/main",
    ".git/logs/refs/heads/master",
    ".git/logs/refs/remotes/origin/HEAD",
    ".git/logs/refs/remotes/origin/main",
    ".git/logs/refs/remotes/origin/master",
    ".git/logs/refs/stash",
    ".git/packed-refs",
    ".git/refs/heads/main",
    ".git/refs/heads/master",
    ".git/refs/remotes/origin/HEAD",
    ".git/refs/remotes/origin/main",
    ".git/refs/remotes/origin/master",
    ".git/refs/stash",
    ".git/refs/wip/wtree/refs/heads/master",  # Magit
    ".git/refs/wip/index/refs/heads/master",  # Magit
)


def ref_candidates(text: str) -> list[str]:
    """Value-file and reflog paths for every concrete ref named in *text*."""
    paths: list[str] = []
    for ref in find_refs(text):
        for path in (f".git/{ref}", f".git/logs/{ref}"):
            if is_safe_path(path):
                paths.append(path)
            else:
                logger.debug("Ignoring unsafe ref name %r", ref)
    return paths


@dataclass
class RefReport:
    """What a discovery run did."""

    waves: int = 0
    requested: set[str] = field(default_factory=set)
    found: set[str] = field(default_factory=set)


class RefDiscovery:
    """Fixed-point search for ref files and reflogs."""

    def __init__(
        self,
        fetcher: Fetcher,
        writer: MirrorWriter,
        dispatcher: BulkDispatcher,
    ) -> None:
        self.fetcher = fetcher
        self.writer = writer
        self.dispatcher = dispatcher

    async def scan(self, path: str) -> tuple[FetchOutcome, list[str]]:
        """Fetch *path*, store it, and return the candidate paths it names."""
        response = await self.fetcher.get(path)
        url = self.fetcher.target.url_for(path)
        if classify(response) != ResponseKind.OK:
            reason = f"responded with status code {response.status_code}"
        elif is_html(response):
            reason = "responded with HTML, probably not found"
        else:
            await self.writer.write(path, response.content)
            candidates = ref_candidates(decode_text(response))
            return FetchOutcome.delivered(path, len(response.content)), candidates

        logger.warning("%s %s", url, reason)
        return FetchOutcome.skipped(path, reason), []

    async def discover(self, seeds: tuple[str, ...] | list[str] = REF_FILES) -> RefReport:
        """Fetch seeds and everything they lead to until nothing new appears."""
        report = RefReport()
        frontier = set(seeds)
        while frontier:
            report.waves += 1
            report.requested |= frontier
            logger.debug("Ref wave %d: %d path(s)", report.waves, len(frontier))

            results = await self.dispatcher.run(sorted(frontier), self.scan)

            discovered: set[str] = set()
            for outcome, candidates in results:
                if outcome.kind == OutcomeKind.DELIVERED:
                    report.found.add(outcome.path)
                discovered.update(candidates)
            frontier = discovered - report.requested
        return report
