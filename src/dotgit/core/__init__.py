"""Crawl-and-reconstruct engine.

Modules
-------
target      — base URL normalisation and path safety
fetcher     — retrying, deadline-bound HTTP fetches and the disk mirror
dispatcher  — bounded-concurrency bulk runner
parser      — directory-listing HTML and git metadata scanners
crawler     — wave-by-wave crawl of directory listings
refs        — fixed-point ref and reflog discovery
pack_index  — ``.idx`` decoder
objects     — object-hash reconciliation
checkout    — final ``git checkout``
"""

from .errors import (
    DumperError,
    FatalError,
    FetchError,
    FetchTimeout,
    InvalidTarget,
    MalformedPackIndex,
    NotAGitHead,
)
from .models import DumpMode, DumpResult, FetchOutcome
from .target import Target
