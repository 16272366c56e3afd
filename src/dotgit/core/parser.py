"""Parse directory-listing HTML and scan git metadata text.

Directory listings are read with BeautifulSoup; only ``<a href>``
values matter. Git metadata files are plain text scanned with the
regular expressions below.
"""

from __future__ import annotations

import posixpath
import re
from urllib.parse import unquote, urlsplit

from bs4 import BeautifulSoup

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# Reference names, e.g. "refs/heads/main" or "refs/remotes/origin/*"
REFS_RE = re.compile(r"refs(/[A-Za-z0-9_.\-*]+)+")

# Contents of a HEAD file: a symbolic ref or a detached commit hash
HEAD_RE = re.compile(r"^(ref:.*|[0-9a-f]{40})$")

# Pack names listed in objects/info/packs
PACK_RE = re.compile(r"pack-([a-f0-9]{40})\.pack")

# Object hashes bounded by whitespace or the text edges; "^" marks a
# peeled tag line in packed-refs
OBJECT_RE = re.compile(r"(?<![^\s^])([0-9a-f]{40})(?!\S)")

NULL_HASH = "0" * 40


# ---------------------------------------------------------------------------
# HTML listings
# ---------------------------------------------------------------------------

def normalize_href(href: str) -> str | None:
    """Turn an anchor ``href`` into a relative listing entry.

    Returns *None* for absolute, query-only, fragment-only or external
    links and for anything that climbs above the listed directory. A
    trailing slash is kept so sub-directories stay recognisable.
    """
    href = href.strip()
    if not href or href[0] in "/?#":
        return None

    parts = urlsplit(href)
    if parts.scheme or parts.netloc:
        return None

    path = unquote(parts.path)
    if not path or path.startswith("/"):
        return None

    normalized = posixpath.normpath(path)
    if normalized == "." or normalized == ".." or normalized.startswith("../"):
        return None
    if path.endswith("/"):
        normalized += "/"
    return normalized


def list_entries(html: str) -> list[str]:
    """Return the unique relative entries linked from a listing page."""
    soup = BeautifulSoup(html, "html.parser")
    entries: list[str] = []
    seen: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        entry = normalize_href(anchor["href"])
        if entry is not None and entry not in seen:
            seen.add(entry)
            entries.append(entry)
    return entries


def lists_head(entries: list[str]) -> bool:
    """True if a ``.git/`` listing contains the ``HEAD`` file."""
    return "HEAD" in entries


# ---------------------------------------------------------------------------
# Metadata scanners
# ---------------------------------------------------------------------------

def is_git_head(text: str) -> bool:
    return HEAD_RE.match(text.strip()) is not None


def find_refs(text: str) -> list[str]:
    """Reference names in *text*, skipping wildcard patterns."""
    return [
        match.group(0)
        for match in REFS_RE.finditer(text)
        if not match.group(0).endswith("*")
    ]


def find_object_hashes(text: str) -> set[str]:
    return set(OBJECT_RE.findall(text))


def find_pack_hashes(text: str) -> list[str]:
    return PACK_RE.findall(text)
