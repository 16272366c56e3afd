"""Reconcile object hashes found in downloaded metadata.

Once refs, logs, the index and pack indexes are on disk, every object
hash they mention is gathered into one ``ObjectSet``:

- hashes in ``packed-refs``, ``info/refs``, ``FETCH_HEAD``, ``ORIG_HEAD``
  and every file under ``refs/`` and ``logs/``;
- blob hashes listed in the git index (read with dulwich);
- object hashes listed in every ``objects/pack/pack-*.idx``.

The null hash is dropped and the rest become loose-object paths.
Gathering happens in a single thread after all downloads are finished,
so the set is never shared between concurrent tasks.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

from dulwich.index import Index

from .errors import MalformedPackIndex
from .pack_index import read_pack_index
from .parser import NULL_HASH, find_object_hashes, find_pack_hashes

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

METADATA_FILES = (
    ".git/packed-refs",
    ".git/info/refs",
    ".git/FETCH_HEAD",
    ".git/ORIG_HEAD",
)
INDEX_FILE = ".git/index"
INFO_PACKS = ".git/objects/info/packs"
PACK_DIR = ".git/objects/pack"

_HEX_SHA_RE = re.compile(r"^[0-9a-f]{40}$")


def loose_object_path(sha: str) -> str:
    """Repository path of the loose object *sha*."""
    return f".git/objects/{sha[:2]}/{sha[2:]}"


def _local(root: Path, path: str) -> Path:
    return root.joinpath(*path.split("/"))


# ---------------------------------------------------------------------------
# Object set
# ---------------------------------------------------------------------------

class ObjectSet:
    """Union of object hashes from several sources.

    ``add`` may be called any number of times; ``finalize`` removes the
    null hash, after which ``paths`` gives the download list.
    """

    def __init__(self) -> None:
        self._hashes: set[str] = set()
        self.sources: dict[str, int] = {}

    def add(self, source: str, hashes: Iterable[str]) -> None:
        accepted = {h.lower() for h in hashes if _HEX_SHA_RE.match(h.lower())}
        self.sources[source] = self.sources.get(source, 0) + len(accepted)
        self._hashes |= accepted

    def finalize(self) -> frozenset[str]:
        self._hashes.discard(NULL_HASH)
        return frozenset(self._hashes)

    def paths(self) -> list[str]:
        return [loose_object_path(sha) for sha in sorted(self.finalize())]

    def __contains__(self, sha: object) -> bool:
        return sha in self._hashes

    def __len__(self) -> int:
        return len(self._hashes)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

def pack_paths(root: Path) -> list[str]:
    """``.idx``/``.pack`` paths for every pack named in ``objects/info/packs``."""
    info = _local(root, INFO_PACKS)
    if not info.is_file():
        return []
    try:
        text = info.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        logger.warning("Could not read %s: %s", info, exc)
        return []

    paths: list[str] = []
    for sha in dict.fromkeys(find_pack_hashes(text)):
        paths.append(f"{PACK_DIR}/pack-{sha}.idx")
        paths.append(f"{PACK_DIR}/pack-{sha}.pack")
    return paths


def metadata_files(root: Path) -> list[Path]:
    """Top-level metadata files that exist under *root*."""
    return [p for p in (_local(root, path) for path in METADATA_FILES) if p.is_file()]


def files_under(root: Path, directory: str) -> list[Path]:
    base = _local(root, directory)
    if not base.is_dir():
        return []
    return sorted(p for p in base.rglob("*") if p.is_file())


def scan_files(paths: Iterable[Path]) -> set[str]:
    """Object hashes mentioned in the text of *paths*."""
    hashes: set[str] = set()
    for path in paths:
        try:
            text = path.read_bytes().decode("utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
            continue
        hashes |= find_object_hashes(text)
    return hashes


def read_index_hashes(path: Path) -> set[str]:
    """Blob hashes listed in the git index at *path*."""
    if not path.is_file():
        return set()
    try:
        index = Index(str(path))
        return {sha.decode("ascii") for _name, sha, _mode in index.iterobjects()}
    except Exception as exc:
        logger.warning("Could not read git index %s: %s", path, exc)
        return set()


def pack_index_hashes(root: Path) -> set[str]:
    hashes: set[str] = set()
    pack_dir = _local(root, PACK_DIR)
    if not pack_dir.is_dir():
        return hashes
    for idx in sorted(pack_dir.glob("pack-*.idx")):
        try:
            hashes.update(read_pack_index(idx))
        except (MalformedPackIndex, OSError) as exc:
            logger.warning("Skipping pack index %s: %s", idx, exc)
    return hashes


def collect_objects(root: Path | str) -> ObjectSet:
    """Build the final object set from everything under *root*."""
    root = Path(root)
    objects = ObjectSet()
    objects.add("metadata", scan_files(metadata_files(root)))
    objects.add("refs", scan_files(files_under(root, ".git/refs")))
    objects.add("logs", scan_files(files_under(root, ".git/logs")))
    objects.add("index", read_index_hashes(_local(root, INDEX_FILE)))
    objects.add("packs", pack_index_hashes(root))
    objects.finalize()
    logger.info(
        "Found %d object(s) (%s)",
        len(objects),
        ", ".join(f"{name}: {count}" for name, count in objects.sources.items()),
    )
    return objects
