"""Normalise a target URL into the base URL that holds ``.git``."""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from .errors import InvalidTarget, UnsafePath

_SUPPORTED_SCHEMES = ("http", "https")
_FORBIDDEN_MARKERS = ("\\", "?", "#", "://")


def is_safe_path(path: str) -> bool:
    """Return True if *path* stays at or below the base URL.

    A single trailing slash is allowed (directory index pages).
    """
    if not path or path.startswith("/"):
        return False
    if any(marker in path for marker in _FORBIDDEN_MARKERS):
        return False
    segments = path.split("/")
    if segments[-1] == "":
        segments = segments[:-1]
    return all(seg not in ("", ".", "..") for seg in segments)


@dataclass(frozen=True)
class Target:
    """The repository's base URL, without the ``.git`` segment."""

    scheme: str
    netloc: str
    path: str

    @classmethod
    def from_url(cls, raw: str) -> "Target":
        """Build a Target from a URL that may or may not name ``.git``.

        ``http://host/app/.git/HEAD`` and ``http://host/app/`` both give
        ``http://host/app``; when no ``.git`` segment is present it is
        assumed to sit right after the given path.
        """
        parts = urlsplit(raw.strip())
        if not parts.scheme or not parts.netloc:
            raise InvalidTarget(f"{raw!r} is not an absolute URL with a path")
        if parts.scheme.lower() not in _SUPPORTED_SCHEMES:
            raise InvalidTarget(f"Unsupported URL scheme {parts.scheme!r} in {raw!r}")

        kept: list[str] = []
        for segment in parts.path.split("/"):
            if segment == ".git":
                break
            kept.append(segment)
        path = "/".join(kept).rstrip("/")
        return cls(scheme=parts.scheme.lower(), netloc=parts.netloc, path=path)

    @property
    def url(self) -> str:
        return f"{self.scheme}://{self.netloc}{self.path}"

    @property
    def segments(self) -> list[str]:
        return [seg for seg in self.path.split("/") if seg]

    def url_for(self, path: str) -> str:
        """Absolute URL for a relative repository *path*."""
        if not is_safe_path(path):
            raise UnsafePath(f"Refusing to fetch {path!r} outside {self.url}")
        return f"{self.url}/{path}"

    def __str__(self) -> str:
        return self.url
