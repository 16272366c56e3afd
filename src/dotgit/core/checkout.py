"""Run ``git checkout`` in the reconstructed repository."""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from .errors import CheckoutError

logger = logging.getLogger(__name__)


def git_checkout(repo_dir: Path | str, tolerate_errors: bool) -> bool:
    """Restore the working tree of *repo_dir* from its index.

    Returns True when git exits cleanly. A failing checkout raises
    ``CheckoutError`` unless *tolerate_errors* is set, in which case it
    is logged and False is returned. A missing ``git`` binary is always
    an error.
    """
    git = shutil.which("git")
    if git is None:
        raise CheckoutError("git executable not found; install git to check out the tree")

    try:
        result = subprocess.run(
            [git, "checkout", "."],
            cwd=str(repo_dir),
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        raise CheckoutError(f"Failed to run git checkout: {exc}") from exc

    if result.returncode == 0:
        return True

    message = (
        f"git checkout exited with status {result.returncode}: "
        f"{result.stderr.strip()[:500]}"
    )
    if tolerate_errors:
        logger.warning("%s (some files from the tree may be missing)", message)
        return False
    raise CheckoutError(message)
