"""Run configuration for dotgit."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .core.dispatcher import DEFAULT_JOBS
from .core.fetcher import DEFAULT_RETRIES, DEFAULT_TIMEOUT

MAX_VERBOSITY = 2


@dataclass
class DumpConfig:
    """Options for one reconstruction run."""

    url: str
    output_dir: Path = field(default_factory=Path.cwd)
    jobs: int = DEFAULT_JOBS
    retries: int = DEFAULT_RETRIES
    timeout: float = DEFAULT_TIMEOUT
    verbose: int = 0
    checkout: bool = True

    def __post_init__(self) -> None:
        self.output_dir = Path(self.output_dir)
        if self.jobs < 1:
            raise ValueError(f"jobs must be at least 1, got {self.jobs}")
        if self.retries < 1:
            raise ValueError(f"retries must be at least 1, got {self.retries}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if not 0 <= self.verbose <= MAX_VERBOSITY:
            raise ValueError(f"verbose must be between 0 and {MAX_VERBOSITY}, got {self.verbose}")
