"""Run-wide scan configuration: built once, passed down explicitly."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field

from iocsentinel.exceptions import ConfigError

IOC_FEED_URL = (
    "https://raw.githubusercontent.com/DataDog/indicators-of-compromise/"
    "refs/heads/main/shai-hulud-2.0/consolidated_iocs.csv"
)

DEFAULT_BRANCHES: tuple[str, ...] = ("main", "master", "dev", "develop")
DEFAULT_REPO_CONCURRENCY = 10
DEFAULT_FILE_CONCURRENCY = 5
MAX_VERBOSITY = 3


def split_csv(raw: str | Iterable[str] | None, *, lower: bool = False) -> tuple[str, ...]:
    """Normalise a comma-separated option (or repeated option values) to a tuple.

    Blank entries are dropped and duplicates removed, preserving first-seen order.
    """
    if raw is None:
        return ()
    chunks = [raw] if isinstance(raw, str) else list(raw)
    seen: dict[str, None] = {}
    for chunk in chunks:
        for part in chunk.split(","):
            item = part.strip()
            if lower:
                item = item.lower()
            if item:
                seen.setdefault(item, None)
    return tuple(seen)


@dataclass(frozen=True)
class ScanConfig:
    """Immutable options for a single run.

    Local mode applies when neither ``orgs`` nor ``repos`` is set.
    """

    orgs: tuple[str, ...] = ()
    repos: tuple[str, ...] = ()
    branches: tuple[str, ...] = DEFAULT_BRANCHES
    all_branches: bool = False
    json_output: bool = False
    verbosity: int = 0
    fail_on_declared_only: bool = True
    concurrency: int = DEFAULT_REPO_CONCURRENCY
    file_concurrency: int = DEFAULT_FILE_CONCURRENCY
    root_only: bool = True
    token: str | None = field(default=None, repr=False)
    feed_url: str = IOC_FEED_URL

    @classmethod
    def from_env(cls, **overrides: object) -> ScanConfig:
        """Build a config, filling ``token`` and ``feed_url`` from the environment.

        Explicit overrides win over environment variables:
            GITHUB_TOKEN          bearer token for GitHub API calls
            IOCSENTINEL_FEED_URL  alternate IOC CSV location
        """
        values: dict[str, object] = {}
        token = (os.environ.get("GITHUB_TOKEN") or "").strip()
        if token:
            values["token"] = token
        feed_url = (os.environ.get("IOCSENTINEL_FEED_URL") or "").strip()
        if feed_url:
            values["feed_url"] = feed_url
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]

    @property
    def is_local(self) -> bool:
        return not self.orgs and not self.repos

    @property
    def mode(self) -> str:
        if self.is_local:
            return "local"
        return "repos" if self.repos else "org"

    def validate(self) -> ScanConfig:
        """Raise ConfigError on contradictory options; returns self for chaining."""
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.file_concurrency < 1:
            raise ConfigError(f"file concurrency must be >= 1, got {self.file_concurrency}")
        if not 0 <= self.verbosity <= MAX_VERBOSITY:
            raise ConfigError(f"verbosity must be between 0 and {MAX_VERBOSITY}")
        if self.is_local:
            return self
        if not self.root_only and not self.token:
            raise ConfigError(
                "tree scanning (--no-root-only) requires a GitHub token (--token or GITHUB_TOKEN)"
            )
        if self.all_branches and not self.token:
            raise ConfigError(
                "--all-branches requires a GitHub token (--token or GITHUB_TOKEN)"
            )
        if not self.all_branches and not self.branches:
            raise ConfigError("no branch to scan: pass --branches or --all-branches")
        return self
