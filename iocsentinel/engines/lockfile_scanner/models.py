"""Data models for the lockfile scanner engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from iocsentinel.engines.lockfile_scanner.registry import Analyzer

TargetMode = Literal["local", "remote-root", "remote-tree"]
ScanMode = Literal["local", "repos", "org"]


@dataclass(frozen=True)
class ExtractedDependency:
    """A package read from a manifest (declared range) or a lockfile (installed version).

    Exactly one of ``declared_version`` / ``installed_version`` is set.
    """

    name: str
    declared_version: str | None = None
    installed_version: str | None = None
    section: str | None = None  # manifest section, e.g. "devDependencies"

    def __post_init__(self) -> None:
        if (self.declared_version is None) == (self.installed_version is None):
            raise ValueError(
                f"dependency {self.name!r} needs exactly one of declared/installed version"
            )


@dataclass
class Match:
    """A dependency whose version intersects the vulnerable versions of its package."""

    source: str
    package_name: str
    vulnerable_versions: list[str]
    declared_version: str | None = None
    installed_version: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"source": self.source, "packageName": self.package_name}
        if self.declared_version is not None:
            out["declaredVersion"] = self.declared_version
        if self.installed_version is not None:
            out["installedVersion"] = self.installed_version
        out["vulnerableVersions"] = list(self.vulnerable_versions)
        return out


@dataclass
class ScanResult:
    """Outcome for one expected file.

    ``analyzed=False`` means the file was absent, not that it was clean.
    """

    label: str
    analyzed: bool
    matches: list[Match] = field(default_factory=list)


@dataclass(frozen=True)
class ScanTarget:
    """Where file candidates are sought."""

    mode: TargetMode
    owner: str | None = None
    repo: str | None = None
    branch: str | None = None

    @classmethod
    def local(cls) -> ScanTarget:
        return cls(mode="local")

    @classmethod
    def remote(cls, owner: str, repo: str, branch: str, *, root_only: bool = True) -> ScanTarget:
        return cls(
            mode="remote-root" if root_only else "remote-tree",
            owner=owner,
            repo=repo,
            branch=branch,
        )

    @property
    def is_remote(self) -> bool:
        return self.mode != "local"

    def label_for(self, path: str) -> str:
        if not self.is_remote:
            return path
        return f"{self.owner}/{self.repo}@{self.branch}:{path}"

    def __str__(self) -> str:
        if not self.is_remote:
            return "local"
        return f"{self.owner}/{self.repo}@{self.branch}"


@dataclass(frozen=True)
class FileToAnalyze:
    """A fetched file ready to be handed to its analyzer."""

    analyzer: Analyzer
    filename: str
    source: str
    content: str


@dataclass
class ScanReport:
    """All per-file results of one run."""

    mode: ScanMode
    results: list[ScanResult] = field(default_factory=list)

    @property
    def matches(self) -> list[Match]:
        """Every match of every analyzed file, without cross-file de-duplication."""
        return [m for r in self.results for m in r.matches]

    @property
    def analyzed_count(self) -> int:
        return sum(1 for r in self.results if r.analyzed)
