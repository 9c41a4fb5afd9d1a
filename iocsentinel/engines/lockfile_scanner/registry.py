"""Analyzer registry: map manifest/lockfile names to their analyzers."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.models import Match


@runtime_checkable
class Analyzer(Protocol):
    """Interface that every format analyzer must satisfy.

    ``analyze`` is pure: no I/O, no state kept between calls, and malformed
    content yields ``[]`` instead of an exception.
    """

    analyzer_id: str
    file_names: tuple[str, ...]

    def analyze(self, content: str, source: str, index: VulnerabilityIndex) -> list[Match]: ...


ANALYZER_REGISTRY: dict[str, Analyzer] = {}


def register_analyzer(analyzer: Analyzer) -> None:
    """Register an analyzer instance by its analyzer_id."""
    ANALYZER_REGISTRY[analyzer.analyzer_id] = analyzer


def registered_file_names() -> list[tuple[Analyzer, str]]:
    """Every (analyzer, file name) pair, in registration order."""
    return [
        (analyzer, file_name)
        for analyzer in ANALYZER_REGISTRY.values()
        for file_name in analyzer.file_names
    ]


def analyzer_for(path: str) -> Analyzer | None:
    """Return the analyzer claiming the last segment of *path*, if any."""
    file_name = path.rsplit("/", 1)[-1]
    for analyzer in ANALYZER_REGISTRY.values():
        if file_name in analyzer.file_names:
            return analyzer
    return None
