"""Analyzer for package.json manifests (declared version ranges)."""

from __future__ import annotations

import json

import structlog

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.models import ExtractedDependency, Match
from iocsentinel.engines.lockfile_scanner.registry import register_analyzer
from iocsentinel.engines.lockfile_scanner.versions import declared_matches

log = structlog.get_logger("iocsentinel.analyzer")

DEPENDENCY_SECTIONS = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
    "peerDependencies",
)


def extract(data: object) -> list[ExtractedDependency]:
    if not isinstance(data, dict):
        return []
    deps: list[ExtractedDependency] = []
    for section in DEPENDENCY_SECTIONS:
        entries = data.get(section)
        if not isinstance(entries, dict):
            continue
        for name, range_spec in entries.items():
            # npm reads an empty range as "*"
            if isinstance(range_spec, str):
                deps.append(
                    ExtractedDependency(
                        name=name, declared_version=range_spec.strip(), section=section
                    )
                )
    return deps


class PackageJsonAnalyzer:
    analyzer_id = "package-json"
    file_names = ("package.json",)

    def analyze(self, content: str, source: str, index: VulnerabilityIndex) -> list[Match]:
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            log.debug("analyzer.parse_failed", analyzer=self.analyzer_id, source=source)
            return []

        # Each section is matched on its own: the same package may appear twice.
        matches: list[Match] = []
        for dep in extract(data):
            hits = declared_matches(dep.declared_version, index.versions_for(dep.name))
            if hits:
                matches.append(
                    Match(
                        source=f"{source} ({dep.section})",
                        package_name=dep.name,
                        declared_version=dep.declared_version,
                        vulnerable_versions=hits,
                    )
                )
        return matches


register_analyzer(PackageJsonAnalyzer())
