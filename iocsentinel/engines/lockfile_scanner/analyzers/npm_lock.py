"""Analyzer for package-lock.json / npm-shrinkwrap.json (v1 nested, v2/v3 flat)."""

from __future__ import annotations

import structlog

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.models import Match
from iocsentinel.engines.lockfile_scanner.registry import register_analyzer
from iocsentinel.engines.lockfile_scanner.versions import (
    match_installed,
    parse_json_loose,
    register_installed_version,
)

log = structlog.get_logger("iocsentinel.analyzer")

_NODE_MODULES = "node_modules/"


def _walk_dependencies(deps: object, installed: dict[str, str]) -> None:
    """lockfileVersion 1: ``dependencies`` nested to any depth."""
    if not isinstance(deps, dict):
        return
    for name, info in deps.items():
        if not isinstance(info, dict):
            continue
        version = info.get("version")
        if isinstance(version, str):
            register_installed_version(installed, name, version)
        if info.get("dependencies"):
            _walk_dependencies(info["dependencies"], installed)


def _walk_packages(packages: object, installed: dict[str, str]) -> None:
    """lockfileVersion 2/3: flat ``packages`` keyed by install path."""
    if not isinstance(packages, dict):
        return
    for key, info in packages.items():
        if not key or not isinstance(info, dict):
            continue
        version = info.get("version")
        if not isinstance(version, str):
            continue
        # "node_modules/a/node_modules/@scope/b" → "@scope/b"
        name = key.rsplit(_NODE_MODULES, 1)[-1]
        register_installed_version(installed, name, version)


def extract_installed(lock: object) -> dict[str, str]:
    installed: dict[str, str] = {}
    if isinstance(lock, dict):
        _walk_dependencies(lock.get("dependencies"), installed)
        _walk_packages(lock.get("packages"), installed)
    return installed


class NpmLockAnalyzer:
    analyzer_id = "npm-lock"
    file_names = ("package-lock.json", "npm-shrinkwrap.json")

    def analyze(self, content: str, source: str, index: VulnerabilityIndex) -> list[Match]:
        try:
            lock = parse_json_loose(content)
        except ValueError:
            log.debug("analyzer.parse_failed", analyzer=self.analyzer_id, source=source)
            return []
        return match_installed(extract_installed(lock), index, source)


register_analyzer(NpmLockAnalyzer())
