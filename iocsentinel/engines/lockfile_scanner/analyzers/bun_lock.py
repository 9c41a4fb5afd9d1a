"""Analyzer for bun.lock (text lockfile, JSON with trailing commas)."""

from __future__ import annotations

import structlog

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.analyzers.deno_config import NPM_SPECIFIER_RE
from iocsentinel.engines.lockfile_scanner.models import Match
from iocsentinel.engines.lockfile_scanner.registry import register_analyzer
from iocsentinel.engines.lockfile_scanner.versions import (
    installed_matches,
    match_installed,
    parse_json_loose,
    register_installed_version,
    split_name_version,
)

log = structlog.get_logger("iocsentinel.analyzer")


def extract_installed(lock: object) -> dict[str, str]:
    """Read ``packages``: ``{"lodash": ["lodash@4.17.21", "", {...}, "sha512-..."]}``."""
    installed: dict[str, str] = {}
    if not isinstance(lock, dict) or not isinstance(lock.get("packages"), dict):
        return installed

    for key, value in lock["packages"].items():
        token = key
        if isinstance(value, list) and value and isinstance(value[0], str):
            token = value[0]
        parsed = split_name_version(token)
        if parsed is not None:
            register_installed_version(installed, *parsed)
    return installed


class BunLockAnalyzer:
    """Two passes: the structured ``packages`` map gives installed versions,
    then a sweep of the raw text picks up ``npm:name@version`` specifiers the
    first pass did not report."""

    analyzer_id = "bun-lock"
    file_names = ("bun.lock",)

    def analyze(self, content: str, source: str, index: VulnerabilityIndex) -> list[Match]:
        matches: list[Match] = []
        try:
            lock = parse_json_loose(content)
        except ValueError:
            log.debug("analyzer.parse_failed", analyzer=self.analyzer_id, source=source)
        else:
            matches.extend(match_installed(extract_installed(lock), index, source))

        seen = {f"{m.package_name}@{m.installed_version}" for m in matches}
        for m in NPM_SPECIFIER_RE.finditer(content):
            name, version = m.group(1).strip(), m.group(2).strip()
            key = f"{name}@{version}"
            if key in seen:
                continue
            seen.add(key)

            hits = installed_matches(version, index.versions_for(name))
            if hits:
                matches.append(
                    Match(
                        source=source,
                        package_name=name,
                        declared_version=version,
                        vulnerable_versions=hits,
                    )
                )
        return matches


register_analyzer(BunLockAnalyzer())
