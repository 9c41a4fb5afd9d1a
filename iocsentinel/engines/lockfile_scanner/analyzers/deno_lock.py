"""Analyzer for deno.lock (``packages.npm`` in v2/v3, top-level ``npm`` in v4)."""

from __future__ import annotations

import json

import structlog

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.models import Match
from iocsentinel.engines.lockfile_scanner.registry import register_analyzer
from iocsentinel.engines.lockfile_scanner.versions import (
    match_installed,
    register_installed_version,
    split_name_version,
)

log = structlog.get_logger("iocsentinel.analyzer")


def _npm_section(lock: dict) -> dict:
    packages = lock.get("packages")
    if isinstance(packages, dict) and isinstance(packages.get("npm"), dict):
        return packages["npm"]
    if isinstance(lock.get("npm"), dict):
        return lock["npm"]
    return {}


def extract_installed(lock: object) -> dict[str, str]:
    installed: dict[str, str] = {}
    if not isinstance(lock, dict):
        return installed
    for key in _npm_section(lock):
        parsed = split_name_version(key)
        if parsed is None:
            continue
        name, version = parsed
        # v4 appends peer resolutions: "foo@1.0.0_bar@2.0.0"
        register_installed_version(installed, name, version.split("_", 1)[0])
    return installed


class DenoLockAnalyzer:
    analyzer_id = "deno-lock"
    file_names = ("deno.lock",)

    def analyze(self, content: str, source: str, index: VulnerabilityIndex) -> list[Match]:
        try:
            lock = json.loads(content)
        except json.JSONDecodeError:
            log.debug("analyzer.parse_failed", analyzer=self.analyzer_id, source=source)
            return []
        return match_installed(extract_installed(lock), index, source)


register_analyzer(DenoLockAnalyzer())
