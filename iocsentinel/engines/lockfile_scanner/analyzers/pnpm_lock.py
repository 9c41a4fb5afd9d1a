"""Analyzer for pnpm-lock.yaml."""

from __future__ import annotations

import re

import structlog
import yaml

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.models import Match
from iocsentinel.engines.lockfile_scanner.registry import register_analyzer
from iocsentinel.engines.lockfile_scanner.versions import (
    match_installed,
    register_installed_version,
    split_name_version,
)

log = structlog.get_logger("iocsentinel.analyzer")

# lockfile v5: /name/1.2.3, /@scope/name/1.2.3, /name/1.2.3_peer@1.0.0
_SLASH_KEY_RE = re.compile(r"^/((?:@[^/]+/)?[^/@]+)/(\d[^/_]*)(?:_.*)?$")

# peer-dependency suffixes: "(react@18.2.0)" (v6+) or "_react@18.2.0" (v5)
_PEER_PAREN_RE = re.compile(r"\(.*\)$")


def parse_package_key(key: str) -> tuple[str, str] | None:
    """``/name@1.2.3``, ``name@1.2.3(peer@1)``, ``/@scope/name/1.2.3`` → (name, version)."""
    key = _PEER_PAREN_RE.sub("", key.strip())
    slash = _SLASH_KEY_RE.match(key)
    if slash:
        return slash.group(1), slash.group(2)

    parsed = split_name_version(key.lstrip("/"))
    if parsed is None:
        return None
    name, version = parsed
    return name, version.split("_", 1)[0]


def extract_installed(data: dict) -> dict[str, str]:
    installed: dict[str, str] = {}
    packages = data.get("packages")
    if not isinstance(packages, dict):
        packages = data.get("dependencies")
    if not isinstance(packages, dict):
        return installed

    for key, value in packages.items():
        if not isinstance(key, str):
            continue
        parsed = parse_package_key(key)
        if parsed is None and isinstance(value, str):
            # old top-level ``dependencies: {name: version}``
            parsed = key, _PEER_PAREN_RE.sub("", value).split("_", 1)[0]
        if parsed is not None:
            register_installed_version(installed, *parsed)
    return installed


class PnpmLockAnalyzer:
    analyzer_id = "pnpm-lock"
    file_names = ("pnpm-lock.yaml", "pnpm-lock.yml")

    def analyze(self, content: str, source: str, index: VulnerabilityIndex) -> list[Match]:
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError:
            log.debug("analyzer.parse_failed", analyzer=self.analyzer_id, source=source)
            return []
        if not isinstance(data, dict):
            log.debug("analyzer.parse_failed", analyzer=self.analyzer_id, source=source)
            return []
        return match_installed(extract_installed(data), index, source)


register_analyzer(PnpmLockAnalyzer())
