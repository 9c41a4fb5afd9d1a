"""Analyzer for yarn.lock (classic v1 and berry block syntax)."""

from __future__ import annotations

import re

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.models import Match
from iocsentinel.engines.lockfile_scanner.registry import register_analyzer
from iocsentinel.engines.lockfile_scanner.versions import (
    match_installed,
    register_installed_version,
)

# Block header: unindented line ending with ":"
_HEADER_RE = re.compile(r"^\S.*:$")

# v1: version "1.2.3"   berry: version: 1.2.3
_VERSION_RE = re.compile(r'^version\s*[: ]\s*"?([^"\s]+)"?')


def package_name_from_descriptor(header: str) -> str:
    """``"@scope/a@^1.0.0", "@scope/a@^1.1.0":`` → ``@scope/a``."""
    descriptor = header.strip()
    if descriptor.endswith(":"):
        descriptor = descriptor[:-1]
    # several descriptors may share one block; the first one names it
    descriptor = descriptor.split(",", 1)[0].strip().strip('"')
    at = descriptor.find("@", 1) if descriptor.startswith("@") else descriptor.find("@")
    return descriptor if at == -1 else descriptor[:at]


def extract_installed(content: str) -> dict[str, str]:
    lines = content.splitlines()
    installed: dict[str, str] = {}

    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith("#") or not _HEADER_RE.match(line):
            i += 1
            continue

        name = package_name_from_descriptor(line)
        version: str | None = None
        j = i + 1
        while j < len(lines) and (not lines[j] or lines[j][0].isspace()):
            m = _VERSION_RE.match(lines[j].strip())
            if m:
                version = m.group(1)
                break
            j += 1

        if name and version:
            register_installed_version(installed, name, version)
        i = max(j, i + 1)

    return installed


class YarnLockAnalyzer:
    analyzer_id = "yarn-lock"
    file_names = ("yarn.lock",)

    def analyze(self, content: str, source: str, index: VulnerabilityIndex) -> list[Match]:
        return match_installed(extract_installed(content), index, source)


register_analyzer(YarnLockAnalyzer())
