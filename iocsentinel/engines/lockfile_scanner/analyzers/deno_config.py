"""Analyzer for deno.json / deno.jsonc (``npm:`` specifiers in the import map)."""

from __future__ import annotations

import re

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.models import Match
from iocsentinel.engines.lockfile_scanner.registry import register_analyzer
from iocsentinel.engines.lockfile_scanner.versions import declared_matches

_COMPARATOR = r"[~^]?[<>=]{0,2}[0-9][0-9A-Za-z.+-]*"

# the version part runs on across comparator sets: ">=1.0.0 <2", "1.x || 2.x", "1.0.0 - 2.0.0"
NPM_SPECIFIER_RE = re.compile(
    r"npm:([@a-zA-Z0-9._-]+/[a-zA-Z0-9._-]+|[a-zA-Z0-9._-]+)"  # package name
    rf"@({_COMPARATOR}(?:(?:\s+-\s+|\s*\|\|\s*|\s+){_COMPARATOR})*)"  # version or range
)


class DenoConfigAnalyzer:
    """Scans the raw text, not the JSON tree: any ``npm:`` specifier counts,
    even in a file that does not parse."""

    analyzer_id = "deno-config"
    file_names = ("deno.json", "deno.jsonc")

    def analyze(self, content: str, source: str, index: VulnerabilityIndex) -> list[Match]:
        matches: list[Match] = []
        seen: set[str] = set()

        for m in NPM_SPECIFIER_RE.finditer(content):
            name, range_spec = m.group(1).strip(), m.group(2).strip()
            key = f"{name}@{range_spec}"
            if key in seen:
                continue
            seen.add(key)

            hits = declared_matches(range_spec, index.versions_for(name))
            if hits:
                matches.append(
                    Match(
                        source=source,
                        package_name=name,
                        declared_version=range_spec,
                        vulnerable_versions=hits,
                    )
                )
        return matches


register_analyzer(DenoConfigAnalyzer())
