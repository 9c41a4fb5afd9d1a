"""Version helpers shared by the analyzers.

npm semantics (ranges, pre-release handling, ordering) come from
``node-semver``; this module only wraps it so the analyzers never see its
exceptions.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from typing import Any

import nodesemver

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.models import Match


def is_valid(version: str) -> bool:
    """True if *version* is a strict semantic version."""
    try:
        nodesemver.make_semver(version, loose=False)
    except (ValueError, TypeError):
        return False
    return True


def is_greater(a: str, b: str) -> bool:
    return nodesemver.compare(a, b, loose=False) > 0


def is_equal(a: str, b: str) -> bool:
    return nodesemver.compare(a, b, loose=False) == 0


def satisfies(version: str, range_spec: str) -> bool:
    """Range satisfaction with pre-releases included; unparsable ranges never match.

    An exact pin (``1.3.0-beta.1``, ``=1.3.0``, ``v1.3.0``) only matches that
    very version.
    """
    exact = range_spec.strip().lstrip("=v ").strip()
    if is_valid(exact):
        return is_valid(version) and is_equal(version, exact)
    try:
        return bool(
            nodesemver.satisfies(
                version, range_spec.strip() or "*", loose=False, include_prerelease=True
            )
        )
    except (ValueError, TypeError):
        return False


def register_installed_version(installed: dict[str, str], name: str, version: str) -> None:
    """Record *version* for *name*, keeping only the highest valid version seen."""
    if not name or not is_valid(version):
        return
    current = installed.get(name)
    if current is None or is_greater(version, current):
        installed[name] = version


def split_name_version(token: str) -> tuple[str, str] | None:
    """Split ``name@version`` / ``@scope/name@version``.

    Scoped names start with ``@``, so the separator is the second ``@``.
    Returns None when there is no version part.
    """
    token = token.strip()
    at = token.find("@", 1) if token.startswith("@") else token.find("@")
    if at <= 0:
        return None
    name, version = token[:at].strip(), token[at + 1 :].strip()
    if not name or not version:
        return None
    return name, version


# ── matching ────────────────────────────────────────────────────────────


def declared_matches(range_spec: str, vulnerable: Iterable[str]) -> list[str]:
    """Vulnerable versions satisfying a declared range."""
    return [v for v in vulnerable if is_valid(v) and satisfies(v, range_spec)]


def installed_matches(installed: str, vulnerable: Iterable[str]) -> list[str]:
    """Vulnerable versions equal to an installed version (never range logic)."""
    if not is_valid(installed):
        return []
    return [v for v in vulnerable if is_valid(v) and is_equal(v, installed)]


def match_installed(
    installed: dict[str, str],
    index: VulnerabilityIndex,
    source: str,
) -> list[Match]:
    """Turn a ``name → installed version`` map into matches."""
    matches: list[Match] = []
    for name, version in installed.items():
        hits = installed_matches(version, index.versions_for(name))
        if hits:
            matches.append(
                Match(
                    source=source,
                    package_name=name,
                    installed_version=version,
                    vulnerable_versions=hits,
                )
            )
    return matches


# ── loose JSON ──────────────────────────────────────────────────────────


def parse_json_loose(raw: str) -> Any:
    """Parse JSON, retrying once with comments and trailing commas removed.

    Raises ``ValueError`` (``json.JSONDecodeError``) if both attempts fail.
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return json.loads(_strip_trailing_commas(_strip_comments(raw)))


def _strip_comments(raw: str) -> str:
    """Drop ``//`` and ``/* */`` comments that are outside string literals."""
    out: list[str] = []
    i, n = 0, len(raw)
    in_string = False
    while i < n:
        ch = raw[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(raw[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
        elif ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif raw.startswith("//", i):
            end = raw.find("\n", i)
            i = n if end == -1 else end
        elif raw.startswith("/*", i):
            end = raw.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _strip_trailing_commas(raw: str) -> str:
    """Drop commas directly followed (modulo whitespace) by ``}`` or ``]``."""
    out: list[str] = []
    i, n = 0, len(raw)
    in_string = False
    while i < n:
        ch = raw[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(raw[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            out.append(ch)
        elif ch == ",":
            j = i + 1
            while j < n and raw[j].isspace():
                j += 1
            if j >= n or raw[j] not in "}]":
                out.append(ch)
        else:
            out.append(ch)
        i += 1
    return "".join(out)
