"""Report rendering and exit-code policy."""

from __future__ import annotations

import json
from typing import Any

from iocsentinel.config import ScanConfig
from iocsentinel.engines.lockfile_scanner.models import Match, ScanReport, ScanResult

EXIT_CLEAN = 0
EXIT_MATCHES = 1
EXIT_FATAL = 2


def summarize(report: ScanReport, config: ScanConfig) -> dict[str, Any]:
    """Machine-readable summary of a run."""
    matches = report.matches
    by_source: dict[str, dict[str, Any]] = {}
    for m in matches:
        entry = by_source.setdefault(m.source, {"matches": 0, "packages": []})
        entry["matches"] += 1
        if m.package_name not in entry["packages"]:
            entry["packages"].append(m.package_name)

    summary: dict[str, Any] = {
        "mode": report.mode,
        "orgs": list(config.orgs),
        "repos": list(config.repos),
        "branches": list(config.branches),
        "allBranches": config.all_branches,
        "analyzedFiles": report.analyzed_count,
        "totalMatches": len(matches),
        "uniquePackages": len({m.package_name for m in matches}),
        "matches": [m.to_dict() for m in matches],
        "bySource": by_source,
    }
    if report.mode == "local":
        for key in ("orgs", "repos", "branches", "allBranches"):
            summary.pop(key)
    return summary


def format_match(m: Match) -> str:
    vulnerable = ", ".join(m.vulnerable_versions)
    if m.installed_version is not None:
        return f"  - [{m.source}] {m.package_name}@{m.installed_version} (vulnerable: {vulnerable})"
    return (
        f"  - [{m.source}] {m.package_name} (declared: {m.declared_version or '*'})"
        f" (vulnerable: {vulnerable})"
    )


def format_result(result: ScanResult) -> str | None:
    """Block for one analyzed file with matches; None otherwise."""
    if not result.analyzed or not result.matches:
        return None
    lines = [f"{result.label}: {len(result.matches)} affected package(s)"]
    lines.extend(format_match(m) for m in result.matches)
    return "\n".join(lines)


def render_text(report: ScanReport, config: ScanConfig) -> str:
    summary = summarize(report, config)
    blocks = [block for r in report.results if (block := format_result(r)) is not None]

    lines = ["=" * 28]
    lines.append(
        f"[SUMMARY] mode={summary['mode']} analyzed_files={summary['analyzedFiles']} "
        f"total_matches={summary['totalMatches']} unique_packages={summary['uniquePackages']}"
    )
    if summary.get("orgs"):
        lines.append(f"[SUMMARY] orgs={','.join(summary['orgs'])}")
    if summary.get("repos"):
        lines.append(f"[SUMMARY] repos={','.join(summary['repos'])}")
    if report.mode != "local":
        branches = "(all)" if config.all_branches else ",".join(config.branches)
        lines.append(
            f"[SUMMARY] branches={branches} allBranches={str(config.all_branches).lower()}"
        )
    for source, info in summary["bySource"].items():
        lines.append(
            f'[SUMMARY] source="{source}" matches={info["matches"]} '
            f"unique_packages={len(info['packages'])} packages={','.join(info['packages'])}"
        )
    lines.append("=" * 28)

    return "\n\n".join(blocks + ["\n".join(lines)])


def render_json(report: ScanReport, config: ScanConfig) -> str:
    return json.dumps(summarize(report, config), indent=2)


def compute_exit_code(matches: list[Match], fail_on_declared_only: bool = True) -> int:
    """1 when a qualifying match exists, else 0.

    With *fail_on_declared_only* off, only installed (lockfile) matches count.
    """
    relevant = (
        matches if fail_on_declared_only else [m for m in matches if m.installed_version]
    )
    return EXIT_MATCHES if relevant else EXIT_CLEAN
