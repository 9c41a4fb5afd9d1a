"""Scanner: build the target list for a run, fan out, and aggregate results."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import httpx
import structlog

# Ensure analyzers are registered before any scan runs.
import iocsentinel.engines.lockfile_scanner.analyzers  # noqa: F401
from iocsentinel.config import ScanConfig
from iocsentinel.core.github import GitHubClient, parse_repo_spec
from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.concurrency import run_with_concurrency
from iocsentinel.engines.lockfile_scanner.locator import fetch_local, locate
from iocsentinel.engines.lockfile_scanner.models import (
    FileToAnalyze,
    ScanReport,
    ScanResult,
    ScanTarget,
)
from iocsentinel.engines.lockfile_scanner.registry import Analyzer
from iocsentinel.exceptions import GitHubError

log = structlog.get_logger("iocsentinel.scanner")

BranchJob = tuple[str, str, str]  # (owner, repo, branch)


def run_analysis_on_files(
    files: Iterable[FileToAnalyze],
    index: VulnerabilityIndex,
) -> list[ScanResult]:
    """Hand every fetched file to its analyzer; one analyzed result per file."""
    results: list[ScanResult] = []
    for f in files:
        matches = f.analyzer.analyze(f.content, f.source, index)
        log.debug("scanner.file_analyzed", source=f.source, matches=len(matches))
        results.append(ScanResult(label=f.source, analyzed=True, matches=matches))
    return results


def missing_results(target: ScanTarget, missing: Iterable[tuple[Analyzer, str]]) -> list[ScanResult]:
    return [
        ScanResult(label=target.label_for(file_name), analyzed=False)
        for _, file_name in missing
    ]


class Scanner:
    """Drives one run: local tree, explicit repos, and/or organizations."""

    def __init__(
        self,
        config: ScanConfig,
        index: VulnerabilityIndex,
        client: GitHubClient | None = None,
    ) -> None:
        self._config = config
        self._index = index
        self._client = client

    # ── local ───────────────────────────────────────────────────────────

    def scan_local(self, root: Path | None = None) -> list[ScanResult]:
        """Single pass over every analyzer, reading files under *root* (default: cwd)."""
        located = fetch_local(root)
        return run_analysis_on_files(located.files, self._index) + missing_results(
            ScanTarget.local(), located.missing
        )

    # ── remote ──────────────────────────────────────────────────────────

    async def scan_branch(self, owner: str, repo: str, branch: str) -> list[ScanResult]:
        """Scan one repository branch.

        Returns ``[]`` when nothing could be analyzed (e.g. the branch does not
        exist) so absent branches do not flood the report.
        """
        target = ScanTarget.remote(owner, repo, branch, root_only=self._config.root_only)
        log.info("scanner.branch", target=str(target), mode=target.mode)
        try:
            located = await locate(
                target,
                self._require_client(),
                file_concurrency=self._config.file_concurrency,
            )
        except (httpx.HTTPError, GitHubError) as exc:
            log.warning("scanner.branch_failed", target=str(target), error=str(exc))
            return []

        if not located.files:
            log.debug("scanner.branch_empty", target=str(target))
            return []
        return run_analysis_on_files(located.files, self._index) + missing_results(
            target, located.missing
        )

    async def list_repositories(self) -> list[tuple[str, str]]:
        """Explicit repos then org repos, de-duplicated by ``owner/repo``."""
        seen: dict[str, tuple[str, str]] = {}

        for spec in self._config.repos:
            try:
                owner, repo = parse_repo_spec(spec)
            except ValueError as exc:
                log.error("scanner.invalid_repo", spec=spec, error=str(exc))
                continue
            seen.setdefault(f"{owner}/{repo}".lower(), (owner, repo))

        for org in self._config.orgs:
            try:
                org_repos = await self._require_client().list_org_repos(org)
            except (httpx.HTTPError, GitHubError) as exc:
                log.warning("scanner.org_listing_failed", org=org, error=str(exc))
                continue
            for ref in org_repos:
                seen.setdefault(ref.full_name.lower(), (ref.owner, ref.name))

        return list(seen.values())

    async def branches_for(self, owner: str, repo: str) -> list[str]:
        if not self._config.all_branches:
            return list(self._config.branches)
        branches = await self._require_client().list_branches_ui(owner, repo)
        if not branches:
            log.warning("scanner.no_branches", repo=f"{owner}/{repo}")
        return branches

    async def list_targets(self) -> list[BranchJob]:
        """Materialise every (owner, repo, branch) job before scanning starts."""
        repos = await self.list_repositories()
        branch_lists = await run_with_concurrency(
            repos,
            self._config.concurrency,
            lambda r: self.branches_for(*r),
        )
        return [
            (owner, repo, branch)
            for (owner, repo), branches in zip(repos, branch_lists)
            for branch in branches
        ]

    async def scan_remote(self) -> list[ScanResult]:
        jobs = await self.list_targets()
        log.info("scanner.jobs", jobs=len(jobs), concurrency=self._config.concurrency)
        per_job = await run_with_concurrency(
            jobs,
            self._config.concurrency,
            lambda job: self.scan_branch(*job),
        )
        return [result for results in per_job for result in results]

    # ── entry point ─────────────────────────────────────────────────────

    async def run(self, root: Path | None = None) -> ScanReport:
        if self._config.is_local:
            log.info("scanner.mode", mode="local", root=str(root or Path.cwd()))
            return ScanReport(mode="local", results=self.scan_local(root))

        mode = self._config.mode
        log.info("scanner.mode", mode=mode)
        return ScanReport(mode=mode, results=await self.scan_remote())  # type: ignore[arg-type]

    def _require_client(self) -> GitHubClient:
        if self._client is None:
            raise ValueError("remote scans need a GitHubClient")
        return self._client


async def scan(
    config: ScanConfig,
    index: VulnerabilityIndex,
    *,
    root: Path | None = None,
) -> ScanReport:
    """Run a full scan, owning the GitHub client for remote modes."""
    if config.is_local:
        return await Scanner(config, index).run(root)
    async with GitHubClient(config.token) as client:
        return await Scanner(config, index, client).run(root)
