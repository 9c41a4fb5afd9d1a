"""Source locator: turn a scan target into fetched files for the analyzers.

Three strategies:
    local        read registered file names relative to a root directory
    remote-root  fetch registered file names at a repository root
    remote-tree  list the branch's full tree and fetch every matching path
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import httpx
import structlog

from iocsentinel.core.github import GitHubClient
from iocsentinel.engines.lockfile_scanner.concurrency import run_with_concurrency
from iocsentinel.engines.lockfile_scanner.models import FileToAnalyze, ScanTarget
from iocsentinel.engines.lockfile_scanner.registry import Analyzer, registered_file_names
from iocsentinel.exceptions import GitHubError

log = structlog.get_logger("iocsentinel.locator")


@dataclass
class LocateResult:
    """Files found for a target, plus the registered names that were absent."""

    files: list[FileToAnalyze] = field(default_factory=list)
    missing: list[tuple[Analyzer, str]] = field(default_factory=list)


def fetch_local(root: Path | None = None) -> LocateResult:
    """Read every registered file name directly under *root* (default: cwd)."""
    root = root or Path.cwd()
    target = ScanTarget.local()
    result = LocateResult()

    for analyzer, file_name in registered_file_names():
        path = root / file_name
        try:
            content = path.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            content = ""
        except OSError as exc:
            log.debug("locator.unreadable", path=str(path), error=str(exc))
            content = ""

        if not content:
            log.debug("locator.absent", target=str(target), file=file_name)
            result.missing.append((analyzer, file_name))
            continue

        result.files.append(
            FileToAnalyze(
                analyzer=analyzer,
                filename=file_name,
                source=target.label_for(file_name),
                content=content,
            )
        )
    return result


async def _fetch_one(
    client: GitHubClient,
    target: ScanTarget,
    path: str,
) -> str | None:
    """Raw content of *path*, or None when absent or unfetchable."""
    try:
        content = await client.get_raw(target.owner, target.repo, target.branch, path)
    except (httpx.HTTPError, GitHubError) as exc:
        log.warning("locator.fetch_failed", target=str(target), file=path, error=str(exc))
        return None
    if not content:
        log.debug("locator.absent", target=str(target), file=path)
        return None
    return content


async def fetch_remote_root(
    target: ScanTarget,
    client: GitHubClient,
    *,
    file_concurrency: int = 5,
) -> LocateResult:
    """Fetch each registered file name at the repository root of the target branch."""
    if target.mode != "remote-root":
        raise ValueError(f"fetch_remote_root called with a {target.mode} target")

    candidates = registered_file_names()
    contents = await run_with_concurrency(
        candidates,
        file_concurrency,
        lambda candidate: _fetch_one(client, target, candidate[1]),
    )

    result = LocateResult()
    for (analyzer, file_name), content in zip(candidates, contents):
        if content is None:
            result.missing.append((analyzer, file_name))
            continue
        result.files.append(
            FileToAnalyze(
                analyzer=analyzer,
                filename=file_name,
                source=target.label_for(file_name),
                content=content,
            )
        )
    return result


async def list_branch_paths(target: ScanTarget, client: GitHubClient) -> list[str]:
    """Every blob path on the target branch; ``[]`` if the branch cannot be resolved."""
    try:
        branch_ref = await client.resolve_branch(target.owner, target.repo, target.branch)
    except (httpx.HTTPError, GitHubError) as exc:
        log.warning("locator.branch_resolve_failed", target=str(target), error=str(exc))
        return []
    if branch_ref is None:
        log.debug("locator.branch_missing", target=str(target))
        return []

    try:
        return await client.list_tree_paths(target.owner, target.repo, branch_ref.sha)
    except (httpx.HTTPError, GitHubError) as exc:
        log.warning("locator.tree_failed", target=str(target), sha=branch_ref.sha, error=str(exc))
        return []


async def fetch_remote_tree(
    target: ScanTarget,
    client: GitHubClient,
    *,
    file_concurrency: int = 5,
) -> LocateResult:
    """Fetch every path, at any depth, whose last segment is a registered file name."""
    if target.mode != "remote-tree":
        raise ValueError(f"fetch_remote_tree called with a {target.mode} target")

    all_paths = await list_branch_paths(target, client)
    result = LocateResult()

    candidates: list[tuple[Analyzer, str]] = []
    for analyzer, file_name in registered_file_names():
        matching = [p for p in all_paths if p == file_name or p.endswith(f"/{file_name}")]
        if not matching:
            result.missing.append((analyzer, file_name))
        candidates.extend((analyzer, p) for p in matching)

    contents = await run_with_concurrency(
        candidates,
        file_concurrency,
        lambda candidate: _fetch_one(client, target, candidate[1]),
    )
    for (analyzer, path), content in zip(candidates, contents):
        if content is None:
            result.missing.append((analyzer, path))
            continue
        result.files.append(
            FileToAnalyze(
                analyzer=analyzer,
                filename=path,
                source=target.label_for(path),
                content=content,
            )
        )
    log.debug(
        "locator.tree_files",
        target=str(target),
        paths=len(all_paths),
        files=len(result.files),
    )
    return result


async def locate(
    target: ScanTarget,
    client: GitHubClient | None = None,
    *,
    root: Path | None = None,
    file_concurrency: int = 5,
) -> LocateResult:
    """Dispatch *target* to its strategy."""
    if target.mode == "local":
        return fetch_local(root)
    if client is None:
        raise ValueError(f"a GitHub client is required for {target.mode} targets")
    if target.mode == "remote-root":
        return await fetch_remote_root(target, client, file_concurrency=file_concurrency)
    return await fetch_remote_tree(target, client, file_concurrency=file_concurrency)
