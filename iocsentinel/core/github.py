"""Async GitHub client: REST API, raw content, and the branches UI listing.

Pagination, rate-limit handling, and retries follow the same rules for every
endpoint. 404s are surfaced as ``None`` by the lookup helpers; every other
failure propagates as ``httpx.HTTPError`` / ``GitHubError`` so callers decide
whether it is fatal.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from iocsentinel import __version__
from iocsentinel.exceptions import GitHubError

log = structlog.get_logger("iocsentinel.github")

API_URL = "https://api.github.com"
RAW_URL = "https://raw.githubusercontent.com"
WEB_URL = "https://github.com"
USER_AGENT = f"iocsentinel/{__version__}"

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds
_ORG_REPOS_PER_PAGE = 100


class RateLimitError(GitHubError):
    """Raised when GitHub rate limit is exhausted and we need to wait."""

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"rate limit exceeded, retry after {retry_after}s")


@dataclass(frozen=True)
class RepoRef:
    """A repository returned by the organization listing."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclass(frozen=True)
class BranchRef:
    """A branch resolved to the commit it currently points to."""

    sha: str
    ref: str


class GitHubClient:
    """Thin async wrapper around the GitHub REST API."""

    def __init__(
        self,
        token: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=API_URL,
            headers=headers,
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── generic ────────────────────────────────────────────────────────────

    async def get_paginated(
        self,
        path: str,
        params: dict[str, Any] | None = None,
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield JSON items from a paginated GitHub API endpoint.

        Automatically follows ``Link: <...>; rel="next"`` headers and
        respects rate-limit headers.
        """
        url: str | None = path
        params = dict(params or {})
        params.setdefault("per_page", 100)
        page = 0

        while url:
            response = await self._request_with_retry(url, params if page == 0 else None)
            await self._check_rate_limit(response)

            data = response.json()
            if isinstance(data, list):
                for item in data:
                    yield item
            else:
                yield data

            url = self._parse_next_link(response.headers.get("Link", ""))
            page += 1

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Single-resource GET, returns parsed JSON."""
        response = await self._request_with_retry(path, params, headers)
        await self._check_rate_limit(response)
        return response.json()

    # ── endpoints ──────────────────────────────────────────────────────────

    async def list_org_repos(self, org: str) -> list[RepoRef]:
        """List the public, non-archived repositories of *org*."""
        repos: list[RepoRef] = []
        skipped = 0
        async for item in self.get_paginated(
            f"/orgs/{quote(org, safe='')}/repos",
            {"type": "public", "per_page": _ORG_REPOS_PER_PAGE},
        ):
            if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                continue
            if item.get("archived") or item.get("private"):
                skipped += 1
                continue
            owner = (item.get("owner") or {}).get("login") or org
            repos.append(
                RepoRef(owner=owner, name=item["name"])
            )
        log.info("github.org_repos", org=org, repos=len(repos), skipped=skipped)
        return repos

    async def resolve_branch(self, owner: str, repo: str, branch: str) -> BranchRef | None:
        """Resolve *branch* to its head commit. Returns None if the branch does not exist."""
        path = f"/repos/{owner}/{repo}/git/refs/heads/{quote(branch, safe='/')}"
        try:
            data = await self.get(path)
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise

        expected = f"refs/heads/{branch}"
        # A prefix match answers with a list of refs; only an exact name counts.
        if isinstance(data, list):
            data = next(
                (d for d in data if isinstance(d, dict) and d.get("ref") == expected),
                None,
            )
            if data is None:
                return None
        if not isinstance(data, dict):
            raise GitHubError(f"unexpected /git/refs answer for {owner}/{repo}@{branch}")

        sha = (data.get("object") or {}).get("sha")
        if not sha:
            raise GitHubError(f"/git/refs answer without sha for {owner}/{repo}@{branch}")
        return BranchRef(sha=sha, ref=data.get("ref") or expected)

    async def list_tree_paths(self, owner: str, repo: str, sha: str) -> list[str]:
        """Return every blob path of the recursive tree at *sha*."""
        data = await self.get(f"/repos/{owner}/{repo}/git/trees/{sha}", {"recursive": "1"})
        if not isinstance(data, dict):
            raise GitHubError(f"unexpected /git/trees answer for {owner}/{repo}@{sha}")
        if data.get("truncated"):
            log.warning("github.tree_truncated", repo=f"{owner}/{repo}", sha=sha)
        return [
            entry["path"]
            for entry in data.get("tree") or []
            if isinstance(entry, dict)
            and entry.get("type") == "blob"
            and isinstance(entry.get("path"), str)
        ]

    async def get_raw(self, owner: str, repo: str, branch: str, path: str) -> str | None:
        """Fetch a file's raw content. Returns None if it does not exist on *branch*."""
        url = f"{RAW_URL}/{owner}/{repo}/{quote(branch, safe='/')}/{quote(path, safe='/')}"
        try:
            response = await self._request_with_retry(
                url, headers={"Accept": "application/vnd.github.v3.raw"}
            )
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code == 404:
                return None
            raise
        return response.text

    async def list_branches_ui(self, owner: str, repo: str) -> list[str]:
        """Enumerate every branch through the web UI's ``branches/all.json`` listing.

        This endpoint is unofficial; a failing page ends the enumeration with
        whatever was collected so far.
        """
        names: dict[str, None] = {}
        page = 1
        while True:
            try:
                response = await self._request_with_retry(
                    f"{WEB_URL}/{owner}/{repo}/branches/all.json",
                    {"page": page},
                    {"Accept": "application/json", "X-Requested-With": "XMLHttpRequest"},
                )
                data = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                log.warning(
                    "github.branches_ui_failed",
                    repo=f"{owner}/{repo}",
                    page=page,
                    error=str(exc),
                )
                break

            payload = data.get("payload") if isinstance(data, dict) else None
            payload = payload if isinstance(payload, dict) else {}
            for branch in payload.get("branches") or []:
                if isinstance(branch, dict) and isinstance(branch.get("name"), str):
                    names.setdefault(branch["name"], None)

            if not payload.get("has_more"):
                break
            page += 1

        log.debug("github.branches_ui", repo=f"{owner}/{repo}", branches=list(names))
        return list(names)

    # ── internal ───────────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """GET with exponential backoff on 5xx, 403 rate-limit, and timeout errors."""
        last_exc: Exception | None = None
        for attempt in range(_MAX_RETRIES):
            try:
                resp = await self._client.get(url, params=params, headers=headers)

                # 403 with rate-limit headers → sleep and retry
                if resp.status_code == 403 and self._is_rate_limited(resp):
                    wait = self._get_rate_limit_wait(resp)
                    log.warning(
                        "github.rate_limit",
                        url=url,
                        wait_seconds=wait,
                        attempt=attempt + 1,
                        max_retries=_MAX_RETRIES,
                    )
                    await asyncio.sleep(wait)
                    last_exc = RateLimitError(wait)
                    continue

                if resp.status_code < 500:
                    resp.raise_for_status()
                    return resp

                # 5xx: retry
                log.warning(
                    "github.server_error",
                    url=url,
                    status=resp.status_code,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = httpx.HTTPStatusError(
                    f"{resp.status_code}", request=resp.request, response=resp
                )
            except httpx.TimeoutException as exc:
                log.warning(
                    "github.timeout",
                    url=url,
                    attempt=attempt + 1,
                    max_retries=_MAX_RETRIES,
                )
                last_exc = exc

            if attempt < _MAX_RETRIES - 1:
                delay = _RETRY_BASE_DELAY * (2**attempt)
                await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _check_rate_limit(self, response: httpx.Response) -> None:
        """Sleep until rate-limit resets if remaining == 0."""
        remaining = self._parse_header_int(response.headers.get("X-RateLimit-Remaining"))
        if remaining is not None and remaining == 0:
            wait = self._get_rate_limit_wait(response)
            log.warning("github.rate_limit_wait", wait_seconds=wait)
            await asyncio.sleep(wait)

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for abuse rate limits
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Calculate how long to wait based on rate-limit headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 1)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 1)
            except (ValueError, TypeError):
                pass
        return 60  # conservative fallback

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        """Safely parse an integer header value."""
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a GitHub ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None


def parse_repo_spec(spec: str) -> tuple[str, str]:
    """Extract (owner, repo) from ``owner/repo`` or a GitHub URL.

    Raises ValueError if the spec cannot be parsed.
    """
    result = _extract_owner_repo(spec)
    if result is None:
        raise ValueError(f"invalid repository {spec!r}, expected owner/repo")
    owner, repo = result.split("/", 1)
    return owner, repo


def _extract_owner_repo(spec: str) -> str | None:
    """Extract 'owner/repo' from a repo spec.

    Handles:
      - owner/repo
      - https://github.com/owner/repo
      - https://github.com/owner/repo.git
      - git@github.com:owner/repo.git
    """
    spec = spec.strip().rstrip("/")
    if spec.endswith(".git"):
        spec = spec[:-4]

    # SSH format: git@github.com:owner/repo
    if spec.startswith("git@"):
        colon_idx = spec.find(":")
        if colon_idx == -1:
            return None
        spec = spec[colon_idx + 1 :]
    elif "://" in spec:
        spec = spec.split("://", 1)[1]
        spec = spec.split("/", 1)[1] if "/" in spec else ""

    parts = spec.split("/")
    if len(parts) == 2 and all(parts):
        return f"{parts[0]}/{parts[1]}"
    return None
