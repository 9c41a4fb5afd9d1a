"""Tests for the source locator strategies."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from iocsentinel.core.github import GitHubClient
from iocsentinel.engines.lockfile_scanner.locator import (
    fetch_local,
    fetch_remote_root,
    fetch_remote_tree,
    locate,
)
from iocsentinel.engines.lockfile_scanner.models import ScanTarget
from iocsentinel.engines.lockfile_scanner.registry import registered_file_names

ALL_NAMES = [name for _, name in registered_file_names()]


def _raw_files(files: dict[str, str], *, forbidden: tuple[str, ...] = ()):
    """Handler serving *files* from raw.githubusercontent.com for o/r@main."""

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host != "raw.githubusercontent.com":
            return httpx.Response(404)
        path = request.url.path.removeprefix("/o/r/main/")
        if path in forbidden:
            return httpx.Response(403, text="forbidden")
        if path in files:
            return httpx.Response(200, text=files[path])
        return httpx.Response(404, text="404: Not Found")

    return handler


class TestFetchLocal:
    def test_reads_present_files(self, tmp_path):
        (tmp_path / "package.json").write_text('{"name": "app"}')
        (tmp_path / "yarn.lock").write_text("# yarn lockfile v1\n")

        result = fetch_local(tmp_path)

        assert [f.filename for f in result.files] == ["package.json", "yarn.lock"]
        assert result.files[0].source == "package.json"
        assert result.files[0].analyzer.analyzer_id == "package-json"
        missing = [name for _, name in result.missing]
        assert "package.json" not in missing
        assert len(missing) == len(ALL_NAMES) - 2

    def test_empty_file_counts_as_absent(self, tmp_path):
        (tmp_path / "package.json").write_text("")
        result = fetch_local(tmp_path)
        assert result.files == []
        assert [name for _, name in result.missing] == ALL_NAMES

    def test_nested_files_ignored(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "package.json").write_text("{}")
        assert fetch_local(tmp_path).files == []


class TestFetchRemoteRoot:
    @pytest.mark.anyio
    async def test_present_and_missing(self):
        handler = _raw_files(
            {"package.json": "{}", "package-lock.json": '{"lockfileVersion": 3}'},
            forbidden=("bun.lock",),
        )
        target = ScanTarget.remote("o", "r", "main")

        async with GitHubClient(transport=httpx.MockTransport(handler)) as client:
            result = await fetch_remote_root(target, client, file_concurrency=2)

        assert [f.source for f in result.files] == [
            "o/r@main:package.json",
            "o/r@main:package-lock.json",
        ]
        missing = [name for _, name in result.missing]
        assert "bun.lock" in missing
        assert len(missing) == len(ALL_NAMES) - 2

    @pytest.mark.anyio
    async def test_wrong_target_mode(self):
        target = ScanTarget.remote("o", "r", "main", root_only=False)
        async with GitHubClient(transport=httpx.MockTransport(_raw_files({}))) as client:
            with pytest.raises(ValueError):
                await fetch_remote_root(target, client)


def _tree_handler(paths: list[str], files: dict[str, str]):
    raw = _raw_files(files)

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.github.com":
            if request.url.path == "/repos/o/r/git/refs/heads/main":
                return httpx.Response(
                    200, json={"ref": "refs/heads/main", "object": {"sha": "abc123"}}
                )
            if request.url.path == "/repos/o/r/git/trees/abc123":
                return httpx.Response(
                    200,
                    json={"tree": [{"path": p, "type": "blob"} for p in paths]},
                )
            return httpx.Response(404, json={"message": "Not Found"})
        return raw(request)

    return handler


class TestFetchRemoteTree:
    @pytest.mark.anyio
    async def test_matches_last_segment_at_any_depth(self):
        paths = [
            "package.json",
            "apps/web/package.json",
            "apps/web/yarn.lock",
            "docs/not-package.json",
            "README.md",
        ]
        files = {p: "{}" for p in paths}
        target = ScanTarget.remote("o", "r", "main", root_only=False)

        async with GitHubClient("t", transport=httpx.MockTransport(_tree_handler(paths, files))) as client:
            result = await fetch_remote_tree(target, client)

        assert [f.filename for f in result.files] == [
            "package.json",
            "apps/web/package.json",
            "apps/web/yarn.lock",
        ]
        assert result.files[1].source == "o/r@main:apps/web/package.json"
        assert result.files[2].analyzer.analyzer_id == "yarn-lock"
        missing = [name for _, name in result.missing]
        assert "package.json" not in missing and "yarn.lock" not in missing
        assert len(missing) == len(ALL_NAMES) - 2

    @pytest.mark.anyio
    async def test_missing_branch(self):
        target = ScanTarget.remote("o", "r", "develop", root_only=False)
        handler = _tree_handler(["package.json"], {"package.json": "{}"})

        async with GitHubClient("t", transport=httpx.MockTransport(handler)) as client:
            result = await fetch_remote_tree(target, client)

        assert result.files == []
        assert [name for _, name in result.missing] == ALL_NAMES

    @pytest.mark.anyio
    async def test_unfetchable_file_recorded_as_missing(self):
        base = _tree_handler(["web/package.json", "web/yarn.lock"], {"web/yarn.lock": "# v1\n"})

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/web/package.json"):
                return httpx.Response(500, text="server error")
            return base(request)

        target = ScanTarget.remote("o", "r", "main", root_only=False)
        with patch("asyncio.sleep", new_callable=AsyncMock):
            async with GitHubClient("t", transport=httpx.MockTransport(handler)) as client:
                result = await fetch_remote_tree(target, client)

        assert [f.filename for f in result.files] == ["web/yarn.lock"]
        missing = [name for _, name in result.missing]
        assert "web/package.json" in missing


class TestLocate:
    @pytest.mark.anyio
    async def test_local_dispatch(self, tmp_path):
        (tmp_path / "deno.lock").write_text("{}")
        result = await locate(ScanTarget.local(), root=tmp_path)
        assert [f.filename for f in result.files] == ["deno.lock"]

    @pytest.mark.anyio
    async def test_remote_requires_client(self):
        with pytest.raises(ValueError):
            await locate(ScanTarget.remote("o", "r", "main"))
