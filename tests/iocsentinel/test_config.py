"""Tests for ScanConfig and logging setup helpers."""

from __future__ import annotations

import pytest

from iocsentinel.config import DEFAULT_BRANCHES, IOC_FEED_URL, ScanConfig, split_csv
from iocsentinel.core.logging import level_for_verbosity
from iocsentinel.exceptions import ConfigError


class TestSplitCsv:
    def test_string(self):
        assert split_csv("main, dev,,main") == ("main", "dev")

    def test_repeated_values(self):
        assert split_csv(("Acme,Foo", "acme"), lower=True) == ("acme", "foo")

    def test_none(self):
        assert split_csv(None) == ()


class TestScanConfig:
    def test_defaults(self):
        config = ScanConfig()
        assert config.branches == DEFAULT_BRANCHES
        assert config.feed_url == IOC_FEED_URL
        assert config.is_local
        assert config.mode == "local"

    def test_modes(self):
        assert ScanConfig(orgs=("acme",)).mode == "org"
        assert ScanConfig(repos=("acme/web",), orgs=("acme",)).mode == "repos"

    def test_token_hidden_from_repr(self):
        assert "ghp_secret" not in repr(ScanConfig(token="ghp_secret"))

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", " ghp_env ")
        monkeypatch.setenv("IOCSENTINEL_FEED_URL", "https://mirror.test/iocs.csv")
        config = ScanConfig.from_env(repos=("acme/web",), verbosity=None)
        assert config.token == "ghp_env"
        assert config.feed_url == "https://mirror.test/iocs.csv"
        assert config.verbosity == 0

    def test_from_env_override_wins(self, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")
        assert ScanConfig.from_env(token="ghp_flag").token == "ghp_flag"


class TestValidate:
    def test_local_needs_nothing(self):
        config = ScanConfig(root_only=False, all_branches=True)
        assert config.validate() is config

    def test_tree_scan_needs_token(self):
        with pytest.raises(ConfigError, match="token"):
            ScanConfig(repos=("acme/web",), root_only=False).validate()

    def test_all_branches_needs_token(self):
        with pytest.raises(ConfigError, match="--all-branches"):
            ScanConfig(orgs=("acme",), all_branches=True).validate()

    def test_no_branches(self):
        with pytest.raises(ConfigError):
            ScanConfig(repos=("acme/web",), branches=()).validate()

    def test_bad_concurrency(self):
        with pytest.raises(ConfigError):
            ScanConfig(concurrency=0).validate()

    def test_remote_with_token(self):
        config = ScanConfig(orgs=("acme",), all_branches=True, root_only=False, token="t")
        assert config.validate() is config


class TestVerbosityLevels:
    @pytest.mark.parametrize(
        ("verbosity", "level"),
        [(0, "ERROR"), (1, "WARNING"), (2, "INFO"), (3, "DEBUG"), (7, "DEBUG"), (-1, "ERROR")],
    )
    def test_levels(self, verbosity, level):
        assert level_for_verbosity(verbosity) == level
