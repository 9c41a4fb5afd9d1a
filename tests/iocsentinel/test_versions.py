"""Tests for the shared version helpers."""

from __future__ import annotations

import json

import pytest

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.engines.lockfile_scanner.versions import (
    declared_matches,
    installed_matches,
    is_valid,
    match_installed,
    parse_json_loose,
    register_installed_version,
    satisfies,
    split_name_version,
)


class TestSemver:
    def test_is_valid(self):
        assert is_valid("1.3.0")
        assert is_valid("1.0.0-beta.1")
        assert not is_valid("1.3")
        assert not is_valid("latest")
        assert not is_valid("")

    def test_satisfies_range(self):
        assert satisfies("1.3.0", "^1.0.0")
        assert satisfies("4.1.2", "~4.1.0")
        assert not satisfies("2.0.0", "^1.0.0")

    def test_exact_pin_matches_only_that_version(self):
        assert not satisfies("1.3.0", "1.3.0-beta.1")
        assert not satisfies("1.3.0", "=1.3.0-beta.1")
        assert satisfies("1.3.0-beta.1", "1.3.0-beta.1")
        assert satisfies("1.3.0", "=1.3.0")
        assert satisfies("1.3.0", "v1.3.0")
        assert declared_matches("1.3.0-beta.1", ["1.3.0"]) == []

    def test_declared_matches_filters_invalid_feed_versions(self):
        assert declared_matches("^1.0.0", ["1.3.0", "garbage", "2.0.0"]) == ["1.3.0"]

    def test_installed_matches_is_exact(self):
        assert installed_matches("1.3.0", ["1.3.0", "1.3.1"]) == ["1.3.0"]
        assert installed_matches("^1.3.0", ["1.3.0"]) == []


class TestSplitNameVersion:
    @pytest.mark.parametrize(
        ("token", "expected"),
        [
            ("left-pad@1.3.0", ("left-pad", "1.3.0")),
            ("@ctrl/tinycolor@4.1.1", ("@ctrl/tinycolor", "4.1.1")),
            (" lodash@4.17.21 ", ("lodash", "4.17.21")),
        ],
    )
    def test_split(self, token, expected):
        assert split_name_version(token) == expected

    @pytest.mark.parametrize("token", ["left-pad", "@ctrl/tinycolor", "@1.0.0", "left-pad@"])
    def test_no_version(self, token):
        assert split_name_version(token) is None


class TestRegisterInstalledVersion:
    def test_keeps_highest(self):
        installed: dict[str, str] = {}
        for version in ("1.0.0", "2.0.0", "1.5.0"):
            register_installed_version(installed, "left-pad", version)
        assert installed == {"left-pad": "2.0.0"}

    def test_ignores_invalid_versions(self):
        installed = {"left-pad": "1.0.0"}
        register_installed_version(installed, "left-pad", "link:../left-pad")
        register_installed_version(installed, "", "1.0.0")
        assert installed == {"left-pad": "1.0.0"}

    def test_match_installed(self):
        index = VulnerabilityIndex({"left-pad": ["1.3.0"], "a": ["1.0.0"]})
        matches = match_installed({"left-pad": "1.3.0", "a": "2.0.0"}, index, "yarn.lock")
        assert [m.to_dict() for m in matches] == [
            {
                "source": "yarn.lock",
                "packageName": "left-pad",
                "installedVersion": "1.3.0",
                "vulnerableVersions": ["1.3.0"],
            }
        ]


class TestParseJsonLoose:
    def test_strict_json(self):
        assert parse_json_loose('{"a": 1}') == {"a": 1}

    def test_comments_and_trailing_commas(self):
        raw = '{\n  // line\n  "a": [1, 2,], /* block */\n  "b": {"c": 3,},\n}'
        assert parse_json_loose(raw) == {"a": [1, 2], "b": {"c": 3}}

    def test_comment_markers_inside_strings_kept(self):
        raw = '{"url": "https://x.test/a,}", "b": "/* no */",}'
        assert parse_json_loose(raw) == {"url": "https://x.test/a,}", "b": "/* no */"}

    def test_escaped_quotes(self):
        raw = '{"a": "say \\"hi\\", // not a comment",}'
        assert parse_json_loose(raw) == {"a": 'say "hi", // not a comment'}

    def test_unrecoverable(self):
        with pytest.raises(json.JSONDecodeError):
            parse_json_loose("{nope")
