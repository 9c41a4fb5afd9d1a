"""Custom exceptions for iocsentinel."""


class IocSentinelError(Exception):
    """Base exception for all iocsentinel errors."""


class ConfigError(IocSentinelError):
    """Raised when the scan configuration is contradictory (fails before any network call)."""


class FeedError(IocSentinelError):
    """Raised when the IOC feed cannot be fetched; no matching is possible without it."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"unable to load IOC feed {url}: {reason}")


class GitHubError(IocSentinelError):
    """Raised when the GitHub API returns a payload we cannot interpret."""
