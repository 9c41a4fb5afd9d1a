"""CLI entry point: iocsentinel.

Usage:
    iocsentinel                                   # scan the current directory
    iocsentinel --path ./project                  # scan another local directory
    iocsentinel --repos org/a,org/b               # scan repositories (root only)
    iocsentinel --orgs my-org --no-root-only      # whole-tree scan of an org (token required)
    iocsentinel --repos org/a --all-branches      # every branch (token required)
    iocsentinel --json                            # JSON report on stdout

Exit codes:
    0  no qualifying IOC match
    1  at least one qualifying match (see --fail-on-declared-only)
    2  fatal error (configuration, IOC feed, unexpected failure)
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
import structlog

from iocsentinel import __version__
from iocsentinel.config import (
    DEFAULT_REPO_CONCURRENCY,
    IOC_FEED_URL,
    MAX_VERBOSITY,
    ScanConfig,
    split_csv,
)
from iocsentinel.core.logging import setup_logging
from iocsentinel.engines.ioc_feed.loader import load_feed
from iocsentinel.engines.lockfile_scanner.models import ScanReport
from iocsentinel.engines.lockfile_scanner.report import (
    EXIT_FATAL,
    compute_exit_code,
    render_json,
    render_text,
)
from iocsentinel.engines.lockfile_scanner.scanner import scan
from iocsentinel.exceptions import ConfigError, FeedError

log = structlog.get_logger("iocsentinel.cli")


async def _run(config: ScanConfig, root: Path | None) -> ScanReport:
    index = await load_feed(config.feed_url)
    return await scan(config, index, root=root)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("--orgs", multiple=True, help="GitHub organization(s) to scan, comma-separated")
@click.option("--repos", multiple=True, help="owner/repo list, comma-separated")
@click.option("--branches", default=None, help='Branches to scan, comma-separated (e.g. "main,dev")')
@click.option(
    "--all-branches",
    is_flag=True,
    help="Scan every branch listed by the GitHub web UI (token required)",
)
@click.option("--json", "json_output", is_flag=True, help="Print a JSON report on stdout")
@click.option("-v", "--verbose", "verbosity", count=True, help="Verbosity (-v, -vv, -vvv)")
@click.option(
    "--fail-on-declared-only",
    type=click.BOOL,
    default=True,
    show_default=True,
    help="Whether a declared-only (manifest) match fails the run",
)
@click.option(
    "--concurrency",
    type=click.IntRange(min=1),
    default=DEFAULT_REPO_CONCURRENCY,
    show_default=True,
    help="Repository branches scanned in parallel",
)
@click.option(
    "--root-only/--no-root-only",
    default=True,
    show_default=True,
    help="Only look at the repository root; --no-root-only searches the whole tree (token required)",
)
@click.option("--token", envvar="GITHUB_TOKEN", default=None, help="GitHub token (or GITHUB_TOKEN)")
@click.option(
    "--feed-url",
    envvar="IOCSENTINEL_FEED_URL",
    default=IOC_FEED_URL,
    help="IOC CSV feed URL (or IOCSENTINEL_FEED_URL)",
)
@click.option(
    "--path",
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Local directory to scan (default: current directory)",
)
@click.version_option(__version__, "-V", "--version")
def main(
    orgs: tuple[str, ...],
    repos: tuple[str, ...],
    branches: str | None,
    all_branches: bool,
    json_output: bool,
    verbosity: int,
    fail_on_declared_only: bool,
    concurrency: int,
    root_only: bool,
    token: str | None,
    feed_url: str,
    root: Path | None,
) -> None:
    """Detect npm packages compromised by supply-chain attacks (IOC feed)."""
    overrides: dict[str, object] = {
        "orgs": split_csv(orgs, lower=True),
        "repos": split_csv(repos),
        "all_branches": all_branches,
        "json_output": json_output,
        "verbosity": min(verbosity, MAX_VERBOSITY),
        "fail_on_declared_only": fail_on_declared_only,
        "concurrency": concurrency,
        "root_only": root_only,
        "token": (token or "").strip() or None,
        "feed_url": feed_url,
    }
    if branches is not None:
        overrides["branches"] = split_csv(branches)
    config = ScanConfig(**overrides)  # type: ignore[arg-type]

    setup_logging(config.verbosity, config.json_output)

    try:
        config.validate()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FATAL)

    try:
        report = asyncio.run(_run(config, root))
    except FeedError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FATAL)
    except Exception as e:
        log.exception("cli.scan_failed")
        click.echo(f"Error during scan: {e}", err=True)
        sys.exit(EXIT_FATAL)

    if config.json_output:
        click.echo(render_json(report, config))
    else:
        click.echo(render_text(report, config))

    sys.exit(compute_exit_code(report.matches, config.fail_on_declared_only))


if __name__ == "__main__":
    main()
