"""Fetch and parse the IOC CSV feed (``package_name,versions,...``)."""

from __future__ import annotations

import csv
import io
import re
import time

import httpx
import structlog

from iocsentinel.core.github import USER_AGENT
from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex
from iocsentinel.exceptions import FeedError

log = structlog.get_logger("iocsentinel.feed")

_VERSION_SPLIT_RE = re.compile(r"[|;\s]+")
_HEADER_FIRST_CELL = "package_name"


def parse_feed(text: str) -> VulnerabilityIndex:
    """Parse the feed body into a :class:`VulnerabilityIndex`.

    The versions column may hold several versions separated by ``|``, ``;``
    or whitespace. Rows repeating a package are merged. Malformed or empty
    rows are skipped.
    """
    merged: dict[str, dict[str, None]] = {}
    reader = csv.reader(io.StringIO(text))

    for row_no, row in enumerate(reader):
        if row_no == 0 and row and row[0].strip().lower() == _HEADER_FIRST_CELL:
            continue
        if len(row) < 2:
            continue

        name = row[0].strip()
        versions = [v for v in _VERSION_SPLIT_RE.split(row[1].strip()) if v]
        if not name or not versions:
            continue

        bucket = merged.setdefault(name, {})
        for version in versions:
            bucket.setdefault(version, None)

    return VulnerabilityIndex({name: list(versions) for name, versions in merged.items()})


async def load_feed(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = 30.0,
) -> VulnerabilityIndex:
    """Download the feed at *url* and parse it.

    Raises :class:`FeedError` when the feed is unreachable or answers with a
    non-success status, since the run cannot continue without it.
    """
    log.info("feed.loading", url=url)
    headers = {
        "Cache-Control": "no-cache",
        "Pragma": "no-cache",
        "User-Agent": USER_AGENT,
        "Accept": "text/csv",
    }
    params = {"nocache": str(int(time.time() * 1000))}

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    try:
        response = await http.get(url, params=params, headers=headers)
    except httpx.HTTPError as exc:
        raise FeedError(url, str(exc) or type(exc).__name__) from exc
    finally:
        if owns_client:
            await http.aclose()

    if not response.is_success:
        raise FeedError(url, f"HTTP {response.status_code} {response.reason_phrase}")

    index = parse_feed(response.text)
    log.info("feed.loaded", url=url, packages=len(index))
    return index
