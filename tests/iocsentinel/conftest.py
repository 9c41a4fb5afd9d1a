"""Shared fixtures for iocsentinel tests (no network required)."""

import pytest

from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex

FEED = {
    "left-pad": ["1.3.0"],
    "@ctrl/tinycolor": ["4.1.1", "4.1.2"],
    "ngx-bootstrap": ["18.1.4", "19.0.3"],
    "posthog-node": ["4.18.1", "5.11.3"],
    "string_decoder": ["1.3.0"],
}


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def index():
    return VulnerabilityIndex(FEED)


@pytest.fixture
def empty_index():
    return VulnerabilityIndex()
