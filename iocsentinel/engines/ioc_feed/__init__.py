"""IOC feed engine: load the compromised-versions feed into a lookup index."""

from iocsentinel.engines.ioc_feed.loader import load_feed, parse_feed
from iocsentinel.engines.ioc_feed.models import VulnerabilityIndex

__all__ = ["VulnerabilityIndex", "load_feed", "parse_feed"]
