"""Lockfile scanner engine: find compromised package versions in manifests and lockfiles."""

from iocsentinel.engines.lockfile_scanner.models import (
    ExtractedDependency,
    FileToAnalyze,
    Match,
    ScanReport,
    ScanResult,
    ScanTarget,
)
from iocsentinel.engines.lockfile_scanner.registry import ANALYZER_REGISTRY, Analyzer
from iocsentinel.engines.lockfile_scanner.scanner import Scanner, scan

__all__ = [
    "ANALYZER_REGISTRY",
    "Analyzer",
    "ExtractedDependency",
    "FileToAnalyze",
    "Match",
    "ScanReport",
    "ScanResult",
    "ScanTarget",
    "Scanner",
    "scan",
]
