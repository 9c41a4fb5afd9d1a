"""Data models for the IOC feed engine."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType


class VulnerabilityIndex(Mapping[str, tuple[str, ...]]):
    """Read-only mapping: package name → exact vulnerable versions.

    Package names are case-sensitive. Versions keep their feed order and are
    never interpreted as ranges.
    """

    def __init__(self, entries: Mapping[str, Iterable[str]] | None = None) -> None:
        frozen: dict[str, tuple[str, ...]] = {}
        for name, versions in (entries or {}).items():
            frozen[name] = tuple(dict.fromkeys(versions))
        self._entries = MappingProxyType(frozen)

    def __getitem__(self, name: str) -> tuple[str, ...]:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"VulnerabilityIndex({len(self)} packages)"

    def versions_for(self, name: str) -> tuple[str, ...]:
        """Vulnerable versions for *name*, or an empty tuple."""
        return self._entries.get(name, ())
