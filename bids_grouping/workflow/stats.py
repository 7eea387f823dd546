"""Counters collected over one grouping run."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class RunMetrics:
    """Lightweight counters for a grouping run."""

    files: int = 0
    unrouted: int = 0
    handlers: int = 0
    fragments: int = 0
    unified: int = 0
    broadcast_copies: int = 0
    dropped_standalone: int = 0
    emitted: int = 0

    def record_fragments(self, count: int) -> None:
        self.fragments += max(0, count)

    def record_unrouted(self, count: int) -> None:
        self.unrouted += max(0, count)

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


__all__ = ["RunMetrics"]
