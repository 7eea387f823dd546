"""Emission boundary: ordered ``(GroupKey, payload)`` pairs and a terminal marker."""

from __future__ import annotations

from typing import Any, Dict, Iterator, Sequence, Tuple, Union

from bids_grouping.models.records import ChannelRecord, GroupKey


class NoRecordsEmittedError(RuntimeError):
    """Raised when a run produces no record at all."""


class _EndOfStream:
    _instance: "_EndOfStream | None" = None

    def __new__(cls) -> "_EndOfStream":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "END_OF_STREAM"


END_OF_STREAM = _EndOfStream()

Emitted = Union[Tuple[GroupKey, Dict[str, Any]], _EndOfStream]


def emit_records(records: Sequence[ChannelRecord]) -> Iterator[Emitted]:
    """Yield every record's key and payload, then exactly one ``END_OF_STREAM``."""
    if not records:
        raise NoRecordsEmittedError(
            "No records were emitted; check the grouping configuration against the file list"
        )
    for record in records:
        yield record.group_key, record.to_payload()
    yield END_OF_STREAM


def iter_payloads(records: Sequence[ChannelRecord]) -> Iterator[Tuple[GroupKey, Dict[str, Any]]]:
    """Like :func:`emit_records` without the terminal marker."""
    for item in emit_records(records):
        if item is END_OF_STREAM:
            return
        yield item  # type: ignore[misc]


__all__ = ["END_OF_STREAM", "NoRecordsEmittedError", "emit_records", "iter_payloads"]
