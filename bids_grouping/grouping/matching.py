"""Pattern matching of files against named groups and filters."""

from __future__ import annotations

from typing import Iterable, Mapping, Optional, Sequence

from bids_grouping.config.grouping import NamedGroup
from bids_grouping.models.entities import MISSING, FileRecord, normalize_entity_name, normalize_value


def values_match(actual: Optional[str], expected: Optional[str]) -> bool:
    """Compare entity values ignoring ``entity-`` prefixes and leading zeros."""
    return normalize_value(actual) == normalize_value(expected)


def matches_filter(record: FileRecord, pattern: Mapping[str, Optional[str]]) -> bool:
    """True when every filter entry matches; ``None`` and ``"NA"`` are wildcards."""
    for entity, expected in pattern.items():
        if expected is None or expected == MISSING:
            continue
        if not values_match(record.get_entity(entity), expected):
            return False
    return True


def vetoing_entity(record: FileRecord, entities: Iterable[str]) -> Optional[str]:
    """First entity of ``entities`` present on the record, if any."""
    for entity in entities:
        if record.has_entity(entity):
            return entity
    return None


def match_group(
    record: FileRecord,
    groups: Sequence[NamedGroup],
    restrict_to: Optional[str] = None,
) -> Optional[str]:
    """Name of the first group (declaration order) the record belongs to.

    With ``restrict_to`` only that entity's pattern is compared and a group
    without a pattern for it matches vacuously. Groups with no patterns never
    match otherwise.
    """
    restricted = normalize_entity_name(restrict_to) if restrict_to else None
    for group in groups:
        patterns = group.normalized_patterns()
        if restricted is not None:
            expected = patterns.get(restricted)
            if expected is None or values_match(record.get_entity(restricted), expected):
                return group.name
            continue
        if not patterns:
            continue
        if all(
            normalize_value(record.get_entity(entity)) == expected
            for entity, expected in patterns.items()
        ):
            return group.name
    return None


__all__ = ["match_group", "matches_filter", "values_match", "vetoing_entity"]
