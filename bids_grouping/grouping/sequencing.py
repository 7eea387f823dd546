"""Numeric-aware ordering of files into sequences."""

from __future__ import annotations

import functools
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bids_grouping.models.entities import MISSING, FileRecord

from .files import FileLayout

logger = logging.getLogger(__name__)

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def _trailing_number(value: Any) -> Optional[int]:
    match = _TRAILING_DIGITS.search(str(value))
    if match is None:
        return None
    return int(match.group(1))


def compare_sequence_values(a: Any, b: Any) -> int:
    """Compare two ordering values.

    When both end in digits the trailing numbers are compared, so ``echo-10``
    sorts after ``echo-2``; otherwise the string forms are compared.
    """
    num_a = _trailing_number(a)
    num_b = _trailing_number(b)
    if num_a is not None and num_b is not None:
        return (num_a > num_b) - (num_a < num_b)
    str_a, str_b = str(a), str(b)
    return (str_a > str_b) - (str_a < str_b)


def compare_value_tuples(a: Sequence[Any], b: Sequence[Any]) -> int:
    for left, right in zip(a, b):
        result = compare_sequence_values(left, right)
        if result:
            return result
    return (len(a) > len(b)) - (len(a) < len(b))


sequence_sort_key = functools.cmp_to_key(compare_sequence_values)
tuple_sort_key = functools.cmp_to_key(compare_value_tuples)


@dataclass(frozen=True)
class SequenceItem:
    """A file with its values for the ordering entities."""

    record: FileRecord
    values: Tuple[str, ...]


def sort_items(items: Sequence[SequenceItem], start: int = 0) -> List[SequenceItem]:
    """Stable sort on the ordering values from position ``start`` onwards."""
    return sorted(items, key=lambda item: tuple_sort_key(item.values[start:]))


def group_by_outer(items: Sequence[SequenceItem]) -> List[Tuple[str, List[SequenceItem]]]:
    """Group items by their first ordering value; groups sorted by the comparator."""
    grouped: Dict[str, List[SequenceItem]] = {}
    for item in items:
        grouped.setdefault(item.values[0], []).append(item)
    return [(key, grouped[key]) for key in sorted(grouped, key=sequence_sort_key)]


class SequenceBuilder:
    """Builds the nested sequence structures of sequential and mixed sets.

    Positions dropped because a configured part is missing are collected in
    :attr:`incomplete` so the caller can report them against its GroupKey.
    """

    def __init__(
        self,
        layout: FileLayout,
        entities: Sequence[str],
        parts: Sequence[str] = (),
    ) -> None:
        self.layout = layout
        self.entities = list(entities)
        self.parts = list(parts)
        self.incomplete: List[str] = []

    def single(self, items: Sequence[SequenceItem]) -> Dict[str, Any]:
        """``{ext: [paths]}`` (or parts objects) ordered on one entity."""
        if self.parts:
            return self._with_parts(items, start=0)
        return self._expand(sort_items(items))

    def hierarchical(self, items: Sequence[SequenceItem]) -> Dict[str, List[Any]]:
        """``{ext: [[...], ...]}``, one inner list per outer value, related files expanded."""
        result: Dict[str, List[Any]] = {}
        for outer, group in group_by_outer(items):
            if self.parts:
                inner = self._with_parts(group, start=1, outer=outer)
            else:
                inner = self._expand(sort_items(group, start=1))
            for extension_type, paths in inner.items():
                result.setdefault(extension_type, []).append(paths)
        return result

    def flat(self, items: Sequence[SequenceItem]) -> Dict[str, List[Any]]:
        """Same two-level grouping; each file lands under its own extension type."""
        result: Dict[str, List[Any]] = {}
        for outer, group in group_by_outer(items):
            if self.parts:
                inner = self._with_parts(group, start=1, outer=outer)
            else:
                inner = {}
                for item in sort_items(group, start=1):
                    extension_type = self.layout.extension_type(item.record.path)
                    inner.setdefault(extension_type, []).append(
                        self.layout.relativize(item.record.path)
                    )
            for extension_type, paths in inner.items():
                result.setdefault(extension_type, []).append(paths)
        return result

    def _expand(self, ordered: Sequence[SequenceItem]) -> Dict[str, List[str]]:
        candidates = [item.record for item in ordered]
        result: Dict[str, List[str]] = {}
        seen_bases: set[str] = set()
        for item in ordered:
            base = self.layout.base_name(item.record.path)
            if base in seen_bases:
                continue
            seen_bases.add(base)
            for related in self.layout.related(item.record, candidates):
                extension_type = self.layout.extension_type(related.path)
                path = self.layout.relativize(related.path)
                paths = result.setdefault(extension_type, [])
                if path not in paths:
                    paths.append(path)
        return result

    def _with_parts(
        self,
        items: Sequence[SequenceItem],
        *,
        start: int,
        outer: Optional[str] = None,
    ) -> Dict[str, List[Any]]:
        positions: Dict[str, Dict[Tuple[str, ...], Dict[str, str]]] = {}
        partless: Dict[str, List[str]] = {}
        for item in items:
            record = item.record
            part = record.get_entity("part")
            extension_type = self.layout.extension_type(record.path)
            if part == MISSING:
                if self.layout.is_imaging(record.path):
                    logger.debug("Dropping part-less image %s from parts sequence", record.filename)
                    continue
                partless.setdefault(extension_type, []).append(self.layout.relativize(record.path))
                continue
            if part not in self.parts:
                logger.debug("Dropping %s: part '%s' not configured", record.filename, part)
                continue
            by_position = positions.setdefault(extension_type, {})
            by_position.setdefault(item.values[start:], {})[part] = self.layout.relativize(
                record.path
            )

        result: Dict[str, List[Any]] = {}
        for extension_type, by_position in positions.items():
            sequence: List[Dict[str, str]] = []
            for position in sorted(by_position, key=tuple_sort_key):
                found = by_position[position]
                missing = [part for part in self.parts if part not in found]
                if missing:
                    self.incomplete.append(
                        f"{self._describe(position, start, outer)} ({extension_type}) "
                        f"missing parts {missing}"
                    )
                    continue
                sequence.append({part: found[part] for part in self.parts})
            if sequence:
                result[extension_type] = sequence
        for extension_type, paths in partless.items():
            result[extension_type] = sorted(dict.fromkeys(paths))
        return result

    def _describe(self, position: Tuple[str, ...], start: int, outer: Optional[str]) -> str:
        labels = []
        if outer is not None:
            labels.append(f"{self.entities[0]}={outer}")
        labels.extend(
            f"{entity}={value}" for entity, value in zip(self.entities[start:], position)
        )
        return ", ".join(labels) or "sequence"


__all__ = [
    "SequenceBuilder",
    "SequenceItem",
    "compare_sequence_values",
    "compare_value_tuples",
    "group_by_outer",
    "sequence_sort_key",
    "sort_items",
    "tuple_sort_key",
]
