"""Cross-modal broadcasting of task-independent data into task records.

Records whose task entity is ``"NA"`` (anatomical references, field maps, ...)
are modality independent. A task-specific record whose suffix configuration
lists ``include_cross_modal: [T1w]`` receives a copy of the ``T1w`` entry of
the independent record sharing every other loop-over value. An independent
record whose entries were all consumed this way is dropped; otherwise the
consumed entries are removed from it so no suffix is emitted twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Set, Tuple

from bids_grouping.config.grouping import GroupingConfig
from bids_grouping.models.entities import MISSING, normalize_entity_name
from bids_grouping.models.records import ChannelRecord, GroupKey, iter_paths

logger = logging.getLogger(__name__)


@dataclass
class BroadcastOutcome:
    records: List[ChannelRecord] = field(default_factory=list)
    copies: int = 0
    dropped: int = 0
    trimmed: int = 0


def _task_index(loop_over: Sequence[str], task_entity: str) -> int | None:
    target = normalize_entity_name(task_entity)
    for index, entity in enumerate(loop_over):
        if normalize_entity_name(entity) == target:
            return index
    return None


def _non_task_key(key: GroupKey, task_index: int) -> Tuple[str, ...]:
    return key[:task_index] + key[task_index + 1:]


def _requested_suffixes(record: ChannelRecord, config: GroupingConfig) -> List[str]:
    requested: List[str] = []
    for suffix in record.data:
        suffix_config = config.config_for_output(suffix)
        if suffix_config is None:
            continue
        for name in suffix_config.include_cross_modal:
            if name not in requested:
                requested.append(name)
    return requested


def broadcast_cross_modal(
    records: Sequence[ChannelRecord],
    config: GroupingConfig,
    *,
    task_entity: str = "task",
) -> BroadcastOutcome:
    """Apply cross-modal inclusion and the retain/drop rule to unified records."""
    if not records:
        return BroadcastOutcome()
    task_index = _task_index(records[0].loop_over, task_entity)
    if task_index is None:
        logger.debug("Loop-over entities lack '%s'; cross-modal broadcasting skipped", task_entity)
        return BroadcastOutcome(records=list(records))

    registry: Dict[Tuple[str, ...], ChannelRecord] = {}
    for record in records:
        if record.group_key[task_index] == MISSING:
            registry[_non_task_key(record.group_key, task_index)] = record

    outcome = BroadcastOutcome()
    consumed: Dict[Tuple[str, ...], Set[str]] = {}
    enriched: Dict[int, ChannelRecord] = {}
    for position, record in enumerate(records):
        if record.group_key[task_index] == MISSING:
            continue
        non_task = _non_task_key(record.group_key, task_index)
        source = registry.get(non_task)
        if source is None:
            continue
        updated = record
        for suffix in _requested_suffixes(record, config):
            if not source.has_suffix(suffix):
                continue
            if updated.has_suffix(suffix):
                logger.debug("%s already carries %s; cross-modal copy skipped", updated, suffix)
                continue
            suffix_data = source.data[suffix]
            updated = updated.with_added_suffix(suffix, suffix_data, iter_paths(suffix_data))
            consumed.setdefault(non_task, set()).add(suffix)
            outcome.copies += 1
        enriched[position] = updated

    for position, record in enumerate(records):
        if record.group_key[task_index] != MISSING:
            outcome.records.append(enriched.get(position, record))
            continue
        used = consumed.get(_non_task_key(record.group_key, task_index), set())
        if not used:
            outcome.records.append(record)
        elif used.issuperset(record.data):
            logger.debug("Dropping %s: every entry was broadcast", record)
            outcome.dropped += 1
        else:
            outcome.records.append(record.without_suffixes(used))
            outcome.trimmed += 1
    return outcome


__all__ = ["BroadcastOutcome", "broadcast_cross_modal"]
