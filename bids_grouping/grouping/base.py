"""Base class shared by the set handlers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bids_grouping.config.grouping import AnySetConfig, SuffixConfig
from bids_grouping.models.entities import FileRecord
from bids_grouping.models.records import ChannelRecord, GroupKey, build_group_key, iter_paths

from .files import FileLayout
from .matching import matches_filter, vetoing_entity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandlerContext:
    """Run-wide inputs every handler needs."""

    loop_over: Tuple[str, ...]
    layout: FileLayout

    def group_key(self, record: FileRecord) -> GroupKey:
        return build_group_key(record.entity_values(self.loop_over))

    def describe_key(self, key: GroupKey) -> str:
        return ", ".join(f"{entity}: {value}" for entity, value in zip(self.loop_over, key))


class SetHandler:
    """Turns the files of one configuration key into per-GroupKey fragments."""

    set_type: str = ""

    def __init__(self, config: SuffixConfig, context: HandlerContext) -> None:
        if config.set_type != self.set_type:
            raise ValueError(
                f"{type(self).__name__} cannot process {config.set_type} configuration '{config.key}'"
            )
        self.config = config
        self.context = context

    @property
    def set_config(self) -> AnySetConfig:
        return self.config.set_config

    @property
    def layout(self) -> FileLayout:
        return self.context.layout

    @property
    def output_key(self) -> str:
        return self.config.output_key

    def process(self, files: Sequence[FileRecord]) -> List[ChannelRecord]:
        """Fragments for every GroupKey, in order of first appearance."""
        fragments: List[ChannelRecord] = []
        dropped = 0
        for key, records in self.group_files(files).items():
            fragment = self.process_group(key, records)
            if fragment is None:
                dropped += 1
                continue
            fragments.append(fragment)
        logger.debug(
            "%s '%s': %d fragments emitted, %d groups dropped",
            self.set_type,
            self.config.key,
            len(fragments),
            dropped,
        )
        return fragments

    def process_group(self, key: GroupKey, records: List[FileRecord]) -> Optional[ChannelRecord]:
        raise NotImplementedError("Subclasses must implement this method.")

    def accepts(self, record: FileRecord) -> bool:
        """Apply the ``filter`` and ``exclude_entities`` options."""
        set_config = self.set_config
        if set_config.filter and not matches_filter(record, set_config.filter):
            logger.debug("%s filtered out for '%s'", record.filename, self.config.key)
            return False
        vetoed_by = vetoing_entity(record, set_config.exclude_entities)
        if vetoed_by is not None:
            logger.debug(
                "%s excluded from '%s' by entity %s", record.filename, self.config.key, vetoed_by
            )
            return False
        return True

    def group_files(self, files: Sequence[FileRecord]) -> Dict[GroupKey, List[FileRecord]]:
        grouped: Dict[GroupKey, List[FileRecord]] = {}
        for record in files:
            if not self.accepts(record):
                continue
            grouped.setdefault(self.context.group_key(record), []).append(record)
        return grouped

    def make_fragment(
        self,
        key: GroupKey,
        data: Any,
        records: Sequence[FileRecord],
    ) -> ChannelRecord:
        return ChannelRecord.create(
            key,
            self.context.loop_over,
            self.output_key,
            data,
            self.layout.record_paths(records),
        )

    def contributing(self, data: Any, records: Sequence[FileRecord]) -> List[FileRecord]:
        """Records whose relative path appears somewhere in ``data``."""
        used = set(iter_paths(data))
        return [record for record in records if self.layout.relativize(record.path) in used]

    def missing_required(
        self,
        key: GroupKey,
        required: Sequence[str],
        found: Sequence[str],
    ) -> bool:
        """Log and report whether any required group is absent for ``key``."""
        missing = [name for name in required if name not in found]
        if not missing:
            return False
        logger.warning(
            "Entities %s, Suffix %s: Missing required groups: %s. Found: %s",
            self.context.describe_key(key),
            self.config.key,
            missing,
            list(found),
        )
        return True


__all__ = ["HandlerContext", "SetHandler"]
