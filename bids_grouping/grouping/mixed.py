"""Mixed sets: named groups, each ordered along one sequential dimension."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from bids_grouping.config.grouping import MixedSetConfig
from bids_grouping.models.entities import MISSING, FileRecord
from bids_grouping.models.records import ChannelRecord, GroupKey

from .base import SetHandler
from .matching import match_group
from .sequencing import SequenceBuilder, SequenceItem

logger = logging.getLogger(__name__)


class MixedSetHandler(SetHandler):
    """Output per GroupKey is ``{group: {extension: [ordered paths]}}``."""

    set_type = "mixed_set"

    @property
    def set_config(self) -> MixedSetConfig:
        return self.config.set_config  # type: ignore[return-value]

    def process_group(self, key: GroupKey, records: List[FileRecord]) -> Optional[ChannelRecord]:
        set_config = self.set_config
        dimension = set_config.sequential_dimension
        members: Dict[str, List[SequenceItem]] = {}
        for record in records:
            group = match_group(record, set_config.groups, restrict_to=set_config.named_dimension)
            if group is None:
                logger.debug("No matching group pattern for %s in '%s'", record.filename, self.config.key)
                continue
            value = record.get_entity(dimension)
            if value == MISSING:
                logger.debug(
                    "%s missing sequential dimension %s for '%s'",
                    record.filename,
                    dimension,
                    self.config.key,
                )
                continue
            members.setdefault(group, []).append(SequenceItem(record=record, values=(value,)))

        if not members:
            return None
        if self.missing_required(key, set_config.required, list(members)):
            return None

        builder = SequenceBuilder(self.layout, [dimension])
        data: Dict[str, Any] = {}
        contributing: List[FileRecord] = []
        for name in set_config.group_names:
            if name not in members:
                continue
            data[name] = builder.single(members[name])
            contributing.extend(item.record for item in members[name])
        return self.make_fragment(key, data, contributing)


__all__ = ["MixedSetHandler"]
