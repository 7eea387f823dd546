"""Sequential sets: files ordered along one or more entities."""

from __future__ import annotations

import logging
from typing import List, Optional

from bids_grouping.config.grouping import OrderMode, SequentialSetConfig
from bids_grouping.models.entities import MISSING, FileRecord
from bids_grouping.models.records import ChannelRecord, GroupKey

from .base import SetHandler
from .sequencing import SequenceBuilder, SequenceItem

logger = logging.getLogger(__name__)


class SequentialSetHandler(SetHandler):
    set_type = "sequential_set"

    @property
    def set_config(self) -> SequentialSetConfig:
        return self.config.set_config  # type: ignore[return-value]

    def process_group(self, key: GroupKey, records: List[FileRecord]) -> Optional[ChannelRecord]:
        set_config = self.set_config
        entities = set_config.by_entities
        items: List[SequenceItem] = []
        for record in records:
            values = record.entity_values(entities)
            if MISSING in values:
                logger.debug(
                    "%s missing sequence entities %s for '%s'", record.filename, entities, self.config.key
                )
                continue
            items.append(SequenceItem(record=record, values=values))
        if not items:
            return None

        builder = SequenceBuilder(self.layout, entities, set_config.parts)
        if not set_config.is_multi_dimensional:
            data = builder.single(items)
        elif set_config.order is OrderMode.FLAT:
            data = builder.flat(items)
        else:
            data = builder.hierarchical(items)

        for description in builder.incomplete:
            logger.warning(
                "Entities %s, Suffix %s: dropping incomplete position %s",
                self.context.describe_key(key),
                self.config.key,
                description,
            )
        if not data:
            return None
        return self.make_fragment(key, data, self.contributing(data, [item.record for item in items]))


__all__ = ["SequentialSetHandler"]
