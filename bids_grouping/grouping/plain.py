"""Plain sets: one ``{extension: path}`` map per GroupKey."""

from __future__ import annotations

import logging
from typing import List, Optional

from bids_grouping.config.grouping import PlainSetConfig
from bids_grouping.models.entities import FileRecord
from bids_grouping.models.records import ChannelRecord, GroupKey

from .base import SetHandler

logger = logging.getLogger(__name__)


class PlainSetHandler(SetHandler):
    set_type = "plain_set"

    @property
    def set_config(self) -> PlainSetConfig:
        return self.config.set_config  # type: ignore[return-value]

    def accepts(self, record: FileRecord) -> bool:
        if not super().accepts(record):
            return False
        for entity in self.set_config.required_entities:
            if not record.has_entity(entity):
                logger.debug(
                    "%s lacks required entity %s for '%s'", record.filename, entity, self.config.key
                )
                return False
        return True

    def process_group(self, key: GroupKey, records: List[FileRecord]) -> Optional[ChannelRecord]:
        primaries = self.layout.select_primaries(records)
        if not primaries:
            logger.debug("No primary file for '%s' at %s", self.config.key, key)
            return None
        primary = primaries[0]
        for ignored in primaries[1:]:
            logger.warning(
                "Entities %s, Suffix %s: several files share the GroupKey; keeping %s, ignoring %s",
                self.context.describe_key(key),
                self.output_key,
                primary.filename,
                ignored.filename,
            )
        related = self.layout.related(primary, records)
        return self.make_fragment(key, self.layout.nested_map(primary, records), related)


__all__ = ["PlainSetHandler"]
