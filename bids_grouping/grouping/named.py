"""Named sets: files assigned to pattern-defined groups."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from bids_grouping.config.grouping import NamedSetConfig
from bids_grouping.models.entities import FileRecord
from bids_grouping.models.records import ChannelRecord, GroupKey

from .base import SetHandler
from .matching import match_group

logger = logging.getLogger(__name__)


class NamedSetHandler(SetHandler):
    """Output per GroupKey is ``{group: {extension: path}}``."""

    set_type = "named_set"

    @property
    def set_config(self) -> NamedSetConfig:
        return self.config.set_config  # type: ignore[return-value]

    def process_group(self, key: GroupKey, records: List[FileRecord]) -> Optional[ChannelRecord]:
        set_config = self.set_config
        members: Dict[str, List[FileRecord]] = {}
        for record in records:
            group = match_group(record, set_config.groups)
            if group is None:
                logger.debug("No matching group pattern for %s in '%s'", record.filename, self.config.key)
                continue
            members.setdefault(group, []).append(record)

        if not members:
            return None
        if self.missing_required(key, set_config.required, list(members)):
            return None

        data: Dict[str, Dict[str, str]] = {}
        matched: List[FileRecord] = []
        for name in set_config.group_names:
            if name not in members:
                continue
            nested: Dict[str, str] = {}
            for record in members[name]:
                extension_type = self.layout.extension_type(record.path)
                if extension_type in nested:
                    logger.debug(
                        "Group '%s' of '%s' already has a %s file; ignoring %s",
                        name,
                        self.config.key,
                        extension_type,
                        record.filename,
                    )
                    continue
                nested[extension_type] = self.layout.relativize(record.path)
                matched.append(record)
            data[name] = nested
        return self.make_fragment(key, data, matched)


__all__ = ["NamedSetHandler"]
