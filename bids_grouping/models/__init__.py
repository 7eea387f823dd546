"""Convenience re-exports for core grouping data models."""

from .entities import (
    MISSING,
    DatasetSummary,
    FileRecord,
    extract_suffix,
    long_entity_name,
    normalize_entity_name,
    normalize_value,
    parse_entities_from_filename,
)
from .records import ChannelRecord, GroupKey, build_group_key, iter_paths

__all__ = [
    "ChannelRecord",
    "DatasetSummary",
    "FileRecord",
    "GroupKey",
    "MISSING",
    "build_group_key",
    "extract_suffix",
    "iter_paths",
    "long_entity_name",
    "normalize_entity_name",
    "normalize_value",
    "parse_entities_from_filename",
]
