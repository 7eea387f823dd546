"""Loader for the extractor's CSV file list.

The extractor (libBIDS style) writes one row per dataset file::

    derivatives,data_type,subject,session,...,suffix,extension,path

Entity columns may use long (``subject``) or short (``sub``) names and their
values may carry the ``entity-`` prefix; ``NA`` marks an absent value.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from bids_grouping.models.entities import (
    LONG_TO_SHORT,
    MISSING,
    STANDARD_ENTITIES,
    FileRecord,
    extract_suffix,
    strip_entity_prefix,
)
from bids_grouping.services.logging import console_kwargs

logger = logging.getLogger(__name__)

METADATA_COLUMNS = ("data_type", "derivatives", "extension")


def _present(value: Optional[str]) -> bool:
    return bool(value) and value != MISSING


def _entities_from_row(row: Dict[str, str]) -> Dict[str, str]:
    entities: Dict[str, str] = {}
    for column, short in LONG_TO_SHORT.items():
        value = (row.get(column) or "").strip()
        if _present(value):
            entities[short] = strip_entity_prefix(value, short)
    for short in STANDARD_ENTITIES:
        if short in entities:
            continue
        value = (row.get(short) or "").strip()
        if _present(value):
            entities[short] = strip_entity_prefix(value, short)
    return entities


def parse_rows(lines: Iterable[str], *, source: str = "<memory>") -> List[FileRecord]:
    """Parse CSV text lines (header first) into file records."""
    reader = csv.reader(lines)
    header = next(reader, None)
    if not header:
        logger.warning("CSV file list is empty: %s", source)
        return []
    header = [column.strip() for column in header]

    records: List[FileRecord] = []
    for line_number, values in enumerate(reader, start=2):
        if not values or not any(value.strip() for value in values):
            continue
        if len(values) != len(header):
            logger.warning(
                "%s:%d: invalid CSV row (column count mismatch), skipping",
                source,
                line_number,
            )
            continue
        row = dict(zip(header, (value.strip() for value in values)))
        path = row.get("path")
        if not _present(path):
            logger.warning("%s:%d: row missing path, skipping", source, line_number)
            continue
        suffix = row.get("suffix")
        records.append(
            FileRecord(
                path=path,
                suffix=suffix if _present(suffix) else extract_suffix(path),
                entities=_entities_from_row(row),
                metadata={
                    column: row[column]
                    for column in METADATA_COLUMNS
                    if _present(row.get(column))
                },
            )
        )
    return records


def load_file_list(csv_path: Path) -> List[FileRecord]:
    """Load file records from an extractor CSV."""
    csv_path = Path(csv_path)
    if not csv_path.exists():
        raise FileNotFoundError(f"File list not found: {csv_path}")

    with csv_path.open("r", encoding="utf-8", newline="") as handle:
        records = parse_rows(handle, source=str(csv_path))

    suffix_counts: Dict[str, int] = {}
    for record in records:
        if record.suffix:
            suffix_counts[record.suffix] = suffix_counts.get(record.suffix, 0) + 1
    logger.info(
        "Parsed %d files from %s with suffixes: %s",
        len(records),
        csv_path,
        suffix_counts,
        extra=console_kwargs(),
    )
    return records


def records_from_paths(paths: Iterable[str]) -> List[FileRecord]:
    """Build records from bare BIDS paths by parsing their filenames."""
    return [FileRecord.from_path(path) for path in paths]


__all__ = ["load_file_list", "parse_rows", "records_from_paths"]
