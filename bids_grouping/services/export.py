"""JSON-lines sink for emitted records."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Tuple

from bids_grouping.models.records import GroupKey

logger = logging.getLogger(__name__)


class JsonLinesExporter:
    """Write one ``{"key": [...], "record": {...}}`` object per line."""

    def __init__(self, path: Path, *, overwrite: bool = True) -> None:
        self.path = Path(path)
        self.overwrite = overwrite

    def write(self, items: Iterable[Tuple[GroupKey, Dict[str, Any]]]) -> int:
        if self.path.exists() and not self.overwrite:
            raise FileExistsError(f"Refusing to overwrite existing export: {self.path}")
        self.path.parent.mkdir(parents=True, exist_ok=True)

        count = 0
        with self.path.open("w", encoding="utf-8") as handle:
            for key, payload in items:
                handle.write(json.dumps({"key": list(key), "record": payload}, sort_keys=False))
                handle.write("\n")
                count += 1
        logger.debug("Wrote %d records to %s", count, self.path)
        return count


def read_json_lines(path: Path) -> list[Dict[str, Any]]:
    with Path(path).open("r", encoding="utf-8") as handle:
        return [json.loads(line) for line in handle if line.strip()]


__all__ = ["JsonLinesExporter", "read_json_lines"]
