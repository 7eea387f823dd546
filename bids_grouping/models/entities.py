"""Entity model: BIDS file records and entity name/value normalization."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Mapping, Optional

MISSING = "NA"

# Long entity names used in configuration documents mapped to the short names
# stored on each file record.
LONG_TO_SHORT: Dict[str, str] = {
    "subject": "sub",
    "session": "ses",
    "acquisition": "acq",
    "ceagent": "ce",
    "tracer": "trc",
    "reconstruction": "rec",
    "direction": "dir",
    "modality": "mod",
    "mtransfer": "mt",
    "inversion": "inv",
    "processing": "proc",
    "hemisphere": "hemi",
    "segmentation": "seg",
    "resolution": "res",
    "density": "den",
    "description": "desc",
    "nucleus": "nuc",
    "volume": "voi",
}
SHORT_TO_LONG: Dict[str, str] = {short: long for long, short in LONG_TO_SHORT.items()}

# Known BIDS entities in canonical filename order.
STANDARD_ENTITIES: List[str] = [
    "sub",
    "ses",
    "sample",
    "task",
    "tracksys",
    "acq",
    "nuc",
    "voi",
    "ce",
    "trc",
    "stain",
    "rec",
    "dir",
    "run",
    "mod",
    "echo",
    "flip",
    "inv",
    "mt",
    "part",
    "proc",
    "hemi",
    "space",
    "split",
    "recording",
    "chunk",
    "seg",
    "res",
    "den",
    "label",
    "desc",
]

_KNOWN_EXTENSIONS = re.compile(r"\.(nii\.gz|nii|json|tsv|bval|bvec|txt|edf|eeg)$")
_DIGITS = re.compile(r"^\d+$")


def normalize_entity_name(name: str) -> str:
    """Return the short form of an entity name (``inversion`` -> ``inv``)."""
    return LONG_TO_SHORT.get(name, name)


def long_entity_name(name: str) -> str:
    """Return the long form of an entity name (``sub`` -> ``subject``)."""
    short = normalize_entity_name(name)
    return SHORT_TO_LONG.get(short, short)


def normalize_value(value: Optional[str]) -> Optional[str]:
    """Strip an ``entity-`` prefix and leading zeros from numeric values.

    ``"flip-02"``, ``"flip-2"`` and ``"02"`` all normalize to ``"2"``.
    """
    if not value:
        return value
    normalized = value.split("-", 1)[1] if "-" in value else value
    if _DIGITS.match(normalized):
        return str(int(normalized))
    return normalized


def strip_entity_prefix(value: str, entity: str) -> str:
    prefix = f"{entity}-"
    if value.startswith(prefix):
        return value[len(prefix):]
    return value


def strip_known_extension(filename: str) -> str:
    return _KNOWN_EXTENSIONS.sub("", filename)


def extract_suffix(filename: str) -> Optional[str]:
    """Return the suffix token of a BIDS filename (``..._T1w.nii.gz`` -> ``T1w``)."""
    stem = strip_known_extension(PurePosixPath(filename).name)
    token = stem.split("_")[-1]
    if not token or "-" in token:
        return None
    return token


def parse_entities_from_filename(filename: str) -> Dict[str, str]:
    """Extract ``key-value`` tokens of known BIDS entities from a filename."""
    stem = strip_known_extension(PurePosixPath(filename).name)
    entities: Dict[str, str] = {}
    for part in stem.split("_"):
        if "-" not in part:
            continue
        key, value = part.split("-", 1)
        if key in STANDARD_ENTITIES and value:
            entities[key] = value
    return entities


@dataclass(frozen=True)
class FileRecord:
    """One dataset file with its suffix and normalized entity map."""

    path: str
    suffix: Optional[str]
    entities: Mapping[str, str] = field(default_factory=dict)
    sidecar_path: Optional[str] = None
    metadata: Mapping[str, object] = field(default_factory=dict)

    @classmethod
    def from_path(
        cls,
        path: str,
        *,
        sidecar_path: Optional[str] = None,
        metadata: Optional[Mapping[str, object]] = None,
    ) -> "FileRecord":
        """Build a record by parsing entities and suffix out of the filename."""
        name = PurePosixPath(path).name
        return cls(
            path=path,
            suffix=extract_suffix(name),
            entities=parse_entities_from_filename(name),
            sidecar_path=sidecar_path,
            metadata=dict(metadata or {}),
        )

    @property
    def filename(self) -> str:
        return PurePosixPath(self.path).name

    def get_entity(self, name: str) -> str:
        """Look up an entity by long or short name; ``"NA"`` when absent."""
        value = self.entities.get(normalize_entity_name(name))
        return value if value else MISSING

    def has_entity(self, name: str) -> bool:
        return self.get_entity(name) != MISSING

    def entity_values(self, names: Iterable[str]) -> tuple[str, ...]:
        return tuple(self.get_entity(name) for name in names)


@dataclass
class DatasetSummary:
    """Aggregate statistics over a file list."""

    total_files: int = 0
    subjects: List[str] = field(default_factory=list)
    sessions: List[str] = field(default_factory=list)
    suffixes: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[FileRecord]) -> "DatasetSummary":
        total = 0
        subjects: set[str] = set()
        sessions: set[str] = set()
        suffixes: Dict[str, int] = {}
        for record in records:
            total += 1
            if record.has_entity("sub"):
                subjects.add(record.get_entity("sub"))
            if record.has_entity("ses"):
                sessions.add(record.get_entity("ses"))
            if record.suffix:
                suffixes[record.suffix] = suffixes.get(record.suffix, 0) + 1
        return cls(
            total_files=total,
            subjects=sorted(subjects),
            sessions=sorted(sessions),
            suffixes=dict(sorted(suffixes.items())),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_files": self.total_files,
            "subjects": list(self.subjects),
            "sessions": list(self.sessions),
            "suffixes": dict(self.suffixes),
        }


__all__ = [
    "DatasetSummary",
    "FileRecord",
    "LONG_TO_SHORT",
    "MISSING",
    "SHORT_TO_LONG",
    "STANDARD_ENTITIES",
    "extract_suffix",
    "long_entity_name",
    "normalize_entity_name",
    "normalize_value",
    "parse_entities_from_filename",
    "strip_entity_prefix",
    "strip_known_extension",
]
