"""Extension classification, base names and path relativization."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from bids_grouping.models.entities import FileRecord

logger = logging.getLogger(__name__)

# Ordered so that ``.nii.gz`` is tested before ``.nii``.
EXTENSION_TYPES: Tuple[Tuple[str, str], ...] = (
    (".nii.gz", "nii"),
    (".nii", "nii"),
    (".json", "json"),
    (".tsv", "tsv"),
    (".bval", "bval"),
    (".bvec", "bvec"),
    (".txt", "txt"),
    (".edf", "edf"),
    (".eeg", "eeg"),
)
PRIMARY_EXTENSIONS: Tuple[str, ...] = (".nii.gz", ".nii", ".json", ".tsv")
IMAGING_EXTENSIONS: Tuple[str, ...] = (".nii.gz", ".nii")
OTHER = "other"


class DatasetPathError(ValueError):
    """Raised when a file path cannot be expressed relative to the dataset root."""


def _matching_extension(path: str) -> Optional[str]:
    lowered = path.lower()
    for extension, _ in EXTENSION_TYPES:
        if lowered.endswith(extension):
            return extension
    return None


@dataclass(frozen=True)
class FileLayout:
    """Path helpers shared by every set handler."""

    dataset_root: Optional[Path] = None

    @staticmethod
    def extension_type(path: str) -> str:
        extension = _matching_extension(path)
        if extension is None:
            return OTHER
        return dict(EXTENSION_TYPES)[extension]

    @staticmethod
    def base_name(path: str) -> str:
        """Filename without its known extension; related files share it."""
        name = PurePosixPath(path).name
        extension = _matching_extension(name)
        if extension is None:
            return name
        return name[: -len(extension)]

    @staticmethod
    def is_primary(path: str) -> bool:
        return path.lower().endswith(PRIMARY_EXTENSIONS)

    @staticmethod
    def is_imaging(path: str) -> bool:
        return path.lower().endswith(IMAGING_EXTENSIONS)

    def relativize(self, path: str) -> str:
        """Return ``path`` relative to the dataset root as a posix string."""
        posix = PurePosixPath(Path(path).as_posix())
        if not posix.is_absolute():
            return posix.as_posix()
        if self.dataset_root is None:
            raise DatasetPathError(
                f"Absolute path {path!r} given but no dataset root is configured"
            )
        root = PurePosixPath(Path(self.dataset_root).as_posix())
        try:
            return posix.relative_to(root).as_posix()
        except ValueError as exc:
            raise DatasetPathError(f"{path!r} is outside dataset root {str(root)!r}") from exc

    def record_paths(self, records: Iterable[FileRecord]) -> List[str]:
        """Relative paths of the records and their sidecars, in order."""
        paths: List[str] = []
        for record in records:
            paths.append(self.relativize(record.path))
            if record.sidecar_path:
                paths.append(self.relativize(record.sidecar_path))
        return list(dict.fromkeys(paths))

    def related(self, record: FileRecord, candidates: Sequence[FileRecord]) -> List[FileRecord]:
        """Candidates sharing ``record``'s base name, in input order."""
        base = self.base_name(record.path)
        return [candidate for candidate in candidates if self.base_name(candidate.path) == base]

    def nested_map(self, record: FileRecord, candidates: Sequence[FileRecord]) -> Dict[str, str]:
        """``{extension_type: relative_path}`` for every file related to ``record``.

        The first file seen for an extension type wins.
        """
        nested: Dict[str, str] = {}
        for related in self.related(record, candidates):
            extension_type = self.extension_type(related.path)
            if extension_type in nested:
                logger.debug(
                    "Ignoring duplicate %s file %s for %s",
                    extension_type,
                    related.path,
                    record.filename,
                )
                continue
            nested[extension_type] = self.relativize(related.path)
        return nested

    def select_primaries(self, records: Sequence[FileRecord]) -> List[FileRecord]:
        """One primary record per base name, imaging extensions preferred."""
        chosen: Dict[str, FileRecord] = {}
        for record in records:
            if not self.is_primary(record.path):
                continue
            base = self.base_name(record.path)
            current = chosen.get(base)
            if current is None:
                chosen[base] = record
            elif self.is_imaging(record.path) and not self.is_imaging(current.path):
                chosen[base] = record
        return list(chosen.values())


__all__ = [
    "DatasetPathError",
    "EXTENSION_TYPES",
    "FileLayout",
    "IMAGING_EXTENSIONS",
    "PRIMARY_EXTENSIONS",
]
