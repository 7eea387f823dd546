"""Channel records emitted by the grouping engine."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Sequence, Tuple

from .entities import MISSING, long_entity_name, normalize_entity_name

GroupKey = Tuple[str, ...]


def build_group_key(values: Iterable[str]) -> GroupKey:
    return tuple(value if value else MISSING for value in values)


def iter_paths(structure: Any) -> Iterator[str]:
    """Yield every path leaf of a nested suffix structure in order."""
    if isinstance(structure, str):
        yield structure
    elif isinstance(structure, Mapping):
        for value in structure.values():
            yield from iter_paths(value)
    elif isinstance(structure, (list, tuple)):
        for value in structure:
            yield from iter_paths(value)


def _unique(paths: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(path for path in paths if path))


@dataclass(frozen=True)
class ChannelRecord:
    """One output unit: data for every suffix sharing a GroupKey.

    Records are never mutated; every update returns a new record.
    """

    group_key: GroupKey
    loop_over: Tuple[str, ...]
    data: Mapping[str, Any] = field(default_factory=dict)
    file_paths: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if len(self.group_key) != len(self.loop_over):
            raise ValueError(
                f"GroupKey {self.group_key!r} does not match loop-over entities "
                f"{list(self.loop_over)!r}"
            )

    @classmethod
    def create(
        cls,
        group_key: GroupKey,
        loop_over: Sequence[str],
        suffix: str,
        suffix_data: Any,
        file_paths: Iterable[str],
    ) -> "ChannelRecord":
        return cls(
            group_key=tuple(group_key),
            loop_over=tuple(loop_over),
            data={suffix: suffix_data},
            file_paths=_unique(file_paths),
        )

    @property
    def suffixes(self) -> List[str]:
        return list(self.data)

    @property
    def entities(self) -> Dict[str, str]:
        return dict(zip(self.loop_over, self.group_key))

    def get_entity(self, name: str) -> str:
        short = normalize_entity_name(name)
        for entity, value in zip(self.loop_over, self.group_key):
            if normalize_entity_name(entity) == short:
                return value
        return MISSING

    def has_suffix(self, suffix: str) -> bool:
        return suffix in self.data

    def with_added_suffix(
        self,
        suffix: str,
        suffix_data: Any,
        file_paths: Iterable[str] = (),
    ) -> "ChannelRecord":
        data = dict(self.data)
        data[suffix] = suffix_data
        return replace(
            self,
            data=data,
            file_paths=_unique([*self.file_paths, *file_paths]),
        )

    def without_suffixes(self, suffixes: Iterable[str]) -> "ChannelRecord":
        """Return a copy without ``suffixes`` and without the paths only they used."""
        dropped = set(suffixes)
        data = {key: value for key, value in self.data.items() if key not in dropped}
        kept_paths = {path for value in data.values() for path in iter_paths(value)}
        dropped_paths = {
            path
            for key, value in self.data.items()
            if key in dropped
            for path in iter_paths(value)
        }
        file_paths = tuple(
            path
            for path in self.file_paths
            if path in kept_paths or path not in dropped_paths
        )
        return replace(self, data=data, file_paths=file_paths)

    def merged_with(self, other: "ChannelRecord") -> "ChannelRecord":
        """Union of two fragments sharing a GroupKey; ``other`` wins per suffix."""
        if other.group_key != self.group_key:
            raise ValueError(
                f"Cannot merge records with different keys: {self.group_key!r} != {other.group_key!r}"
            )
        data = dict(self.data)
        data.update(other.data)
        return replace(
            self,
            data=data,
            file_paths=_unique([*self.file_paths, *other.file_paths]),
        )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the output mapping consumed downstream."""
        payload: Dict[str, Any] = {
            "data": copy.deepcopy(dict(self.data)),
            "filePaths": list(self.file_paths),
        }
        for entity, value in zip(self.loop_over, self.group_key):
            short = normalize_entity_name(entity)
            payload[long_entity_name(short)] = (
                MISSING if value == MISSING else f"{short}-{value}"
            )
        return payload

    def __str__(self) -> str:
        entities = ", ".join(f"{k}={v}" for k, v in self.entities.items())
        return (
            f"ChannelRecord[entities=[{entities}], suffixes=[{', '.join(self.data)}], "
            f"files={len(self.file_paths)}]"
        )


__all__ = ["ChannelRecord", "GroupKey", "build_group_key", "iter_paths"]
