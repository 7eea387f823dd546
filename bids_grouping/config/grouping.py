"""Typed grouping configuration parsed from the YAML grouping document.

The raw document is validated once by :meth:`GroupingConfig.from_mapping` and
reified into frozen pydantic models, one set-type variant per suffix key.
Handlers never look at the raw mapping again.
"""

from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from bids_grouping.models.entities import normalize_entity_name, normalize_value

logger = logging.getLogger(__name__)

DEFAULT_LOOP_OVER: List[str] = ["subject", "session", "run", "task"]
SET_TYPES: List[str] = ["plain_set", "named_set", "sequential_set", "mixed_set"]
RESERVED_KEYS = frozenset({"loop_over", "plain_sets", "named_sets", "sequential_sets", "mixed_sets"})
# Keys of a named_set mapping that are never pattern groups.
_NAMED_SET_SPECIAL_KEYS = frozenset(
    {
        "required",
        "description",
        "filter",
        "exclude_entities",
        "include_cross_modal",
        "additional_extensions",
    }
)

SetType = Literal["plain_set", "named_set", "sequential_set", "mixed_set"]


class GroupingConfigError(ValueError):
    """Raised when the grouping document is structurally invalid."""


class OrderMode(str, Enum):
    HIERARCHICAL = "hierarchical"
    FLAT = "flat"


class _SetConfig(BaseModel):
    """Options shared by every set type."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    filter: Dict[str, Optional[str]] = Field(
        default_factory=dict,
        description="Entity -> expected value; None or 'NA' acts as a wildcard",
    )
    exclude_entities: List[str] = Field(
        default_factory=list,
        description="Files carrying any of these entities are vetoed",
    )
    include_cross_modal: List[str] = Field(
        default_factory=list,
        description="Task-independent suffixes copied into task-specific records",
    )

    @field_validator("filter", mode="before")
    @classmethod
    def _normalize_filter(cls, value: Any) -> Dict[str, Optional[str]]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("filter must be a mapping of entity -> value")
        return {
            normalize_entity_name(str(key)): (None if item is None else str(item))
            for key, item in value.items()
        }

    @field_validator("exclude_entities", mode="before")
    @classmethod
    def _normalize_excludes(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [normalize_entity_name(str(item)) for item in value]

    @field_validator("include_cross_modal", mode="before")
    @classmethod
    def _coerce_cross_modal(cls, value: Any) -> List[str]:
        # Booleans are accepted by older documents and carry no suffix list.
        if value is None or isinstance(value, bool):
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value]


class PlainSetConfig(_SetConfig):
    required_entities: List[str] = Field(default_factory=list)

    @field_validator("required_entities", mode="before")
    @classmethod
    def _normalize_required(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [normalize_entity_name(str(item)) for item in value]


class NamedGroup(BaseModel):
    """A named pattern group: every pattern must match for a file to belong."""

    model_config = ConfigDict(frozen=True)

    name: str
    patterns: Dict[str, str] = Field(default_factory=dict)
    description: Optional[str] = None

    def normalized_patterns(self) -> Dict[str, Optional[str]]:
        return {entity: normalize_value(value) for entity, value in self.patterns.items()}


class NamedSetConfig(_SetConfig):
    groups: List[NamedGroup] = Field(default_factory=list)
    required: List[str] = Field(default_factory=list)

    @property
    def group_names(self) -> List[str]:
        return [group.name for group in self.groups]


class SequentialSetConfig(_SetConfig):
    by_entities: List[str]
    order: OrderMode = OrderMode.HIERARCHICAL
    parts: List[str] = Field(default_factory=list)

    @property
    def is_multi_dimensional(self) -> bool:
        return len(self.by_entities) > 1


class MixedSetConfig(_SetConfig):
    groups: List[NamedGroup] = Field(default_factory=list)
    required: List[str] = Field(default_factory=list)
    sequential_dimension: str
    named_dimension: Optional[str] = None

    @property
    def group_names(self) -> List[str]:
        return [group.name for group in self.groups]


AnySetConfig = Union[PlainSetConfig, NamedSetConfig, SequentialSetConfig, MixedSetConfig]


class SuffixConfig(BaseModel):
    """Configuration for one configuration key (a suffix or an alias)."""

    model_config = ConfigDict(frozen=True)

    key: str
    set_type: SetType
    set_config: AnySetConfig
    suffix_maps_to: Optional[str] = None

    @property
    def physical_suffix(self) -> str:
        """Suffix of the files this key consumes."""
        return self.suffix_maps_to or self.key

    @property
    def output_key(self) -> str:
        # Plain sets always publish under the physical suffix.
        if self.set_type == "plain_set":
            return self.physical_suffix
        return self.key

    @property
    def include_cross_modal(self) -> List[str]:
        return list(self.set_config.include_cross_modal)


class GroupingConfig(BaseModel):
    """Validated grouping document."""

    model_config = ConfigDict(frozen=True)

    loop_over: List[str] = Field(default_factory=lambda: list(DEFAULT_LOOP_OVER))
    suffixes: Dict[str, SuffixConfig] = Field(default_factory=dict)
    warnings: List[str] = Field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "GroupingConfig":
        """Validate a raw configuration mapping and build the typed config."""
        if not isinstance(data, Mapping):
            raise GroupingConfigError("Grouping configuration must be a mapping at the root")

        warnings: List[str] = []
        loop_over = _parse_loop_over(data.get("loop_over"))
        suffixes: Dict[str, SuffixConfig] = {}
        for raw_key, raw_value in data.items():
            key = str(raw_key)
            if key in RESERVED_KEYS:
                continue
            if not isinstance(raw_value, Mapping):
                logger.debug("Ignoring non-mapping configuration entry '%s'", key)
                continue
            suffixes[key] = _parse_suffix(key, raw_value, warnings)

        if not suffixes:
            raise GroupingConfigError("Grouping configuration defines no suffixes")

        return cls(loop_over=loop_over, suffixes=suffixes, warnings=warnings)

    @property
    def loop_over_short(self) -> List[str]:
        return [normalize_entity_name(entity) for entity in self.loop_over]

    def keys_for_suffix(self, suffix: str) -> List[str]:
        """Configuration keys that consume files with the given physical suffix."""
        return [key for key, cfg in self.suffixes.items() if cfg.physical_suffix == suffix]

    def suffix_mapping(self) -> Dict[str, str]:
        """Physical suffix -> aliasing configuration key, for ``suffix_maps_to`` entries."""
        return {
            cfg.suffix_maps_to: key
            for key, cfg in self.suffixes.items()
            if cfg.suffix_maps_to
        }

    def config_for_output(self, output_key: str) -> Optional[SuffixConfig]:
        for cfg in self.suffixes.values():
            if cfg.output_key == output_key:
                return cfg
        return None

    def summary(self) -> Dict[str, Any]:
        by_type: Dict[str, List[str]] = {set_type: [] for set_type in SET_TYPES}
        for key, cfg in self.suffixes.items():
            by_type[cfg.set_type].append(key)
        return {
            "loop_over": list(self.loop_over),
            "total_suffixes": len(self.suffixes),
            "counts": {set_type: len(keys) for set_type, keys in by_type.items()},
            "suffixes": by_type,
            "suffix_mapping": self.suffix_mapping(),
            "warnings": len(self.warnings),
        }


def load_grouping_config(path: Path) -> GroupingConfig:
    """Load and validate a YAML grouping document."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Grouping configuration not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise GroupingConfigError("Grouping configuration YAML must contain a mapping at the root")

    config = GroupingConfig.from_mapping(data)
    for warning in config.warnings:
        logger.warning("Configuration: %s", warning)
    logger.debug("Loaded grouping configuration from %s", path)
    return config


def _parse_loop_over(raw: Any) -> List[str]:
    if raw is None:
        return list(DEFAULT_LOOP_OVER)
    if isinstance(raw, str):
        return [raw]
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise GroupingConfigError("Global 'loop_over' must be a list of entity names or a single name")
    if not raw:
        raise GroupingConfigError("Global 'loop_over' cannot be empty")
    return list(raw)


def _parse_suffix(key: str, raw: Mapping[str, Any], warnings: List[str]) -> SuffixConfig:
    found = [set_type for set_type in SET_TYPES if set_type in raw]
    if not found:
        raise GroupingConfigError(
            f"Suffix '{key}': no set type specified (must have one of: {', '.join(SET_TYPES)})"
        )
    if len(found) > 1:
        raise GroupingConfigError(
            f"Suffix '{key}': multiple set types defined ({', '.join(found)})"
        )

    suffix_maps_to = raw.get("suffix_maps_to")
    if suffix_maps_to is not None and not isinstance(suffix_maps_to, str):
        raise GroupingConfigError(f"Suffix '{key}': suffix_maps_to must be a string")

    set_type = found[0]
    body = raw.get(set_type)
    # An explicitly present but empty set mapping means "use defaults".
    if body is None:
        body = {}
    if not isinstance(body, Mapping):
        raise GroupingConfigError(f"Suffix '{key}' {set_type}: must be a mapping")

    # Suffix-level cross-modal requests apply when the set does not declare its own.
    if "include_cross_modal" in raw and "include_cross_modal" not in body:
        body = {**body, "include_cross_modal": raw["include_cross_modal"]}

    parsers = {
        "plain_set": _parse_plain_set,
        "named_set": _parse_named_set,
        "sequential_set": _parse_sequential_set,
        "mixed_set": _parse_mixed_set,
    }
    try:
        set_config = parsers[set_type](key, body, raw, warnings)
    except ValidationError as exc:
        raise GroupingConfigError(f"Suffix '{key}' {set_type}: {exc}") from exc

    return SuffixConfig(
        key=key,
        set_type=set_type,
        set_config=set_config,
        suffix_maps_to=suffix_maps_to,
    )


def _common_fields(body: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        name: body[name]
        for name in ("filter", "exclude_entities", "include_cross_modal")
        if name in body
    }


def _parse_plain_set(
    key: str, body: Mapping[str, Any], raw: Mapping[str, Any], warnings: List[str]
) -> PlainSetConfig:
    extras = body.get("additional_extensions")
    if extras is not None and not isinstance(extras, list):
        raise GroupingConfigError(f"Suffix '{key}' plain_set: additional_extensions must be a list")
    return PlainSetConfig(
        required_entities=body.get("required_entities"),
        **_common_fields(body),
    )


def _parse_groups(
    key: str,
    set_type: str,
    items: Mapping[str, Any],
    warnings: List[str],
) -> List[NamedGroup]:
    groups: List[NamedGroup] = []
    for group_name, patterns in items.items():
        if not isinstance(patterns, Mapping):
            raise GroupingConfigError(
                f"Suffix '{key}' {set_type} group '{group_name}': must be a map of entity patterns"
            )
        description = patterns.get("description")
        cleaned: Dict[str, str] = {}
        for entity, value in patterns.items():
            if entity == "description":
                continue
            if value is None:
                warnings.append(
                    f"Suffix '{key}' {set_type} group '{group_name}': entity '{entity}' has null value"
                )
                continue
            cleaned[normalize_entity_name(str(entity))] = str(value)
        if not cleaned:
            warnings.append(
                f"Suffix '{key}' {set_type} group '{group_name}': empty pattern (will match nothing)"
            )
        groups.append(
            NamedGroup(
                name=str(group_name),
                patterns=cleaned,
                description=None if description is None else str(description),
            )
        )
    _warn_overlaps(key, set_type, groups, warnings)
    return groups


def _warn_overlaps(key: str, set_type: str, groups: List[NamedGroup], warnings: List[str]) -> None:
    for index, first in enumerate(groups):
        first_patterns = first.normalized_patterns()
        if not first_patterns:
            continue
        for second in groups[index + 1:]:
            second_patterns = second.normalized_patterns()
            if not second_patterns:
                continue
            shared = set(first_patterns) & set(second_patterns)
            if all(first_patterns[entity] == second_patterns[entity] for entity in shared):
                warnings.append(
                    f"Suffix '{key}' {set_type}: groups '{first.name}' and '{second.name}' "
                    f"have overlapping patterns; '{first.name}' takes precedence"
                )


def _parse_required(
    key: str, set_type: str, required: Any, defined: List[str]
) -> List[str]:
    if required is None:
        return []
    if not isinstance(required, list):
        raise GroupingConfigError(f"Suffix '{key}' {set_type}: 'required' must be a list of group names")
    names = [str(name) for name in required]
    for name in names:
        if name not in defined:
            raise GroupingConfigError(
                f"Suffix '{key}' {set_type}: required group '{name}' is not defined"
            )
    return names


def _parse_named_set(
    key: str, body: Mapping[str, Any], raw: Mapping[str, Any], warnings: List[str]
) -> NamedSetConfig:
    group_items = {
        name: value for name, value in body.items() if name not in _NAMED_SET_SPECIAL_KEYS
    }
    if not group_items:
        raise GroupingConfigError(
            f"Suffix '{key}' named_set: no named groups defined. "
            "Must have at least one group (e.g., MTw: {flip: 'flip-1'})"
        )
    groups = _parse_groups(key, "named_set", group_items, warnings)
    required_raw = body.get("required", raw.get("required"))
    required = _parse_required(key, "named_set", required_raw, [g.name for g in groups])
    return NamedSetConfig(groups=groups, required=required, **_common_fields(body))


def _resolve_ordering_entities(key: str, set_type: str, body: Mapping[str, Any], warnings: List[str]) -> List[str]:
    by_entities = body.get("by_entities")
    if by_entities is not None:
        if not isinstance(by_entities, list):
            raise GroupingConfigError(
                f"Suffix '{key}' {set_type}: 'by_entities' must be a list of entity names"
            )
        if not by_entities:
            raise GroupingConfigError(f"Suffix '{key}' {set_type}: 'by_entities' cannot be empty")

    for single in ("sequential_dimension", "sequence_by", "by_entity"):
        value = body.get(single)
        if value is not None and not isinstance(value, str):
            raise GroupingConfigError(
                f"Suffix '{key}' {set_type}: '{single}' must be a string (entity name)"
            )

    if by_entities:
        if len(by_entities) == 1:
            warnings.append(
                f"Suffix '{key}' {set_type}: 'by_entities' has only one entity, "
                "consider using 'by_entity' instead"
            )
        if body.get("sequential_dimension"):
            warnings.append(
                f"Suffix '{key}' {set_type}: both 'sequential_dimension' and 'by_entities' "
                "specified. Using 'by_entities'."
            )
        return [str(entity) for entity in by_entities]

    for single in ("sequential_dimension", "sequence_by", "by_entity"):
        if body.get(single):
            return [body[single]]
    return []


def _parse_order(key: str, set_type: str, body: Mapping[str, Any]) -> OrderMode:
    order = body.get("order", OrderMode.HIERARCHICAL.value)
    try:
        return OrderMode(order)
    except ValueError as exc:
        raise GroupingConfigError(
            f"Suffix '{key}' {set_type}: 'order' must be 'hierarchical' or 'flat', got '{order}'"
        ) from exc


def _parse_sequential_set(
    key: str, body: Mapping[str, Any], raw: Mapping[str, Any], warnings: List[str]
) -> SequentialSetConfig:
    entities = _resolve_ordering_entities(key, "sequential_set", body, warnings)
    if not entities:
        raise GroupingConfigError(
            f"Suffix '{key}' sequential_set: must specify 'by_entity', 'by_entities', "
            "or 'sequential_dimension'"
        )
    parts = body.get("parts")
    if parts is not None:
        if not isinstance(parts, list):
            raise GroupingConfigError(f"Suffix '{key}' sequential_set: 'parts' must be a list of part values")
        if not parts:
            warnings.append(f"Suffix '{key}' sequential_set: 'parts' is empty (no effect)")
        elif len(parts) == 1:
            warnings.append(
                f"Suffix '{key}' sequential_set: 'parts' has only one value (grouping has no effect)"
            )
    return SequentialSetConfig(
        by_entities=[normalize_entity_name(entity) for entity in entities],
        order=_parse_order(key, "sequential_set", body),
        parts=[str(part) for part in parts or []],
        **_common_fields(body),
    )


def _resolve_sequential_dimension(key: str, body: Mapping[str, Any], warnings: List[str]) -> str:
    """Ordering entity of a mixed set.

    Priority is ``sequential_dimension`` > ``sequence_by`` > ``by_entity`` >
    first entry of ``by_entities``.
    """
    for single in ("sequential_dimension", "sequence_by", "by_entity"):
        value = body.get(single)
        if value is None:
            continue
        if not isinstance(value, str):
            raise GroupingConfigError(
                f"Suffix '{key}' mixed_set: '{single}' must be a string (entity name)"
            )
        if value:
            if body.get("by_entities"):
                warnings.append(
                    f"Suffix '{key}' mixed_set: both '{single}' and 'by_entities' specified. "
                    f"Using '{single}'."
                )
            return value

    by_entities = body.get("by_entities")
    if by_entities is not None and not isinstance(by_entities, list):
        raise GroupingConfigError(
            f"Suffix '{key}' mixed_set: 'by_entities' must be a list of entity names"
        )
    if not by_entities:
        raise GroupingConfigError(f"Suffix '{key}' mixed_set: must specify 'sequential_dimension'")
    if len(by_entities) > 1:
        warnings.append(
            f"Suffix '{key}' mixed_set: only the first ordering entity '{by_entities[0]}' is used"
        )
    return str(by_entities[0])


def _parse_mixed_set(
    key: str, body: Mapping[str, Any], raw: Mapping[str, Any], warnings: List[str]
) -> MixedSetConfig:
    named_groups = body.get("named_groups")
    if not named_groups:
        raise GroupingConfigError(f"Suffix '{key}' mixed_set: must specify 'named_groups'")
    if not isinstance(named_groups, Mapping):
        raise GroupingConfigError(f"Suffix '{key}' mixed_set: 'named_groups' must be a map")
    groups = _parse_groups(key, "mixed_set", named_groups, warnings)

    dimension = _resolve_sequential_dimension(key, body, warnings)

    named_dimension = body.get("named_dimension")
    if named_dimension is not None and not isinstance(named_dimension, str):
        raise GroupingConfigError(
            f"Suffix '{key}' mixed_set: 'named_dimension' must be a string (entity name)"
        )
    if "order" in body:
        _parse_order(key, "mixed_set", body)

    required_raw = body.get("required", raw.get("required"))
    required = _parse_required(key, "mixed_set", required_raw, [g.name for g in groups])
    return MixedSetConfig(
        groups=groups,
        required=required,
        sequential_dimension=normalize_entity_name(dimension),
        named_dimension=normalize_entity_name(named_dimension) if named_dimension else None,
        **_common_fields(body),
    )


__all__ = [
    "AnySetConfig",
    "DEFAULT_LOOP_OVER",
    "GroupingConfig",
    "GroupingConfigError",
    "MixedSetConfig",
    "NamedGroup",
    "NamedSetConfig",
    "OrderMode",
    "PlainSetConfig",
    "SequentialSetConfig",
    "SuffixConfig",
    "load_grouping_config",
]
