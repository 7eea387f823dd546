"""
Configuration for the grouping engine.
There are three levels of runtime configuration in order of priority
1. cli options
2. yaml config file
3. environment variables

The grouping document itself (loop-over entities and per-suffix set
configurations) lives in :mod:`bids_grouping.config.grouping`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .grouping import (
    DEFAULT_LOOP_OVER,
    GroupingConfig,
    GroupingConfigError,
    MixedSetConfig,
    NamedGroup,
    NamedSetConfig,
    OrderMode,
    PlainSetConfig,
    SequentialSetConfig,
    SuffixConfig,
    load_grouping_config,
)


class Settings(BaseSettings):
    """
    Runtime configuration with support for:
    - Environment variables (``BIDS_`` prefix)
    - YAML configuration file
    - CLI argument overrides

    Precedence: CLI args > YAML config > Environment variables > Defaults
    """

    model_config = SettingsConfigDict(
        env_prefix="BIDS_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ===== Inputs =====
    dataset_root: Optional[Path] = Field(
        default=None,
        description="Dataset root; absolute file paths are made relative to it",
    )
    grouping_config: Optional[Path] = Field(
        default=None,
        description="YAML grouping document (loop_over and per-suffix sets)",
    )
    file_list: Optional[Path] = Field(
        default=None,
        description="CSV file list produced by the dataset extractor",
    )

    # ===== Outputs =====
    output_path: Optional[Path] = Field(
        default=None,
        description="Optional JSON-lines file receiving the emitted records",
    )

    # ===== Grouping behavior =====
    task_entity: str = Field(
        default="task",
        description="Entity whose 'NA' value marks modality-independent records",
    )

    # ===== Parallelism configuration =====
    max_workers: int = Field(
        default=1,
        description="Maximum number of set handlers run concurrently",
    )

    # ===== Behavior flags =====
    verbose: bool = Field(
        default=False,
        description="Enable verbose logging output",
    )
    log_to_file: bool = Field(
        default=False,
        description="Persist logs to a file (defaults to ./logs/bids_grouping.log)",
    )
    log_to_console: bool = Field(
        default=True,
        description="Emit selected logs to the console in addition to the log file",
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional override for log file path",
    )
    show_progress: bool = Field(
        default=True,
        description="Show tqdm progress bars on the console",
    )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> Settings:
        """
        Load settings from a YAML file.

        Values in the file take precedence over defaults but can be
        overridden by CLI arguments.

        Parameters
        ----------
        yaml_path : Path
            Path to YAML configuration file

        Returns
        -------
        Settings
            Configured settings instance
        """
        if not yaml_path.exists():
            raise FileNotFoundError(f"Settings file not found: {yaml_path}")

        with yaml_path.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}

        if not isinstance(data, dict):
            raise ValueError("Settings YAML must contain a mapping at the root")

        return cls(**data)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> Settings:
        """Create settings from a dictionary."""
        return cls(**config_dict)

    def merge_overrides(self, overrides: Dict[str, Any]) -> Settings:
        """
        Create a new Settings instance with specific values overridden.

        Parameters
        ----------
        overrides : dict
            Dictionary of values to override (typically from CLI args)

        Returns
        -------
        Settings
            New settings instance with overrides applied
        """
        overrides = overrides or {}
        if not overrides:
            return self

        return self.model_copy(update=overrides)

    def resolved_log_file(self) -> Path:
        return self.log_file or Path("logs") / "bids_grouping.log"


def load_settings(
    yaml_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> Settings:
    """
    Load settings with proper precedence handling.

    Precedence order (highest to lowest):
    1. Overrides (typically from CLI args)
    2. YAML config file
    3. Environment variables
    4. Defaults

    Parameters
    ----------
    yaml_path : Path, optional
        Path to YAML configuration file
    overrides : dict, optional
        Dictionary of override values (typically from CLI)

    Returns
    -------
    Settings
        Configured settings instance
    """
    overrides = overrides or {}

    settings = Settings()

    if yaml_path is not None:
        yaml_settings = Settings.from_yaml(yaml_path)
        settings = settings.merge_overrides(yaml_settings.model_dump(exclude_unset=True))

    if overrides:
        settings = settings.merge_overrides(overrides)

    return settings


__all__ = [
    "DEFAULT_LOOP_OVER",
    "GroupingConfig",
    "GroupingConfigError",
    "MixedSetConfig",
    "NamedGroup",
    "NamedSetConfig",
    "OrderMode",
    "PlainSetConfig",
    "SequentialSetConfig",
    "Settings",
    "SuffixConfig",
    "load_grouping_config",
    "load_settings",
]
