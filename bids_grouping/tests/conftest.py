import os
import textwrap
from pathlib import Path
from typing import Callable, Iterable, List

import pytest
import yaml

from bids_grouping.config import Settings
from bids_grouping.config.grouping import GroupingConfig
from bids_grouping.models.entities import FileRecord


@pytest.fixture(autouse=True)
def _isolate_bids_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer ``BIDS_*`` variables out of Settings during tests."""
    for name in list(os.environ):
        if name.upper().startswith("BIDS_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> Settings:
    return Settings(show_progress=False, log_to_console=False)


@pytest.fixture
def files() -> Callable[[Iterable[str]], List[FileRecord]]:
    """Build file records from relative BIDS paths."""

    def _build(paths: Iterable[str]) -> List[FileRecord]:
        return [FileRecord.from_path(path) for path in paths]

    return _build


@pytest.fixture
def grouping_config() -> Callable[[str], GroupingConfig]:
    """Parse a YAML snippet into a validated grouping configuration."""

    def _parse(text: str) -> GroupingConfig:
        return GroupingConfig.from_mapping(yaml.safe_load(textwrap.dedent(text)))

    return _parse


@pytest.fixture
def write_text(tmp_path: Path) -> Callable[[str, str], Path]:
    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")
        return path

    return _write
