"""Orchestrator for a grouping run.

Files are routed to one handler per configuration key, handler fragments are
unified per GroupKey, task-independent data is broadcast, and the surviving
records are validated before emission.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

from bids_grouping.config import Settings, load_settings
from bids_grouping.config.grouping import GroupingConfig, SuffixConfig, load_grouping_config
from bids_grouping.grouping import FileLayout, HandlerContext, create_handler
from bids_grouping.models.entities import FileRecord
from bids_grouping.models.records import ChannelRecord, GroupKey
from bids_grouping.services.export import JsonLinesExporter
from bids_grouping.services.file_list import load_file_list
from bids_grouping.services.logging import configure_logging, console_kwargs
from bids_grouping.workflow.broadcast import broadcast_cross_modal
from bids_grouping.workflow.common import log_success, run_thread_pool
from bids_grouping.workflow.emission import NoRecordsEmittedError, iter_payloads
from bids_grouping.workflow.stats import RunMetrics

logger = logging.getLogger(__name__)

Route = Tuple[SuffixConfig, List[FileRecord]]


@dataclass
class GroupingState:
    records: List[ChannelRecord] = field(default_factory=list)
    metrics: RunMetrics = field(default_factory=RunMetrics)


def route_files(files: Sequence[FileRecord], config: GroupingConfig) -> Tuple[List[Route], int]:
    """Pair every configuration key with the files whose suffix it consumes.

    Returns the routes in declaration order and the number of files no key
    consumes.
    """
    by_key: Dict[str, List[FileRecord]] = {key: [] for key in config.suffixes}
    unrouted = 0
    for record in files:
        keys = config.keys_for_suffix(record.suffix) if record.suffix else []
        if not keys:
            unrouted += 1
            continue
        for key in keys:
            by_key[key].append(record)

    routes: List[Route] = [(config.suffixes[key], by_key[key]) for key in config.suffixes]
    return routes, unrouted


def unify_fragments(fragment_lists: Sequence[Sequence[ChannelRecord]]) -> List[ChannelRecord]:
    """Merge fragments sharing a GroupKey.

    Records are ordered by the first appearance of their key in handler order;
    a later handler wins on a duplicate suffix.
    """
    unified: Dict[GroupKey, ChannelRecord] = {}
    for fragments in fragment_lists:
        for fragment in fragments:
            existing = unified.get(fragment.group_key)
            if existing is None:
                unified[fragment.group_key] = fragment
                continue
            for suffix in fragment.data:
                if existing.has_suffix(suffix):
                    logger.debug(
                        "Suffix %s for %s provided twice; keeping the later fragment",
                        suffix,
                        fragment.group_key,
                    )
            unified[fragment.group_key] = existing.merged_with(fragment)
    return list(unified.values())


def group_files(
    files: Sequence[FileRecord],
    config: GroupingConfig,
    *,
    settings: Settings | None = None,
) -> GroupingState:
    """Run routing, handlers, unification and broadcasting over a file list."""
    resolved_settings = settings or Settings(show_progress=False)
    state = GroupingState()
    state.metrics.files = len(files)

    routes, unrouted = route_files(files, config)
    state.metrics.record_unrouted(unrouted)
    if unrouted:
        logger.debug("%d files have no configuration for their suffix", unrouted)

    context = HandlerContext(
        loop_over=tuple(config.loop_over),
        layout=FileLayout(dataset_root=resolved_settings.dataset_root),
    )
    handlers = [create_handler(suffix_config, context) for suffix_config, _ in routes]
    state.metrics.handlers = len(handlers)

    def _run(index: int) -> List[ChannelRecord]:
        return handlers[index].process(routes[index][1])

    fragment_lists = run_thread_pool(
        list(range(len(handlers))),
        worker=_run,
        settings=resolved_settings,
        desc="Grouping suffixes",
        max_workers=resolved_settings.max_workers,
        unit="set",
    )
    state.metrics.record_fragments(sum(len(fragments) for fragments in fragment_lists))

    unified = unify_fragments(fragment_lists)
    state.metrics.unified = len(unified)

    outcome = broadcast_cross_modal(unified, config, task_entity=resolved_settings.task_entity)
    state.metrics.broadcast_copies = outcome.copies
    state.metrics.dropped_standalone = outcome.dropped

    if not outcome.records:
        raise NoRecordsEmittedError(
            f"No records survived grouping of {len(files)} files; "
            "check the grouping configuration against the file list"
        )
    state.records = outcome.records
    state.metrics.emitted = len(outcome.records)
    log_success("grouping", state.metrics.emitted, state.metrics.unified)
    return state


def run_pipeline(
    *,
    settings: Settings | None = None,
) -> GroupingState:
    """Load inputs named by the settings, group them and export when requested."""

    resolved_settings = settings or load_settings()
    _configure_logging_for_run(resolved_settings)

    if resolved_settings.grouping_config is None:
        raise ValueError("A grouping configuration path is required")
    if resolved_settings.file_list is None:
        raise ValueError("A file list path is required")

    config = load_grouping_config(resolved_settings.grouping_config)
    summary = config.summary()
    logger.info(
        "Configuration: %d suffixes (%s), loop over %s",
        summary["total_suffixes"],
        ", ".join(f"{name}={count}" for name, count in summary["counts"].items()),
        summary["loop_over"],
        extra=console_kwargs(),
    )

    files = load_file_list(resolved_settings.file_list)
    state = group_files(files, config, settings=resolved_settings)

    if resolved_settings.output_path is not None:
        exporter = JsonLinesExporter(resolved_settings.output_path)
        written = exporter.write(iter_payloads(state.records))
        logger.info(
            "Wrote %d records to %s",
            written,
            resolved_settings.output_path,
            extra=console_kwargs(),
        )
    return state


def _configure_logging_for_run(settings: Settings) -> None:
    log_path: Path | None = settings.resolved_log_file() if settings.log_to_file else None
    configure_logging(
        log_to_file=settings.log_to_file,
        log_file=log_path,
        log_to_console=settings.log_to_console,
        verbose=settings.verbose,
    )


__all__ = [
    "GroupingState",
    "NoRecordsEmittedError",
    "group_files",
    "route_files",
    "run_pipeline",
    "unify_fragments",
]
