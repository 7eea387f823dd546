"""
Command line interface for the grouping engine.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

import typer

from bids_grouping.config import load_settings
from bids_grouping.config.grouping import GroupingConfigError, load_grouping_config
from bids_grouping.grouping import DatasetPathError
from bids_grouping.models.entities import DatasetSummary
from bids_grouping.services.file_list import load_file_list
from bids_grouping.services.logging import shutdown_logging
from bids_grouping.workflow.emission import NoRecordsEmittedError
from bids_grouping.workflow.orchestrator import run_pipeline

app = typer.Typer(
    name="BIDS Grouping",
    help="Group BIDS dataset files into per-subject/session/run/task records",
)


@app.command()
def run(
    grouping_config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        exists=False,
        help="YAML grouping document (loop_over and per-suffix sets).",
    ),
    file_list: Optional[Path] = typer.Option(
        None,
        "--files",
        "-f",
        exists=False,
        help="CSV file list produced by the dataset extractor.",
    ),
    dataset_root: Optional[Path] = typer.Option(
        None,
        "--dataset-root",
        "-r",
        help="Dataset root used to relativize absolute paths.",
    ),
    output_path: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write emitted records as JSON lines to this file.",
    ),
    settings_path: Optional[Path] = typer.Option(
        None,
        "--settings",
        "-s",
        exists=False,
        help="Optional YAML settings override.",
    ),
    max_workers: Optional[int] = typer.Option(
        None,
        "--max-workers",
        "-w",
        help="Number of set handlers run concurrently.",
    ),
    verbose: Optional[bool] = typer.Option(
        None,
        "--verbose/--quiet",
        help="Echo every log record to the console.",
    ),
) -> None:
    """Group the files of a dataset and emit one record per GroupKey."""

    overrides: dict[str, object] = {}
    if grouping_config is not None:
        overrides["grouping_config"] = grouping_config
    if file_list is not None:
        overrides["file_list"] = file_list
    if dataset_root is not None:
        overrides["dataset_root"] = dataset_root
    if output_path is not None:
        overrides["output_path"] = output_path
    if max_workers is not None:
        overrides["max_workers"] = max_workers
    if verbose is not None:
        overrides["verbose"] = verbose
    settings = load_settings(settings_path, overrides=overrides or None)

    if settings.grouping_config is None:
        raise typer.BadParameter("Provide a grouping configuration with --config.")
    if settings.file_list is None:
        raise typer.BadParameter("Provide a file list with --files.")

    try:
        state = run_pipeline(settings=settings)
    except (GroupingConfigError, NoRecordsEmittedError, DatasetPathError, FileNotFoundError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    finally:
        shutdown_logging()

    metrics = state.metrics
    typer.echo(
        "Grouping complete: "
        f"{metrics.emitted} records from {metrics.files} files "
        f"({metrics.broadcast_copies} cross-modal copies, "
        f"{metrics.dropped_standalone} standalone records dropped)."
    )
    if settings.output_path is not None:
        typer.echo(f"Records written to {settings.output_path}")


@app.command()
def validate(
    grouping_config: Path = typer.Option(
        ...,
        "--config",
        "-c",
        exists=False,
        help="YAML grouping document to validate.",
    ),
) -> None:
    """Parse a grouping configuration and print its summary and warnings."""

    try:
        config = load_grouping_config(grouping_config)
    except (GroupingConfigError, FileNotFoundError) as exc:
        typer.echo(f"Invalid configuration: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    summary = config.summary()
    typer.echo(f"Loop over: {', '.join(summary['loop_over'])}")
    typer.echo(f"Suffixes: {summary['total_suffixes']}")
    for set_type, keys in summary["suffixes"].items():
        if keys:
            typer.echo(f"  {set_type}: {', '.join(keys)}")
    for physical, key in summary["suffix_mapping"].items():
        typer.echo(f"  mapping: {physical} -> {key}")
    for warning in config.warnings:
        typer.echo(f"Warning: {warning}")


@app.command()
def summary(
    file_list: Path = typer.Option(
        ...,
        "--files",
        "-f",
        exists=False,
        help="CSV file list produced by the dataset extractor.",
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the statistics as JSON.",
    ),
) -> None:
    """Print dataset statistics for a file list."""

    try:
        records = load_file_list(file_list)
    except FileNotFoundError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    stats = DatasetSummary.from_records(records)
    if as_json:
        typer.echo(json.dumps(stats.to_dict(), indent=2))
        return
    typer.echo(f"Files: {stats.total_files}")
    typer.echo(f"Subjects: {len(stats.subjects)} ({', '.join(stats.subjects)})")
    typer.echo(f"Sessions: {len(stats.sessions)} ({', '.join(stats.sessions)})")
    for suffix, count in stats.suffixes.items():
        typer.echo(f"  {suffix}: {count}")


if __name__ == "__main__":
    app()
