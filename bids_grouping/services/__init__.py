"""Boundary services: file-list loading, export and logging."""

from .export import JsonLinesExporter, read_json_lines
from .file_list import load_file_list, parse_rows, records_from_paths
from .logging import configure_logging, console_kwargs, shutdown_logging

__all__ = [
    "JsonLinesExporter",
    "configure_logging",
    "console_kwargs",
    "load_file_list",
    "parse_rows",
    "read_json_lines",
    "records_from_paths",
    "shutdown_logging",
]
