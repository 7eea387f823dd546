"""Grouping run orchestration: routing, unification, broadcasting and emission."""

from .broadcast import BroadcastOutcome, broadcast_cross_modal
from .emission import END_OF_STREAM, NoRecordsEmittedError, emit_records, iter_payloads
from .orchestrator import GroupingState, group_files, route_files, run_pipeline, unify_fragments
from .stats import RunMetrics

__all__ = [
    "BroadcastOutcome",
    "END_OF_STREAM",
    "GroupingState",
    "NoRecordsEmittedError",
    "RunMetrics",
    "broadcast_cross_modal",
    "emit_records",
    "group_files",
    "iter_payloads",
    "route_files",
    "run_pipeline",
    "unify_fragments",
]
