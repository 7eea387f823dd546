"""Group BIDS dataset files into per-subject/session/run/task records."""

__all__ = [
    "cli",
    "config",
    "grouping",
    "models",
    "services",
    "workflow",
]
