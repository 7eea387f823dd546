"""Set handlers and the helpers they share."""

from typing import Dict, Type

from bids_grouping.config.grouping import SuffixConfig

from .base import HandlerContext, SetHandler
from .files import DatasetPathError, FileLayout
from .matching import match_group, matches_filter, values_match
from .mixed import MixedSetHandler
from .named import NamedSetHandler
from .plain import PlainSetHandler
from .sequencing import SequenceBuilder, compare_sequence_values
from .sequential import SequentialSetHandler

HANDLERS: Dict[str, Type[SetHandler]] = {
    "plain_set": PlainSetHandler,
    "named_set": NamedSetHandler,
    "sequential_set": SequentialSetHandler,
    "mixed_set": MixedSetHandler,
}


def create_handler(config: SuffixConfig, context: HandlerContext) -> SetHandler:
    """Instantiate the handler for a configuration key's set type."""
    return HANDLERS[config.set_type](config, context)


__all__ = [
    "DatasetPathError",
    "FileLayout",
    "HANDLERS",
    "HandlerContext",
    "MixedSetHandler",
    "NamedSetHandler",
    "PlainSetHandler",
    "SequenceBuilder",
    "SequentialSetHandler",
    "SetHandler",
    "compare_sequence_values",
    "create_handler",
    "match_group",
    "matches_filter",
    "values_match",
]
