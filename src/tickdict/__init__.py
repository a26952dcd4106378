"""tickdict: ordered key/value container with cooperative, tick-by-tick iteration."""

from importlib.metadata import version as _version

__version__ = _version("tickdict")

from tickdict._scheduling import (
    TickQueue,
    defer,
    get_pending_count,
    get_scheduler,
    run_pending,
    set_scheduler,
)
from tickdict.cooperative import Completion, State, Traversal
from tickdict.dictionary import MISSING, Dictionary, EntriesView
# textual NOT auto-imported — opt-in only

__all__ = [
    "Dictionary",
    "EntriesView",
    "MISSING",
    "Completion",
    "State",
    "Traversal",
    "TickQueue",
    "defer",
    "get_pending_count",
    "get_scheduler",
    "run_pending",
    "set_scheduler",
]
