"""Command executor adapter for panerelay.

Turns typed operations into tmux invocations and parses their output into
structured records. The abstract interface lets the protocol layer run
against synthetic backends in tests.

Public API:
    Multiplexer -- Abstract base class
    MultiplexerError -- Raised when an invocation fails
    TmuxExecutor -- tmux subprocess backend
"""

from panerelay.multiplexer.base import DEFAULT_CAPTURE_LINES, Multiplexer, MultiplexerError
from panerelay.multiplexer.models import Pane, Session

__all__ = [
    "DEFAULT_CAPTURE_LINES",
    "Multiplexer",
    "MultiplexerError",
    "Pane",
    "Session",
    "TmuxExecutor",
]


def __getattr__(name: str) -> type:
    """Lazy import for the concrete subprocess backend."""
    if name == "TmuxExecutor":
        from panerelay.multiplexer.tmux import TmuxExecutor
        return TmuxExecutor
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
