"""Abstract base class for terminal multiplexer backends.

The dispatcher, file browser and subscription engine only talk to this
interface, so tests can inject synthetic backends and the tmux binary is
needed only by :class:`~panerelay.multiplexer.tmux.TmuxExecutor`.

All methods are synchronous and may block on a subprocess; async callers
must run them in an executor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from panerelay.multiplexer.models import Pane, Session

# Trailing lines captured when no explicit line count is requested
DEFAULT_CAPTURE_LINES = 200


class Multiplexer(ABC):
    """Typed operations on an external terminal multiplexer.

    Example usage::

        mux = TmuxExecutor(socket_path="/tmp/tmux-1000/default")
        for session in mux.list_sessions():
            print(session.name, session.windows)
        mux.send_command("main:0.0", "make test")
    """

    @abstractmethod
    def list_sessions(self) -> list[Session]:
        """List every session known to the multiplexer server.

        Raises:
            MultiplexerError: If the multiplexer invocation fails.
        """
        ...

    @abstractmethod
    def list_panes(self, session: str) -> list[Pane]:
        """List all panes of every window in ``session``.

        Raises:
            MultiplexerError: If the session does not exist or the
                invocation fails.
        """
        ...

    @abstractmethod
    def capture_pane(self, target: str, lines: int | None = None) -> str:
        """Capture the screen content of ``target``.

        Args:
            target: Session, window or pane address.
            lines: Number of trailing history lines to include. None
                   means :data:`DEFAULT_CAPTURE_LINES`.

        Returns:
            The pane text with ANSI escape sequences preserved.
        """
        ...

    @abstractmethod
    def send_keys(self, target: str, keys: str, literal: bool = False) -> None:
        """Send a key sequence to ``target``.

        In literal mode key names are not resolved, so ``"C-c"`` is typed
        as three characters instead of sending an interrupt.
        """
        ...

    def send_command(self, target: str, command: str) -> None:
        """Type ``command`` literally, then press Enter.

        These are two separate multiplexer calls. A client observing the
        pane in between sees the text typed but not yet submitted.
        """
        self.send_keys(target, command, literal=True)
        self.send_keys(target, "Enter", literal=False)

    @abstractmethod
    def new_session(self, name: str) -> None:
        """Create a detached session called ``name``."""
        ...

    @abstractmethod
    def kill_session(self, name: str) -> None:
        """Destroy the session called ``name``."""
        ...

    @abstractmethod
    def pane_current_path(self, target: str) -> str:
        """Working directory of the active pane in ``target``.

        Returns an empty string when the multiplexer reports nothing.
        """
        ...

    @abstractmethod
    def is_server_running(self) -> bool:
        """Whether a multiplexer server is reachable."""
        ...


class MultiplexerError(Exception):
    """Raised when a multiplexer invocation fails."""

    def __init__(self, message: str, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend
