"""tmux backend for the multiplexer interface.

Every operation runs the ``tmux`` binary once (``send_command`` twice)
and parses its stdout. Listings ask tmux for pipe-delimited fields via
``-F`` format strings.
"""

from __future__ import annotations

import logging
import subprocess

from panerelay.multiplexer.base import DEFAULT_CAPTURE_LINES, Multiplexer, MultiplexerError
from panerelay.multiplexer.models import Pane, Session

logger = logging.getLogger(__name__)

FIELD_SEPARATOR = "|"

SESSION_FORMAT = FIELD_SEPARATOR.join([
    "#{session_name}",
    "#{session_windows}",
    "#{session_attached}",
    "#{session_activity}",
])

PANE_FORMAT = FIELD_SEPARATOR.join([
    "#{session_name}",
    "#{window_index}",
    "#{pane_index}",
    "#{pane_width}",
    "#{pane_height}",
    "#{pane_current_command}",
])


class TmuxExecutor(Multiplexer):
    """Runs tmux as a subprocess, optionally against an alternate socket.

    Args:
        socket_path: Passed as ``tmux -S <path>`` when set. Each executor
                     carries its own socket, so several can coexist.
        binary: Name or path of the tmux executable.
    """

    def __init__(self, socket_path: str | None = None, binary: str = "tmux") -> None:
        self._socket_path = socket_path
        self._binary = binary

    @property
    def socket_path(self) -> str | None:
        return self._socket_path

    def list_sessions(self) -> list[Session]:
        output = self._run(["list-sessions", "-F", SESSION_FORMAT])
        return [parse_session_line(line) for line in output.splitlines() if line]

    def list_panes(self, session: str) -> list[Pane]:
        output = self._run(["list-panes", "-s", "-t", session, "-F", PANE_FORMAT])
        return [parse_pane_line(line) for line in output.splitlines() if line]

    def capture_pane(self, target: str, lines: int | None = None) -> str:
        start_line = f"-{lines if lines is not None else DEFAULT_CAPTURE_LINES}"
        return self._run([
            "capture-pane",
            "-t", target,
            "-p",   # print to stdout
            "-e",   # keep ANSI escape sequences
            "-J",   # join wrapped lines
            "-S", start_line,
        ])

    def send_keys(self, target: str, keys: str, literal: bool = False) -> None:
        args = ["send-keys", "-t", target]
        if literal:
            args.append("-l")
        args.append(keys)
        self._run(args)
        logger.debug("Sent keys to %s (literal=%s): %s", target, literal, keys[:50])

    def new_session(self, name: str) -> None:
        self._run(["new-session", "-d", "-s", name])
        logger.info("Created tmux session %s", name)

    def kill_session(self, name: str) -> None:
        self._run(["kill-session", "-t", name])
        logger.info("Killed tmux session %s", name)

    def pane_current_path(self, target: str) -> str:
        return self._run(
            ["display-message", "-t", target, "-p", "#{pane_current_path}"]
        ).strip()

    def is_server_running(self) -> bool:
        try:
            self._run(["list-sessions"])
        except MultiplexerError:
            return False
        return True

    def _command(self, args: list[str]) -> list[str]:
        cmd = [self._binary]
        if self._socket_path:
            cmd += ["-S", self._socket_path]
        return cmd + args

    def _run(self, args: list[str]) -> str:
        """Run tmux with ``args`` and return its decoded stdout."""
        cmd = self._command(args)
        try:
            result = subprocess.run(cmd, capture_output=True)
        except OSError as e:
            raise MultiplexerError(f"Failed to run tmux: {e}", backend="tmux") from e

        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace")
            raise MultiplexerError(f"tmux error: {stderr}", backend="tmux")
        return result.stdout.decode("utf-8", errors="replace")


def _int_field(parts: list[str], index: int) -> int:
    try:
        return int(parts[index])
    except (IndexError, ValueError):
        return 0


def _str_field(parts: list[str], index: int) -> str:
    return parts[index] if index < len(parts) else ""


def parse_session_line(line: str) -> Session:
    """Parse one ``list-sessions`` line. Malformed fields become zero values."""
    parts = line.split(FIELD_SEPARATOR)
    return Session(
        name=_str_field(parts, 0),
        windows=_int_field(parts, 1),
        attached=_str_field(parts, 2) == "1",
        created=_str_field(parts, 3),
    )


def parse_pane_line(line: str) -> Pane:
    """Parse one ``list-panes`` line. Malformed fields become zero values."""
    parts = line.split(FIELD_SEPARATOR)
    return Pane(
        session=_str_field(parts, 0),
        window=_int_field(parts, 1),
        pane=_int_field(parts, 2),
        width=_int_field(parts, 3),
        height=_int_field(parts, 4),
        current_command=_str_field(parts, 5),
    )
