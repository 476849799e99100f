"""Shared test fixtures for the panerelay test suite.

Provides a synthetic multiplexer that records every call, plus mock
collaborators for testing the protocol layer in isolation.
"""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

import pytest

from panerelay.files.browser import FileBrowser
from panerelay.multiplexer.base import Multiplexer, MultiplexerError
from panerelay.multiplexer.models import Pane, Session


class FakeMultiplexer(Multiplexer):
    """In-memory multiplexer.

    ``contents`` maps targets to the text ``capture_pane`` returns; targets
    in ``failing`` raise :class:`MultiplexerError`. Typed commands are
    appended to the target's content so ``send_command`` is observable
    through ``capture_pane``.
    """

    def __init__(self) -> None:
        self.sessions: list[Session] = [
            Session(name="main", windows=2, attached=True, created="1700000000"),
        ]
        self.panes: dict[str, list[Pane]] = {
            "main": [
                Pane(session="main", window=0, pane=0, width=80, height=24,
                     current_command="bash"),
            ],
        }
        self.contents: dict[str, str] = {"main": "$ "}
        self.failing: set[str] = set()
        self.sent: list[tuple[str, str, bool]] = []
        self.captures: list[tuple[str, int | None]] = []
        self.created: list[str] = []
        self.killed: list[str] = []
        self.running = True
        self.cwd = "/home/user/project"
        self._lock = threading.Lock()

    def list_sessions(self) -> list[Session]:
        return list(self.sessions)

    def list_panes(self, session: str) -> list[Pane]:
        if session not in self.panes:
            raise MultiplexerError(f"tmux error: can't find session: {session}")
        return list(self.panes[session])

    def capture_pane(self, target: str, lines: int | None = None) -> str:
        with self._lock:
            self.captures.append((target, lines))
            if target in self.failing or target not in self.contents:
                raise MultiplexerError(f"tmux error: can't find pane: {target}")
            return self.contents[target]

    def send_keys(self, target: str, keys: str, literal: bool = False) -> None:
        with self._lock:
            if target not in self.contents:
                raise MultiplexerError(f"tmux error: can't find pane: {target}")
            self.sent.append((target, keys, literal))
            if literal:
                self.contents[target] += keys
            elif keys == "Enter":
                typed = self.contents[target].rsplit("$ ", 1)[-1]
                if typed.startswith("echo "):
                    self.contents[target] += "\n" + typed[len("echo "):]
                self.contents[target] += "\n$ "

    def new_session(self, name: str) -> None:
        self.created.append(name)
        self.sessions.append(Session(name=name, windows=1))
        self.contents[name] = "$ "

    def kill_session(self, name: str) -> None:
        if name not in {s.name for s in self.sessions}:
            raise MultiplexerError(f"tmux error: can't find session: {name}")
        self.killed.append(name)
        self.sessions = [s for s in self.sessions if s.name != name]

    def pane_current_path(self, target: str) -> str:
        return self.cwd

    def is_server_running(self) -> bool:
        return self.running


@pytest.fixture
def token() -> str:
    return "test-token-123"


@pytest.fixture
def fake_multiplexer() -> FakeMultiplexer:
    return FakeMultiplexer()


@pytest.fixture
def mock_multiplexer() -> MagicMock:
    """A mock Multiplexer with every method stubbed."""
    return MagicMock(spec=Multiplexer)


@pytest.fixture
def mock_files() -> MagicMock:
    """A mock FileBrowser with every method stubbed."""
    return MagicMock(spec=FileBrowser)
