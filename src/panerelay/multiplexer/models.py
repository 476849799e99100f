"""Records returned by multiplexer listings.

Field names double as the JSON keys sent to clients.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Session(BaseModel):
    """A named tmux session."""

    name: str = Field(default="", description="Unique session name")
    windows: int = Field(default=0, description="Number of windows in the session")
    attached: bool = Field(default=False, description="Whether a client is attached")
    created: str = Field(
        default="", description="Opaque timestamp reported by tmux (session activity)"
    )


class Pane(BaseModel):
    """A single pane inside a session window.

    ``session:window.pane`` is the target string that addresses it.
    """

    session: str = Field(default="")
    window: int = Field(default=0)
    pane: int = Field(default=0)
    width: int = Field(default=0)
    height: int = Field(default=0)
    current_command: str = Field(default="")

    @property
    def target(self) -> str:
        return f"{self.session}:{self.window}.{self.pane}"
