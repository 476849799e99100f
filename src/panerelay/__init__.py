"""panerelay -- Remote control of tmux sessions over a WebSocket.

This package implements a small host-side service that lets a thin remote
client (typically a mobile app) list, watch and drive tmux panes. Commands
are relayed to the tmux binary as subprocesses; pane output is streamed
back to the client as push notifications.
"""

__version__ = "0.1.0"
