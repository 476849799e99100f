"""WebSocket server for panerelay.

Accepts client connections, authenticates them, dispatches their requests
and streams pane updates back. Each connection is independent; nothing is
shared between connections except the dispatcher.
"""
