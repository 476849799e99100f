"""Routes decoded requests to the multiplexer and the file browser.

The dispatcher is synchronous and performs no I/O of its own: handlers
delegate to the injected collaborators, which may block. The connection
handler runs :meth:`Dispatcher.dispatch` in a worker thread.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from panerelay.files.browser import FileBrowser, FileBrowserError
from panerelay.multiplexer.base import Multiplexer, MultiplexerError
from panerelay.protocol.messages import (
    InternalError,
    MethodNotFound,
    ProtocolError,
    Request,
    Response,
)
from panerelay.protocol.params import (
    CapturePaneParams,
    ListDirParams,
    MethodParams,
    NameParams,
    NewSessionParams,
    NoParams,
    PathParams,
    RenameParams,
    SendCommandParams,
    SendKeysParams,
    SessionParams,
    UploadParams,
    WriteFileParams,
)

logger = logging.getLogger(__name__)

DEFAULT_SESSION_NAME = "untitled"


class Dispatcher:
    """Validates params and invokes the handler registered for a method.

    Args:
        multiplexer: Backend for session and pane operations.
        files: Backend for ``fs_*`` methods. Defaults to a
               :class:`FileBrowser` bound to ``multiplexer``.
    """

    def __init__(self, multiplexer: Multiplexer, files: FileBrowser | None = None) -> None:
        self._multiplexer = multiplexer
        self._files = files if files is not None else FileBrowser(multiplexer)
        self._routes: dict[str, tuple[type[MethodParams], Callable[[Any], Any]]] = {
            "list_sessions": (NoParams, self._list_sessions),
            "list_panes": (SessionParams, self._list_panes),
            "capture_pane": (CapturePaneParams, self._capture_pane),
            "send_keys": (SendKeysParams, self._send_keys),
            "send_command": (SendCommandParams, self._send_command),
            "new_session": (NewSessionParams, self._new_session),
            "kill_session": (NameParams, self._kill_session),
            "fs_cwd": (SessionParams, self._fs_cwd),
            "fs_list": (ListDirParams, self._fs_list),
            "fs_stat": (PathParams, self._fs_stat),
            "fs_read": (PathParams, self._fs_read),
            "fs_write": (WriteFileParams, self._fs_write),
            "fs_mkdir": (PathParams, self._fs_mkdir),
            "fs_delete": (PathParams, self._fs_delete),
            "fs_rename": (RenameParams, self._fs_rename),
            "fs_download": (PathParams, self._fs_download),
            "fs_upload": (UploadParams, self._fs_upload),
        }

    @property
    def multiplexer(self) -> Multiplexer:
        return self._multiplexer

    @property
    def methods(self) -> frozenset[str]:
        return frozenset(self._routes)

    def dispatch(self, request: Request) -> Response:
        """Execute ``request`` and wrap the outcome in a response envelope."""
        try:
            result = self.call(request.method, request.params)
        except ProtocolError as e:
            logger.debug("%s failed (%d): %s", request.method, e.code, e.message)
            return Response.from_error(request.id, e)
        return Response.ok(request.id, result)

    def call(self, method: str, params: Any) -> Any:
        """Execute ``method`` and return its JSON-ready result.

        Raises:
            MethodNotFound: If no handler is registered for ``method``.
            InvalidParams: If ``params`` fail validation.
            InternalError: If the multiplexer or the file browser fails.
        """
        route = self._routes.get(method)
        if route is None:
            raise MethodNotFound(f"unknown method: {method}")
        model, handler = route
        args = model.parse(params)
        try:
            return handler(args)
        except (MultiplexerError, FileBrowserError) as e:
            raise InternalError(str(e)) from e

    # -------------------------------------------------------------------
    # Multiplexer methods
    # -------------------------------------------------------------------

    def _list_sessions(self, params: NoParams) -> list[dict[str, Any]]:
        return [s.model_dump() for s in self._multiplexer.list_sessions()]

    def _list_panes(self, params: SessionParams) -> list[dict[str, Any]]:
        return [p.model_dump() for p in self._multiplexer.list_panes(params.session)]

    def _capture_pane(self, params: CapturePaneParams) -> dict[str, Any]:
        output = self._multiplexer.capture_pane(params.target, params.lines)
        return {"output": output}

    def _send_keys(self, params: SendKeysParams) -> dict[str, Any]:
        self._multiplexer.send_keys(params.target, params.keys, params.literal)
        return {"ok": True}

    def _send_command(self, params: SendCommandParams) -> dict[str, Any]:
        self._multiplexer.send_command(params.target, params.command)
        return {"ok": True}

    def _new_session(self, params: NewSessionParams) -> dict[str, Any]:
        self._multiplexer.new_session(params.name or DEFAULT_SESSION_NAME)
        return {"ok": True}

    def _kill_session(self, params: NameParams) -> dict[str, Any]:
        self._multiplexer.kill_session(params.name)
        return {"ok": True}

    # -------------------------------------------------------------------
    # File browsing methods
    # -------------------------------------------------------------------

    def _fs_cwd(self, params: SessionParams) -> dict[str, Any]:
        return {"path": self._files.get_cwd(params.session)}

    def _fs_list(self, params: ListDirParams) -> dict[str, Any]:
        entries = self._files.list_dir(params.path, params.show_hidden)
        return {"entries": [e.model_dump() for e in entries], "path": params.path}

    def _fs_stat(self, params: PathParams) -> dict[str, Any]:
        return self._files.stat(params.path).model_dump()

    def _fs_read(self, params: PathParams) -> dict[str, Any]:
        return {"content": self._files.read_file(params.path)}

    def _fs_write(self, params: WriteFileParams) -> dict[str, Any]:
        self._files.write_file(params.path, params.content)
        return {"ok": True}

    def _fs_mkdir(self, params: PathParams) -> dict[str, Any]:
        self._files.create_dir(params.path)
        return {"ok": True}

    def _fs_delete(self, params: PathParams) -> dict[str, Any]:
        self._files.delete_path(params.path)
        return {"ok": True}

    def _fs_rename(self, params: RenameParams) -> dict[str, Any]:
        self._files.rename_path(params.source, params.to)
        return {"ok": True}

    def _fs_download(self, params: PathParams) -> dict[str, Any]:
        name, data = self._files.download_file(params.path)
        return {"name": name, "data": data}

    def _fs_upload(self, params: UploadParams) -> dict[str, Any]:
        self._files.upload_file(params.path, params.data)
        return {"ok": True}
