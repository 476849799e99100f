"""Remote file browsing for panerelay clients.

A synchronous collaborator of the request dispatcher. Paths come from the
client as strings; ``~`` is expanded and existing paths are resolved.
Binary payloads travel as base64 text.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import shutil
import stat as stat_mod
from pathlib import Path

from pydantic import BaseModel

from panerelay.multiplexer.base import Multiplexer, MultiplexerError

logger = logging.getLogger(__name__)

MAX_DOWNLOAD_SIZE = 10 * 1024 * 1024
MAX_PREVIEW_SIZE = 512 * 1024

# Bytes inspected when guessing whether an unknown file is text
TEXT_SNIFF_SIZE = 512

MIME_HINTS: dict[str, str] = {
    "md": "text/markdown", "markdown": "text/markdown",
    "csv": "text/csv",
    "json": "application/json",
    "toml": "application/toml",
    "yaml": "application/yaml", "yml": "application/yaml",
    "xml": "text/html", "html": "text/html", "htm": "text/html",
    "js": "text/javascript", "mjs": "text/javascript", "cjs": "text/javascript",
    "ts": "text/typescript", "tsx": "text/typescript",
    "rs": "text/rust",
    "py": "text/python",
    "rb": "text/ruby",
    "go": "text/go",
    "java": "text/java",
    "c": "text/c", "h": "text/c",
    "cpp": "text/cpp", "cc": "text/cpp", "cxx": "text/cpp", "hpp": "text/cpp",
    "css": "text/css", "scss": "text/css", "less": "text/css",
    "sh": "text/shell", "bash": "text/shell", "zsh": "text/shell", "fish": "text/shell",
    "sql": "text/sql",
    "svelte": "text/svelte",
    "vue": "text/vue",
    "txt": "text/plain", "log": "text/plain", "env": "text/plain",
    "gitignore": "text/plain", "dockerignore": "text/plain",
    "png": "image/png",
    "jpg": "image/jpeg", "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "webp": "image/webp",
    "pdf": "application/pdf",
    "zip": "application/archive", "tar": "application/archive",
    "gz": "application/archive", "bz2": "application/archive",
    "xz": "application/archive", "7z": "application/archive",
}

TEXT_MIME_TYPES = {"application/json", "application/toml", "application/yaml"}


class FileEntry(BaseModel):
    name: str
    path: str
    type: str
    size: int
    modified: int
    permissions: str
    hidden: bool


class FileStat(BaseModel):
    path: str
    name: str
    type: str
    size: int
    modified: int
    permissions: str
    readable: bool
    writable: bool
    is_text: bool
    mime_hint: str


class FileBrowserError(Exception):
    """Raised when a file browsing operation fails."""


def resolve_path(path: str) -> Path:
    """Expand a leading ``~`` and resolve the path if it exists."""
    expanded = Path(path).expanduser()
    if expanded.exists():
        return expanded.resolve()
    return expanded


def format_permissions(mode: int) -> str:
    """Render the permission bits of ``mode`` as ``rwxr-xr-x``."""
    return stat_mod.filemode(mode)[1:]


def mime_hint(name: str) -> str:
    """Guess a MIME type from the file extension."""
    suffix = Path(name).suffix.lower().lstrip(".")
    if not suffix and name.startswith("."):
        # dot-files like ".gitignore" carry their type in the name
        suffix = name.lstrip(".").lower()
    return MIME_HINTS.get(suffix, "application/octet-stream")


def is_text_file(path: Path) -> bool:
    mime = mime_hint(path.name)
    if mime.startswith("text/") or mime in TEXT_MIME_TYPES:
        return True
    try:
        with open(path, "rb") as f:
            head = f.read(TEXT_SNIFF_SIZE)
    except OSError:
        return False
    return b"\x00" not in head


class FileBrowser:
    """Filesystem operations exposed to clients through ``fs_*`` methods.

    Args:
        multiplexer: Used to look up the working directory of a session's
                     active pane.
    """

    def __init__(self, multiplexer: Multiplexer) -> None:
        self._multiplexer = multiplexer

    def get_cwd(self, session: str) -> str:
        """Working directory of ``session``'s active pane, or the home dir."""
        try:
            path = self._multiplexer.pane_current_path(session)
        except MultiplexerError as e:
            logger.debug("No pane path for %s, using home directory: %s", session, e)
            path = ""
        return path or str(Path.home())

    def list_dir(self, path: str, show_hidden: bool = False) -> list[FileEntry]:
        directory = resolve_path(path)
        try:
            scanner = os.scandir(directory)
        except OSError as e:
            raise FileBrowserError(f"Cannot read {directory}: {e}") from e

        entries: list[FileEntry] = []
        with scanner:
            for entry in scanner:
                hidden = entry.name.startswith(".")
                if hidden and not show_hidden:
                    continue
                # Links are listed as themselves, dangling ones included
                try:
                    st = entry.stat(follow_symlinks=False)
                except OSError:
                    continue
                if entry.is_symlink():
                    file_type = "symlink"
                elif entry.is_dir(follow_symlinks=False):
                    file_type = "dir"
                else:
                    file_type = "file"
                entries.append(FileEntry(
                    name=entry.name,
                    path=entry.path,
                    type=file_type,
                    size=st.st_size,
                    modified=int(st.st_mtime),
                    permissions=format_permissions(st.st_mode),
                    hidden=hidden,
                ))

        entries.sort(key=lambda e: (e.type != "dir", e.name.lower()))
        return entries

    def stat(self, path: str) -> FileStat:
        p = resolve_path(path)
        try:
            st = p.stat()
        except OSError as e:
            raise FileBrowserError(f"stat error: {e}") from e
        is_dir = stat_mod.S_ISDIR(st.st_mode)
        return FileStat(
            path=str(p),
            name=p.name,
            type="dir" if is_dir else "file",
            size=st.st_size,
            modified=int(st.st_mtime),
            permissions=format_permissions(st.st_mode),
            readable=bool(st.st_mode & stat_mod.S_IRUSR),
            writable=bool(st.st_mode & stat_mod.S_IWUSR),
            is_text=stat_mod.S_ISREG(st.st_mode) and is_text_file(p),
            mime_hint=mime_hint(p.name),
        )

    def read_file(self, path: str) -> str:
        p = resolve_path(path)
        try:
            size = p.stat().st_size
            if size > MAX_PREVIEW_SIZE:
                raise FileBrowserError(
                    f"File too large for preview: {size} bytes (max {MAX_PREVIEW_SIZE})"
                )
            return p.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FileBrowserError(f"read error: {e}") from e

    def write_file(self, path: str, content: str) -> None:
        p = resolve_path(path)
        try:
            p.write_text(content, encoding="utf-8")
        except OSError as e:
            raise FileBrowserError(f"write error: {e}") from e

    def create_dir(self, path: str) -> None:
        p = resolve_path(path)
        try:
            p.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileBrowserError(f"mkdir error: {e}") from e

    def delete_path(self, path: str) -> None:
        p = resolve_path(path)
        try:
            if p.is_dir() and not p.is_symlink():
                shutil.rmtree(p)
            else:
                p.unlink()
        except OSError as e:
            raise FileBrowserError(f"delete error: {e}") from e
        logger.info("Deleted %s", p)

    def rename_path(self, src: str, dst: str) -> None:
        source = resolve_path(src)
        target = resolve_path(dst)
        try:
            source.rename(target)
        except OSError as e:
            raise FileBrowserError(f"rename error: {e}") from e

    def download_file(self, path: str) -> tuple[str, str]:
        """Return ``(file name, base64 content)`` for ``path``."""
        p = resolve_path(path)
        try:
            size = p.stat().st_size
            if size > MAX_DOWNLOAD_SIZE:
                raise FileBrowserError(
                    f"File too large: {size} bytes (max {MAX_DOWNLOAD_SIZE})"
                )
            data = p.read_bytes()
        except OSError as e:
            raise FileBrowserError(f"download error: {e}") from e
        return p.name, base64.b64encode(data).decode("ascii")

    def upload_file(self, path: str, data: str) -> None:
        """Decode base64 ``data`` and write the bytes to ``path``."""
        p = resolve_path(path)
        try:
            payload = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise FileBrowserError(f"invalid base64: {e}") from e
        try:
            p.write_bytes(payload)
        except OSError as e:
            raise FileBrowserError(f"upload error: {e}") from e
        logger.info("Uploaded %d bytes to %s", len(payload), p)
