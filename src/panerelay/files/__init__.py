"""Remote file browsing for panerelay.

Public API:
    FileBrowser -- Synchronous filesystem operations
    FileBrowserError -- Raised when an operation fails
"""

from panerelay.files.browser import FileBrowser, FileBrowserError, FileEntry, FileStat

__all__ = ["FileBrowser", "FileBrowserError", "FileEntry", "FileStat"]
