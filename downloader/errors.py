"""
Exceptions raised by the download pipeline.

Both are isolated to the fetch task that raised them; the orchestrator only
ever sees them as failed outcomes.
"""

from typing import Optional


class DownloadError(Exception):
    """Base class for failures of a single download."""

    def __init__(self, url: str, message: str):
        super().__init__(message)
        self.url = url
        self.message = message

    def __str__(self) -> str:
        return self.message


class TransportError(DownloadError):
    """Network failure, timeout, DNS failure or non-2xx response."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        super().__init__(url, message)
        self.status_code = status_code


class FilesystemError(DownloadError):
    """The fetched body could not be written to its output file."""

    def __init__(self, url: str, message: str, path: Optional[str] = None):
        super().__init__(url, message)
        self.path = path
