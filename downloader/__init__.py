"""Concurrent batch downloader with a bounded number of in-flight requests."""

from .cache import ResultCache
from .errors import DownloadError, FilesystemError, TransportError
from .fetcher import HTTPFetcher
from .gate import AdmissionGate
from .storage import OutputStore
from .worker import (
    Downloader,
    DownloadContext,
    DownloadOutcome,
    RunReport,
    WorkItem,
)

__all__ = [
    "AdmissionGate",
    "DownloadContext",
    "DownloadError",
    "DownloadOutcome",
    "Downloader",
    "FilesystemError",
    "HTTPFetcher",
    "OutputStore",
    "ResultCache",
    "RunReport",
    "TransportError",
    "WorkItem",
]
