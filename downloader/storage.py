"""
Writes fetched bodies to download_{index}.json files
"""

import asyncio
import contextlib
import os
from pathlib import Path
from typing import Optional

from .errors import FilesystemError

FILENAME_PATTERN = "download_{index}.json"


def _write_atomic(path: Path, body: str):
    """Write ``body`` next to ``path`` and rename it into place.

    A failed write never leaves a partial ``path`` behind; the temporary
    file is removed before the error is re-raised.
    """
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        # newline="" keeps the body byte-for-byte on every platform
        with open(tmp_path, "w", encoding="utf-8", newline="") as f:
            f.write(body)
        os.replace(tmp_path, path)
    except OSError:
        with contextlib.suppress(OSError):
            tmp_path.unlink(missing_ok=True)
        raise


class OutputStore:
    def __init__(self, directory: Optional[Path] = None):
        # Defaults to the working directory at construction time
        self.directory = Path(directory) if directory is not None else Path.cwd()

    @staticmethod
    def filename_for(index: int) -> str:
        """Output file name for a 1-based sequence index"""
        return FILENAME_PATTERN.format(index=index)

    def path_for(self, index: int) -> Path:
        return self.directory / self.filename_for(index)

    async def write(self, url: str, index: int, body: str) -> Path:
        """Write ``body`` verbatim to the file for ``index``.

        The blocking write runs in a worker thread so other downloads keep
        progressing. Raises FilesystemError if the file cannot be written.
        """
        path = self.path_for(index)
        try:
            await asyncio.to_thread(_write_atomic, path, body)
        except OSError as e:
            raise FilesystemError(url, f"Failed to write {path}: {e}", path=str(path)) from e
        return path
