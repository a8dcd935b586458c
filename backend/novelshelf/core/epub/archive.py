"""In-memory view over a zip-packaged EPUB."""

import io
import logging
import zlib
from typing import Iterator, Optional
from zipfile import BadZipFile, ZipFile

from .errors import ArchiveFormatError

logger = logging.getLogger(__name__)


def normalize_entry_path(path: str) -> str:
    """Normalize an archive path: forward slashes, no leading slash."""
    return path.replace("\\", "/").lstrip("/")


class Archive:
    """Read-only lookup of archive entries by normalized path.

    Lookups of missing entries return None instead of raising; the import
    pipeline probes paths that may or may not exist as a matter of course.
    """

    def __init__(self, zip_file: ZipFile):
        self.zip_file = zip_file
        # normalized path -> name as stored in the zip
        self._entries: dict[str, str] = {}
        for info in zip_file.infolist():
            if info.is_dir():
                continue
            self._entries.setdefault(normalize_entry_path(info.filename), info.filename)

    def __contains__(self, path: str) -> bool:
        return normalize_entry_path(path) in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def paths(self) -> list[str]:
        """All entry paths in archive order."""
        return list(self._entries)

    def read_bytes(self, path: str) -> Optional[bytes]:
        """Return raw entry bytes, or None if absent or unreadable."""
        name = self._entries.get(normalize_entry_path(path))
        if name is None:
            return None
        try:
            return self.zip_file.read(name)
        except (BadZipFile, RuntimeError, NotImplementedError, OSError, zlib.error) as e:
            # corrupt, encrypted or unsupported-compression entries
            logger.warning("Skipping unreadable archive entry %s: %s", name, e)
            return None

    def read_text(self, path: str) -> Optional[str]:
        """Return entry text decoded as UTF-8, or None if absent or unreadable."""
        data = self.read_bytes(path)
        if data is None:
            return None
        return data.decode("utf-8-sig", errors="replace")

    def close(self):
        """Close the underlying zip file."""
        self.zip_file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def open_archive(data: bytes) -> Archive:
    """Open a zip blob held in memory.

    Raises:
        ArchiveFormatError: If the blob is not a valid zip container
    """
    try:
        zip_file = ZipFile(io.BytesIO(data))
    except (BadZipFile, ValueError, OSError) as e:
        raise ArchiveFormatError() from e
    return Archive(zip_file)
