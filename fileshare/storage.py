import os
from pathlib import Path
from typing import BinaryIO

from .config import CHUNK_SIZE_BYTES
from .errors import RetrievalError, RetrievalErrorKind, StorageIOError
from .logs import get_logger, sanitize_log_value

storage_logger = get_logger("fileshare.storage")


class BlobStore:
    """Raw upload bytes on disk, one regular file per identifier.

    Files live directly inside ``root`` and are named by their identifier.
    The store is the only reader and writer of that directory.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _contained_path(self, file_id: str) -> Path:
        root = self.root.resolve()
        candidate = (root / file_id).resolve()
        if candidate.parent != root:
            storage_logger.warning(
                "blob_path_outside_root file_id=%s", sanitize_log_value(file_id)
            )
            raise RetrievalError(RetrievalErrorKind.ACCESS_DENIED)
        return candidate

    def write(self, file_id: str, stream: BinaryIO) -> int:
        """Create the file for *file_id* and copy *stream* into it.

        Returns the number of bytes written. An existing file is never
        overwritten; a partially written file is removed before the
        :class:`StorageIOError` propagates.
        """

        path = self._contained_path(file_id)
        if hasattr(stream, "seek"):
            try:
                stream.seek(0)
            except (OSError, ValueError):
                pass

        try:
            # Owner-only permissions set atomically at creation.
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except OSError as error:
            storage_logger.error(
                "blob_create_failed file_id=%s error=%s",
                file_id,
                sanitize_log_value(str(error)),
            )
            raise StorageIOError() from error

        written = 0
        try:
            with os.fdopen(fd, "wb") as destination:
                while True:
                    chunk = stream.read(CHUNK_SIZE_BYTES)
                    if not chunk:
                        break
                    destination.write(chunk)
                    written += len(chunk)
        except OSError as error:
            storage_logger.error(
                "blob_write_failed file_id=%s written=%d error=%s",
                file_id,
                written,
                sanitize_log_value(str(error)),
            )
            path.unlink(missing_ok=True)
            raise StorageIOError() from error
        return written

    def resolve_readable_path(self, file_id: str) -> Path:
        """Return the containment-checked path of the regular file for *file_id*."""

        path = self._contained_path(file_id)
        if not path.is_file():
            raise RetrievalError(RetrievalErrorKind.NOT_FOUND)
        return path
