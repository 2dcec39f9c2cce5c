import hashlib
import itertools
import re
import threading
import time
from typing import Callable

from .validation import strip_directory

FILE_ID_LENGTH = 32
_FILE_ID_PATTERN = re.compile(r"[0-9a-fA-F]{32}")


def is_valid_file_id(value: str) -> bool:
    """Return True when *value* is exactly 32 hexadecimal characters."""

    return isinstance(value, str) and _FILE_ID_PATTERN.fullmatch(value) is not None


class FileIdGenerator:
    """Derive 32-character lowercase hex identifiers for stored files.

    The digest input is the directory-stripped filename and the current time
    in nanoseconds. Identifiers are predictable from the filename and upload
    time and must not be used as access tokens.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns) -> None:
        self._clock = clock
        self._sequence = itertools.count()
        self._lock = threading.Lock()

    def generate(self, original_filename: str) -> str:
        with self._lock:
            sequence = next(self._sequence)
        safe_name = strip_directory(original_filename)
        # The sequence keeps ids distinct when the clock does not advance between calls.
        data = f"{safe_name}-{self._clock()}-{sequence}"
        return hashlib.md5(data.encode("utf-8"), usedforsecurity=False).hexdigest()
