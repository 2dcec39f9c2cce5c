import re
from typing import AbstractSet, Optional

from .config import (
    ALLOWED_EXTENSIONS,
    ALLOWED_MEDIA_TYPES,
    BYTES_PER_MB,
    DEFAULT_MAX_UPLOAD_SIZE_MB,
)
from .errors import UploadValidationError, ValidationErrorKind

_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")
_SEPARATORS = ("/", "\\")


def strip_directory(filename: str) -> str:
    """Return the last path component of *filename* for either separator style."""

    return re.split(r"[\\/]", filename or "")[-1]


def _is_absolute(filename: str) -> bool:
    return filename.startswith(_SEPARATORS) or bool(_DRIVE_PREFIX.match(filename))


class UploadValidator:
    """Accept or reject a candidate upload from its client-declared metadata.

    Checks run in a fixed order and stop at the first failure: size, name
    safety, extension, then media type. File content is never inspected, so
    the declared media type is trusted as sent.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_UPLOAD_SIZE_MB * BYTES_PER_MB,
        allowed_extensions: AbstractSet[str] = ALLOWED_EXTENSIONS,
        allowed_media_types: AbstractSet[str] = ALLOWED_MEDIA_TYPES,
    ) -> None:
        self.max_size = max_size
        self.allowed_extensions = frozenset(ext.lower() for ext in allowed_extensions)
        self.allowed_media_types = frozenset(allowed_media_types)

    @property
    def max_size_label(self) -> str:
        return f"{self.max_size // BYTES_PER_MB}MB"

    def validate(
        self, filename: str, declared_size: int, declared_media_type: Optional[str]
    ) -> str:
        """Validate one upload and return its directory-stripped filename."""

        if declared_size > self.max_size:
            raise UploadValidationError(
                ValidationErrorKind.TOO_LARGE,
                f"File size too large (max {self.max_size_label})",
            )

        name = self._check_name(filename or "")

        extension = name[name.rfind("."):].lower() if "." in name else ""
        if extension not in self.allowed_extensions:
            raise UploadValidationError(
                ValidationErrorKind.TYPE_NOT_ALLOWED, "File type not allowed"
            )

        media_type = declared_media_type or ""
        if media_type not in self.allowed_media_types:
            raise UploadValidationError(
                ValidationErrorKind.MIME_NOT_ALLOWED,
                f"MIME type not allowed: {media_type}",
            )
        return name

    def _check_name(self, filename: str) -> str:
        stripped = strip_directory(filename)
        if (
            ".." in filename
            or _is_absolute(filename)
            or not stripped
            or "\x00" in stripped
            or any(sep in stripped for sep in _SEPARATORS)
        ):
            raise UploadValidationError(
                ValidationErrorKind.UNSAFE_NAME, "Invalid filename"
            )
        return stripped
