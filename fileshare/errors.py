"""Error kinds raised by the ingestion and retrieval components.

Each component raises one exception type carrying a member of a closed
enumeration, so callers branch on ``error.kind`` instead of parsing text.
The HTTP status belongs to the kind.
"""

from enum import Enum
from typing import Optional


class ValidationErrorKind(Enum):
    TOO_LARGE = ("too_large", 400)
    UNSAFE_NAME = ("unsafe_name", 400)
    TYPE_NOT_ALLOWED = ("type_not_allowed", 400)
    MIME_NOT_ALLOWED = ("mime_not_allowed", 400)

    def __init__(self, code: str, status_code: int) -> None:
        self.code = code
        self.status_code = status_code


class RetrievalErrorKind(Enum):
    INVALID_ID = ("invalid_id", 400)
    NOT_FOUND = ("not_found", 404)
    ACCESS_DENIED = ("access_denied", 403)

    def __init__(self, code: str, status_code: int) -> None:
        self.code = code
        self.status_code = status_code


class FileShareError(Exception):
    """Base class for errors surfaced to HTTP clients."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_payload(self) -> dict:
        return {"error": self.detail}


class UploadValidationError(FileShareError):
    """Raised when a candidate upload is rejected before anything is stored."""

    def __init__(self, kind: ValidationErrorKind, detail: str) -> None:
        super().__init__(detail)
        self.kind = kind

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return self.kind.status_code


class RetrievalError(FileShareError):
    """Raised when an identifier cannot be served."""

    def __init__(self, kind: RetrievalErrorKind, detail: Optional[str] = None) -> None:
        super().__init__(detail or _RETRIEVAL_MESSAGES[kind])
        self.kind = kind

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return self.kind.status_code


class StorageIOError(FileShareError):
    """Raised when the blob store cannot persist bytes."""

    status_code = 500

    def __init__(self, detail: str = "Failed to save file") -> None:
        super().__init__(detail)


_RETRIEVAL_MESSAGES = {
    RetrievalErrorKind.INVALID_ID: "Invalid file ID",
    RetrievalErrorKind.NOT_FOUND: "File not found",
    RetrievalErrorKind.ACCESS_DENIED: "Access denied",
}
