import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, Sequence
from urllib.parse import quote

from .errors import RetrievalError, RetrievalErrorKind, UploadValidationError
from .identifiers import FileIdGenerator, is_valid_file_id
from .index import FileRecord, MetadataIndex
from .logs import get_logger, sanitize_log_value
from .storage import BlobStore
from .validation import UploadValidator, strip_directory

ingest_logger = get_logger("fileshare.ingest")
retrieve_logger = get_logger("fileshare.retrieve")

_HEADER_UNSAFE_CHARS = re.compile(r"[\x00-\x1f\x7f\"']")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sanitize_download_name(original_name: str) -> str:
    """Strip directories, control characters and quotes from a filename."""

    return _HEADER_UNSAFE_CHARS.sub("", strip_directory(original_name or ""))


def content_disposition(original_name: str) -> str:
    """Build an attachment ``Content-Disposition`` value for *original_name*."""

    name = sanitize_download_name(original_name)
    try:
        name.encode("ascii")
    except UnicodeEncodeError:
        fallback = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode("ascii")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(name, safe='')}"
    return f'attachment; filename="{name}"'


@dataclass
class UploadCandidate:
    """One file of a multipart batch, as declared by the client."""

    filename: str
    size: int
    media_type: Optional[str]
    stream: BinaryIO


class IngestionPipeline:
    """Validate, name, store and index each file of an upload batch in order.

    The first failing file aborts the batch by raising. Files already stored
    and indexed earlier in the same batch stay in place; the blob store and
    index are written in two separate steps with no rollback.
    """

    def __init__(
        self,
        validator: UploadValidator,
        id_generator: FileIdGenerator,
        blob_store: BlobStore,
        index: MetadataIndex,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.validator = validator
        self.id_generator = id_generator
        self.blob_store = blob_store
        self.index = index
        self._clock = clock

    def ingest(self, batch: Sequence[UploadCandidate]) -> List[FileRecord]:
        records: List[FileRecord] = []
        for position, candidate in enumerate(batch):
            try:
                records.append(self._ingest_one(candidate))
            except Exception:
                if records:
                    ingest_logger.warning(
                        "upload_batch_aborted position=%d kept_file_ids=%s",
                        position,
                        [record.id for record in records],
                    )
                raise
        return records

    def _ingest_one(self, candidate: UploadCandidate) -> FileRecord:
        try:
            name = self.validator.validate(
                candidate.filename, candidate.size, candidate.media_type
            )
        except UploadValidationError as error:
            ingest_logger.warning(
                "upload_rejected filename=%s media_type=%s size=%d reason=%s",
                sanitize_log_value(candidate.filename),
                sanitize_log_value(candidate.media_type),
                candidate.size,
                error.kind.code,
            )
            raise

        file_id = self.id_generator.generate(name)
        written = self.blob_store.write(file_id, candidate.stream)
        if written != candidate.size:
            ingest_logger.warning(
                "upload_size_mismatch file_id=%s declared=%d written=%d",
                file_id,
                candidate.size,
                written,
            )

        record = FileRecord(
            id=file_id,
            original_name=name,
            size=candidate.size,
            upload_time=self._clock(),
            media_type=candidate.media_type or "",
        )
        self.index.put(record)
        ingest_logger.info(
            "file_uploaded file_id=%s filename=%s size=%d",
            file_id,
            sanitize_log_value(name),
            record.size,
        )
        return record


@dataclass(frozen=True)
class StoredContent:
    """A readable stored file paired with its metadata record."""

    path: Path
    record: FileRecord

    def open(self) -> BinaryIO:
        return self.path.open("rb")

    @property
    def content_disposition(self) -> str:
        return content_disposition(self.record.original_name)


class RetrievalPipeline:
    """Read-only access to stored files by identifier."""

    def __init__(self, blob_store: BlobStore, index: MetadataIndex) -> None:
        self.blob_store = blob_store
        self.index = index

    def _lookup(self, file_id: str) -> FileRecord:
        if not is_valid_file_id(file_id):
            retrieve_logger.warning(
                "file_id_invalid file_id=%s", sanitize_log_value(file_id)
            )
            raise RetrievalError(RetrievalErrorKind.INVALID_ID)
        record = self.index.get(file_id)
        if record is None:
            retrieve_logger.warning("file_missing file_id=%s", file_id)
            raise RetrievalError(RetrievalErrorKind.NOT_FOUND)
        return record

    def get_metadata(self, file_id: str) -> FileRecord:
        return self._lookup(file_id)

    def get_content(self, file_id: str) -> StoredContent:
        record = self._lookup(file_id)
        try:
            path = self.blob_store.resolve_readable_path(file_id)
        except RetrievalError as error:
            retrieve_logger.warning(
                "file_blob_unavailable file_id=%s reason=%s", file_id, error.kind.code
            )
            raise
        retrieve_logger.info("file_downloaded file_id=%s", file_id)
        return StoredContent(path=path, record=record)
