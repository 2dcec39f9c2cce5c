import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional


def isoformat_utc(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class FileRecord:
    """Descriptive metadata for one stored upload."""

    id: str
    original_name: str
    size: int
    upload_time: datetime
    media_type: str

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "original_name": self.original_name,
            "size": self.size,
            "upload_time": isoformat_utc(self.upload_time),
            "mime_type": self.media_type,
        }


class MetadataIndex:
    """In-memory mapping from file identifier to :class:`FileRecord`.

    Records are immutable and inserted whole, so readers never observe a
    partially built record. Contents live for the lifetime of the instance.
    """

    def __init__(self) -> None:
        self._records: Dict[str, FileRecord] = {}
        self._lock = threading.RLock()

    def put(self, record: FileRecord) -> None:
        with self._lock:
            if record.id in self._records:
                raise KeyError(f"Identifier already indexed: {record.id}")
            self._records[record.id] = record

    def get(self, file_id: str) -> Optional[FileRecord]:
        with self._lock:
            return self._records.get(file_id)

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._records)

    def __contains__(self, file_id: object) -> bool:
        with self._lock:
            return file_id in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
