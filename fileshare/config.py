import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

BYTES_PER_MB = 1024 * 1024
DEFAULT_MAX_UPLOAD_SIZE_MB = 50
DEFAULT_PORT = 9000
DEFAULT_HOST = "0.0.0.0"
CHUNK_SIZE_BYTES = 1024 * 1024  # 1 MB chunks for streaming
LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3

ALLOWED_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".pdf", ".txt", ".zip"}
)
ALLOWED_MEDIA_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "application/pdf",
        "text/plain",
        "application/zip",
        "application/x-zip-compressed",
        "application/octet-stream",
    }
)


def _resolve_env_path(env_key: str, default: Path) -> Path:
    """Resolve an environment-provided path or fall back to *default*."""

    value = os.environ.get(env_key)
    if value:
        return Path(value).expanduser().resolve()
    return default.resolve()


def _safe_int_env(key: str, default: int, min_value: int = 1) -> int:
    """Safely parse integer environment variable with error handling."""
    try:
        return max(min_value, int(os.environ.get(key, str(default))))
    except (TypeError, ValueError):
        logger = logging.getLogger("fileshare.config")
        logger.warning(
            "Invalid value for %s: %s. Using default: %d",
            key, os.environ.get(key), default
        )
        return default


@dataclass(frozen=True)
class Settings:
    uploads_dir: Path
    logs_dir: Path
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_SIZE_MB * BYTES_PER_MB
    log_level: str = "INFO"
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @property
    def max_upload_mb(self) -> int:
        return self.max_upload_bytes // BYTES_PER_MB

    @property
    def numeric_log_level(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)


def load_settings(storage_root: Optional[Path] = None) -> Settings:
    """Build :class:`Settings` from the process environment."""

    root = _resolve_env_path(
        "FILESHARE_STORAGE_ROOT", storage_root if storage_root is not None else Path.cwd()
    )
    max_mb = _safe_int_env("FILESHARE_MAX_UPLOAD_SIZE_MB", DEFAULT_MAX_UPLOAD_SIZE_MB)
    return Settings(
        uploads_dir=_resolve_env_path("FILESHARE_UPLOADS_DIR", root / "uploads"),
        logs_dir=_resolve_env_path("FILESHARE_LOGS_DIR", root / "logs"),
        max_upload_bytes=max_mb * BYTES_PER_MB,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        host=os.environ.get("HOST", DEFAULT_HOST),
        port=_safe_int_env("PORT", DEFAULT_PORT),
    )


def ensure_directories(settings: Settings) -> None:
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
