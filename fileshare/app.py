import os
import uuid
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional

from flask import (
    Flask,
    Response,
    current_app,
    g,
    jsonify,
    make_response,
    render_template,
    request,
    send_file,
)
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import HTTPException

from .config import Settings, ensure_directories, load_settings
from .errors import FileShareError
from .identifiers import FileIdGenerator
from .index import MetadataIndex
from .logs import configure_logging, get_logger, sanitize_log_value
from .pipeline import (
    IngestionPipeline,
    RetrievalPipeline,
    UploadCandidate,
)
from .storage import BlobStore
from .validation import UploadValidator

lifecycle_logger = get_logger("fileshare.lifecycle")

JSON_ERROR_PREFIXES = ("/api/", "/upload")
UPLOAD_FIELD = "files"


@dataclass
class FileShareServices:
    """Components shared by every request of one application instance."""

    settings: Settings
    index: MetadataIndex
    blob_store: BlobStore
    ingestion: IngestionPipeline
    retrieval: RetrievalPipeline


def build_services(settings: Settings, index: Optional[MetadataIndex] = None) -> FileShareServices:
    index = index if index is not None else MetadataIndex()
    blob_store = BlobStore(settings.uploads_dir)
    ingestion = IngestionPipeline(
        validator=UploadValidator(max_size=settings.max_upload_bytes),
        id_generator=FileIdGenerator(),
        blob_store=blob_store,
        index=index,
    )
    return FileShareServices(
        settings=settings,
        index=index,
        blob_store=blob_store,
        ingestion=ingestion,
        retrieval=RetrievalPipeline(blob_store, index),
    )


def get_services() -> FileShareServices:
    return current_app.extensions["fileshare"]


def _wants_json() -> bool:
    return request.path.startswith(JSON_ERROR_PREFIXES)


def _error_response(message: str, status_code: int) -> Response:
    if _wants_json():
        response = jsonify({"error": message})
    else:
        response = make_response(message + "\n")
        response.mimetype = "text/plain"
    response.status_code = status_code
    return response


def _close_stream_safely(stream: Any, context: str) -> None:
    """Close an upload stream while logging failures."""

    if stream is None or not hasattr(stream, "close"):
        return

    try:
        stream.close()
    except OSError as error:
        lifecycle_logger.warning(
            "stream_close_failed context=%s error=%s",
            context,
            sanitize_log_value(str(error)),
        )


@contextmanager
def upload_stream_handler(file_storage: FileStorage) -> Iterator[FileStorage]:
    """Ensure uploaded file streams are always closed."""

    try:
        yield file_storage
    finally:
        _close_stream_safely(
            getattr(file_storage, "stream", None),
            f"upload_stream_handler filename={sanitize_log_value(file_storage.filename or 'unknown')}",
        )


def measure_upload(upload: FileStorage) -> int:
    """Return the byte length of a parsed multipart part."""

    stream = upload.stream
    try:
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(0)
    except (AttributeError, OSError, ValueError):
        return int(upload.content_length or 0)
    return size


def handle_upload() -> Response:
    uploads = [
        upload
        for upload in request.files.getlist(UPLOAD_FIELD)
        if isinstance(upload, FileStorage) and upload.filename
    ]
    if not uploads:
        lifecycle_logger.warning("upload_failed reason=no_files")
        return _error_response("No files to upload", 400)

    with ExitStack() as stack:
        batch: List[UploadCandidate] = []
        for upload in uploads:
            stack.enter_context(upload_stream_handler(upload))
            batch.append(
                UploadCandidate(
                    filename=upload.filename,
                    size=measure_upload(upload),
                    media_type=upload.content_type,
                    stream=upload.stream,
                )
            )
        records = get_services().ingestion.ingest(batch)

    lifecycle_logger.info("upload_completed files=%d", len(records))
    return jsonify(
        {
            "message": "Upload successful",
            "files": [record.to_dict() for record in records],
        }
    )


def create_app(settings: Optional[Settings] = None, index: Optional[MetadataIndex] = None) -> Flask:
    """Create the Flask application with its own blob store and metadata index."""

    settings = settings or load_settings()
    ensure_directories(settings)
    configure_logging(settings.logs_dir, settings.numeric_log_level)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes
    app.config["MAX_UPLOAD_SIZE_MB"] = settings.max_upload_mb
    app.extensions["fileshare"] = build_services(settings, index)

    @app.before_request
    def add_request_id() -> Optional[Response]:
        """Assign a request identifier and answer CORS preflight requests."""

        g.request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        if request.method == "OPTIONS":
            return make_response("", 200)
        return None

    @app.after_request
    def log_request_completion(response: Response):
        lifecycle_logger.info(
            "request_completed method=%s path=%s status=%d",
            request.method,
            sanitize_log_value(request.path),
            response.status_code,
        )
        return response

    @app.after_request
    def add_security_headers(response: Response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        if hasattr(g, "request_id"):
            response.headers["X-Request-ID"] = g.request_id
        return response

    @app.errorhandler(FileShareError)
    def handle_fileshare_error(error: FileShareError):
        return _error_response(error.detail, error.status_code)

    @app.errorhandler(413)
    def handle_file_too_large(error):
        lifecycle_logger.warning(
            "upload_failed reason=request_too_large content_length=%s",
            request.content_length,
        )
        return _error_response(f"File size too large (max {settings.max_upload_mb}MB)", 400)

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return _error_response(error.name, error.code or 500)

    @app.errorhandler(500)
    def handle_internal_error(error):
        lifecycle_logger.error("request_failed path=%s", sanitize_log_value(request.path))
        return _error_response("Internal server error", 500)

    @app.route("/")
    def home():
        return render_template("index.html", max_upload_mb=settings.max_upload_mb)

    @app.route("/upload", methods=["POST"])
    def upload():
        return handle_upload()

    @app.route("/api/upload", methods=["POST"])
    def api_upload():
        return handle_upload()

    @app.route("/download/<file_id>")
    def download(file_id: str):
        content = get_services().retrieval.get_content(file_id)
        media_type = content.record.media_type or "application/octet-stream"
        try:
            response = send_file(content.path, mimetype=media_type)
        except FileNotFoundError:
            lifecycle_logger.warning("file_download_missing_race file_id=%s", file_id)
            return _error_response("File does not exist", 404)
        # send_file appends a charset to text/* types; serve the declared type as stored.
        response.headers["Content-Type"] = media_type
        response.headers["Content-Disposition"] = content.content_disposition
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response

    @app.route("/info/<file_id>")
    def file_info(file_id: str):
        record = get_services().retrieval.get_metadata(file_id)
        return jsonify({"file": record.to_dict()})

    @app.route("/api/info/<file_id>")
    def api_file_info(file_id: str):
        record = get_services().retrieval.get_metadata(file_id)
        return jsonify({"file": record.to_dict()})

    @app.route("/health")
    def health_check():
        return jsonify({"status": "ok", "service": "file-sharing"})

    lifecycle_logger.info(
        "app_created uploads_dir=%s max_upload_mb=%d",
        settings.uploads_dir,
        settings.max_upload_mb,
    )
    return app


def main() -> None:
    settings = load_settings()
    app = create_app(settings)
    lifecycle_logger.info("server_starting host=%s port=%d", settings.host, settings.port)
    app.run(host=settings.host, port=settings.port, debug=False)


if __name__ == "__main__":
    main()
