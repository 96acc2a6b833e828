"""
Report file storage

Reports are only ever PDFs. store() validates the payload, writes it under a
fresh unique name and fsyncs before returning the handle, so a handle that
reaches the database always points at bytes on disk.
"""
import logging
import os
import uuid
from pathlib import Path
from typing import BinaryIO, Optional

from reportdesk.core.config import settings
from reportdesk.core.constants import PDF_CONTENT_TYPE, PDF_MAGIC
from reportdesk.core.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)

HANDLE_PREFIX = "/uploads/"


class FileStore:
    def store(self, data: bytes, content_type: Optional[str], filename: Optional[str] = None) -> str:
        raise NotImplementedError

    def open(self, handle: str) -> BinaryIO:
        raise NotImplementedError

    def exists(self, handle: str) -> bool:
        raise NotImplementedError


def validate_pdf(data: bytes, content_type: Optional[str], max_bytes: int) -> None:
    """
    Check an upload before it is written

    Raises:
        ValidationFailed: (field="file") wrong content type, empty, too large or not a PDF
    """
    if content_type != PDF_CONTENT_TYPE:
        raise ValidationFailed("Only PDF files are allowed", field="file")
    if not data:
        raise ValidationFailed("Uploaded file is empty", field="file")
    if len(data) > max_bytes:
        raise ValidationFailed(
            f"File too large: {len(data)} bytes (maximum {max_bytes} bytes)",
            field="file",
        )
    if not data.startswith(PDF_MAGIC):
        raise ValidationFailed("Uploaded file is not a valid PDF", field="file")


class LocalFileStore(FileStore):
    """Stores files in a local directory; handles look like /uploads/<name>"""

    def __init__(self, root: Optional[str] = None, max_bytes: Optional[int] = None):
        self.root = Path(root or settings.UPLOAD_DIR)
        self.max_bytes = max_bytes if max_bytes is not None else settings.MAX_UPLOAD_BYTES

    def _path(self, handle: str) -> Path:
        if not handle or not handle.startswith(HANDLE_PREFIX):
            raise NotFound("File not found")
        name = handle[len(HANDLE_PREFIX):]
        # Handles are flat names; anything path-like is not ours
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise NotFound("File not found")
        return self.root / name

    def store(self, data: bytes, content_type: Optional[str], filename: Optional[str] = None) -> str:
        validate_pdf(data, content_type, self.max_bytes)

        self.root.mkdir(parents=True, exist_ok=True)
        name = f"{uuid.uuid4().hex}.pdf"
        path = self.root / name
        with open(path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

        logger.info("stored report file name=%s size=%d original=%s", name, len(data), filename)
        return HANDLE_PREFIX + name

    def open(self, handle: str) -> BinaryIO:
        path = self._path(handle)
        if not path.is_file():
            raise NotFound("File not found")
        return path.open("rb")

    def exists(self, handle: str) -> bool:
        try:
            return self._path(handle).is_file()
        except NotFound:
            return False
