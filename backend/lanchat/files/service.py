"""Upload storage service.

Handles storing uploaded blobs on disk.
Files are stored in: {upload_dir}/{uuid}-{original name}
"""
import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional

from .schemas import StoredUpload

logger = logging.getLogger(__name__)

# Default upload limit: 50MB
MAX_FILE_SIZE_BYTES = 50 * 1024 * 1024


def safe_basename(filename: Optional[str]) -> str:
    """Strip any directory components a client put in the filename."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    if name in ("", ".", ".."):
        return "unnamed"
    return name


class UploadStorage:
    """Stores uploaded files in a single flat directory.

    Args:
        upload_dir: Directory files are written to. Created on first upload.
        url_prefix: URL path the directory is served under.
        max_file_size_bytes: Uploads larger than this are rejected.
    """

    def __init__(
        self,
        upload_dir: str = "uploads",
        url_prefix: str = "/uploads",
        max_file_size_bytes: int = MAX_FILE_SIZE_BYTES,
    ) -> None:
        self.upload_dir = Path(upload_dir)
        self.url_prefix = "/" + url_prefix.strip("/")
        self.max_file_size_bytes = max_file_size_bytes

    def _ensure_upload_dir(self) -> None:
        """Ensure the upload directory exists."""
        self.upload_dir.mkdir(parents=True, exist_ok=True)

    async def save_file(self, filename: Optional[str], content: bytes) -> StoredUpload:
        """Write an uploaded file to disk under a unique name.

        Args:
            filename: Original filename as sent by the client.
            content: File content as bytes.

        Returns:
            StoredUpload with the stored name and retrieval URL.

        Raises:
            ValueError: If the file exceeds the size limit.
        """
        size = len(content)
        if size > self.max_file_size_bytes:
            raise ValueError(
                f"File size ({size} bytes) exceeds limit "
                f"({self.max_file_size_bytes} bytes)"
            )

        originalname = safe_basename(filename)
        stored_filename = f"{uuid.uuid4()}-{originalname}"

        self._ensure_upload_dir()
        file_path = self.upload_dir / stored_filename
        file_path.write_bytes(content)
        logger.info(f"Saved file: {file_path} ({size} bytes)")

        return StoredUpload(
            filename=stored_filename,
            originalname=originalname,
            size=size,
            url=f"{self.url_prefix}/{stored_filename}",
        )

    def get_file_path(self, stored_filename: str) -> Optional[Path]:
        """Get the path on disk for a stored filename, if it exists."""
        if safe_basename(stored_filename) != stored_filename:
            return None
        file_path = self.upload_dir / stored_filename
        if not file_path.is_file():
            return None
        return file_path
