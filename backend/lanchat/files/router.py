"""FastAPI router for file upload endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse

from .schemas import StoredUpload
from .service import UploadStorage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


def get_upload_storage(request: Request) -> UploadStorage:
    return request.app.state.upload_storage


@router.post("/upload", response_model=StoredUpload)
async def upload_file(
    request: Request,
    file: Optional[UploadFile] = File(None),
) -> StoredUpload:
    """Store a single uploaded file.

    The returned URL is what clients put in imageMessage / fileMessage
    events. A failed upload never reaches the chat.

    Args:
        file: The uploaded file (multipart field "file").

    Returns:
        StoredUpload with stored name, original name, size and URL.

    Raises:
        HTTPException 400: If no file was sent
        HTTPException 413: If the file exceeds the size limit
        HTTPException 500: If writing the file fails
    """
    if file is None:
        raise HTTPException(status_code=400, detail="No file uploaded")

    storage = get_upload_storage(request)
    content = await file.read()

    try:
        stored = await storage.save_file(file.filename, content)
    except ValueError as e:
        raise HTTPException(status_code=413, detail=str(e))
    except OSError as e:
        logger.error(f"[Upload] Failed to store {file.filename}: {e}")
        raise HTTPException(status_code=500, detail=f"Upload failed: {str(e)}")

    logger.info(f"[Upload] {stored.originalname} ({stored.size} bytes) -> {stored.url}")
    return stored


@router.get("/uploads/{filename}")
async def download_file(request: Request, filename: str) -> FileResponse:
    """Serve a previously uploaded file.

    Raises:
        HTTPException 404: If the file does not exist
    """
    file_path = get_upload_storage(request).get_file_path(filename)
    if file_path is None:
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(path=file_path)
