"""Pydantic schemas for the upload endpoint.

Uploaded objects are stored flat in the upload directory as
``<uuid>-<original name>`` and served back statically, so clients can
relay the returned URL inside imageMessage / fileMessage events.
"""
from pydantic import BaseModel, Field


class StoredUpload(BaseModel):
    """Result of storing an uploaded blob.

    Attributes:
        filename: Name on disk (UUID-prefixed, unique).
        originalname: Name the client uploaded the file under.
        size: File size in bytes.
        url: Path the stored object can be retrieved from.
    """
    filename: str = Field(..., description="Stored filename (UUID-prefixed)")
    originalname: str = Field(..., description="Original filename")
    size: int = Field(..., description="File size in bytes")
    url: str = Field(..., description="URL path to retrieve the file")
