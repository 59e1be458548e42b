from datetime import datetime
from pathlib import Path
from uuid import UUID

from pydantic import BaseModel, Field

from gatekeep.core.db import MongoModel
from gatekeep.utils import now


class UploadDetail(MongoModel):
    """Metadata of an uploaded file. The file itself lives on disk under `filename`."""

    account_id: UUID  # Uploader
    filename: str  # Stored name: "<id><extension>"
    original_filename: str
    size: int  # File size in bytes
    mime_type: str
    created_at: datetime = Field(default_factory=now)


class FileUpload(BaseModel):
    """One file received from the client."""

    filename: str
    content: bytes
    mime_type: str


class StoredFile(BaseModel):
    """Information needed to stream a stored file."""

    file_path: Path = Field(..., description="Absolute path to file on disk")
    mime_type: str = Field(..., description="MIME type")
    size: int = Field(..., description="File size in bytes")
