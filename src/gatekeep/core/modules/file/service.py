from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from gatekeep.core.core import Service
from gatekeep.core.db import Txn
from gatekeep.core.modules.file.models import FileUpload, StoredFile, UploadDetail
from gatekeep.core.modules.file.storage import file_extension, get_file_path, write_file
from gatekeep.errors import (
    AccessDeniedError,
    FileTooLargeError,
    NotFoundError,
    UnsupportedFileTypeError,
    ValidationError,
)

logger = structlog.get_logger(__name__)

ALLOWED_MIME_TYPES = frozenset(
    {
        "image/png",
        "image/jpeg",
        "image/jpg",
        "image/gif",
        "image/webp",
        "video/mp4",
        "video/mov",
        "video/webm",
        "video/quicktime",
    }
)


def file_id_from_name(file_name: str) -> UUID:
    """Extract the file id from a public file name ("<id><extension>").

    Raises:
        NotFoundError: If the name does not start with a file id
    """
    try:
        return UUID(Path(file_name).stem)
    except ValueError as e:
        raise NotFoundError("File not found") from e


class FileService(Service):
    """Stores uploaded files on disk and their upload details in MongoDB."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        super().__init__(database)
        self._collection = database.get_collection("upload_details")

    async def on_start(self) -> None:
        """Create indexes on startup."""
        await self._collection.create_index([("account_id", 1)])
        await self._collection.create_index([("created_at", -1)])

    async def upload_files(self, account_id: UUID, files: list[FileUpload], txn: Txn = None) -> list[UploadDetail]:
        """Validate and store files uploaded by an account.

        Every file is validated before anything is written. If storing one file fails,
        the files already written by this call are removed again.

        Raises:
            ValidationError: If no file is given
            UnsupportedFileTypeError: If a file type is not allowed
            FileTooLargeError: If a file exceeds the upload limit
        """
        if not files:
            raise ValidationError("No files to upload")
        for upload in files:
            self._validate(upload)

        files_path = self.core.config.files_path
        details: list[UploadDetail] = []
        written: list[Path] = []
        try:
            for upload in files:
                file_id = uuid4()
                detail = UploadDetail(
                    id=file_id,
                    account_id=account_id,
                    filename=f"{file_id}{file_extension(upload.filename)}",
                    original_filename=upload.filename,
                    size=len(upload.content),
                    mime_type=upload.mime_type.lower(),
                )
                written.append(write_file(files_path, detail.filename, upload.content))
                await self._collection.insert_one(detail.to_mongo(), session=txn)
                details.append(detail)
        except Exception:
            for file_path in written:
                file_path.unlink(missing_ok=True)
            raise

        logger.debug("files_stored", account_id=account_id, file_ids=[d.id for d in details])
        return details

    async def get_upload_detail(self, file_id: UUID, txn: Txn = None) -> UploadDetail:
        doc = await self._collection.find_one({"_id": file_id}, session=txn)
        if doc is None:
            raise NotFoundError("File not found")
        return UploadDetail.model_validate(doc)

    async def get_stored_file(self, file_id: UUID) -> StoredFile:
        """Get what is needed to stream a file.

        Raises:
            NotFoundError: If the upload detail or the file on disk is missing
        """
        detail = await self.get_upload_detail(file_id)
        file_path = get_file_path(self.core.config.files_path, detail.filename)
        if not file_path.exists():
            logger.warning("file_missing_on_disk", file_id=file_id, path=str(file_path))
            raise NotFoundError("File not found")
        return StoredFile(file_path=file_path, mime_type=detail.mime_type, size=detail.size)

    async def delete_upload_detail(self, account_id: UUID, file_id: UUID, txn: Txn = None) -> UploadDetail:
        """Delete the upload detail of a file. The file on disk is left to remove_from_disk.

        Raises:
            NotFoundError: If the file does not exist
            AccessDeniedError: If the account did not upload the file
        """
        detail = await self.get_upload_detail(file_id, txn=txn)
        if detail.account_id != account_id:
            raise AccessDeniedError("Only the uploader can delete a file")
        await self._collection.delete_one({"_id": file_id}, session=txn)
        return detail

    def remove_from_disk(self, detail: UploadDetail) -> None:
        get_file_path(self.core.config.files_path, detail.filename).unlink(missing_ok=True)
        logger.debug("file_removed", file_id=detail.id)

    def _validate(self, upload: FileUpload) -> None:
        if upload.mime_type.lower() not in ALLOWED_MIME_TYPES:
            raise UnsupportedFileTypeError(f"File type is not allowed: {upload.mime_type}")
        if len(upload.content) > self.core.config.max_upload_bytes:
            raise FileTooLargeError
