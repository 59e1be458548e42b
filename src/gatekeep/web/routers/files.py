from typing import Annotated

from fastapi import APIRouter, Header, UploadFile
from fastapi.responses import StreamingResponse

from gatekeep.core.modules.file.models import FileUpload
from gatekeep.core.modules.file.storage import iter_file_range, parse_byte_range
from gatekeep.web.deps import AccessTokenDep, AppDep, RequestIdDep
from gatekeep.web.openapi import ErrorResponse

router = APIRouter(tags=["files"])

CACHE_CONTROL = "max-age=3153600"


@router.post(
    "/files",
    summary="Upload files",
    description="Upload images or videos. Returns the public URL of each file, in upload order.",
    operation_id="uploadFiles",
    status_code=201,
    responses={
        201: {"description": "Files uploaded"},
        400: {"model": ErrorResponse, "description": "No files or file type not allowed"},
        401: {"model": ErrorResponse, "description": "Sign in required"},
        413: {"model": ErrorResponse, "description": "File is too large"},
    },
)
async def upload_files(
    files: list[UploadFile], app: AppDep, access_token: AccessTokenDep, request_id: RequestIdDep
) -> list[str]:
    uploads = [
        FileUpload(
            filename=file.filename or "unnamed",
            content=await file.read(),
            mime_type=file.content_type or "application/octet-stream",
        )
        for file in files
    ]
    return await app.upload_files(access_token, uploads, request_id=request_id)


@router.get(
    "/files/{file_name}",
    summary="Get file",
    description="Stream a file by its public name. A single `Range: bytes=...` header gets a 206 partial response.",
    operation_id="getFile",
    response_class=StreamingResponse,
    responses={
        200: {"description": "Whole file"},
        206: {"description": "Requested byte range"},
        404: {"model": ErrorResponse, "description": "File not found"},
        416: {"model": ErrorResponse, "description": "Range not satisfiable"},
    },
)
async def get_file(
    file_name: str,
    app: AppDep,
    request_id: RequestIdDep,
    range_header: Annotated[str | None, Header(alias="Range", description="Byte range, e.g. bytes=0-1023")] = None,
) -> StreamingResponse:
    stored = await app.get_file(file_name, request_id=request_id)
    byte_range = parse_byte_range(range_header, stored.size)
    start, end = byte_range if byte_range is not None else (0, stored.size - 1)

    headers = {
        "Accept-Ranges": "bytes",
        "Cache-Control": CACHE_CONTROL,
        "Content-Length": str(end - start + 1),
    }
    if byte_range is not None:
        headers["Content-Range"] = f"bytes {start}-{end}/{stored.size}"

    return StreamingResponse(
        iter_file_range(stored.file_path, start, end),
        status_code=206 if byte_range is not None else 200,
        media_type=stored.mime_type,
        headers=headers,
    )


@router.delete(
    "/files/{file_name}",
    summary="Delete file",
    description="Delete a file uploaded by the signed-in account.",
    operation_id="deleteFile",
    status_code=204,
    responses={
        204: {"description": "File deleted"},
        401: {"model": ErrorResponse, "description": "Sign in required"},
        403: {"model": ErrorResponse, "description": "File was uploaded by another account"},
        404: {"model": ErrorResponse, "description": "File not found"},
    },
)
async def delete_file(file_name: str, app: AppDep, access_token: AccessTokenDep, request_id: RequestIdDep) -> None:
    await app.delete_file(access_token, file_name, request_id=request_id)
