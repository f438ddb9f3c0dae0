"""Files API routes."""
from fastapi import APIRouter, Depends, File as FastAPIFile, Request, UploadFile
from fastapi.responses import Response

from fileshare.models.file_record import FileRecord
from fileshare.schemas.common import DeleteResponse
from fileshare.schemas.file import FileDetailResponse, FileListResponse, FileSummary, UploadResponse
from fileshare.services.delivery import DeliveryController, DeliveryMode

router = APIRouter(prefix="/api/files", tags=["files"])


def get_controller(request: Request) -> DeliveryController:
    """FastAPI dependency returning the process-wide controller."""
    return request.app.state.controller


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload_file(
    request: Request,
    file: UploadFile | str | None = FastAPIFile(None),
    controller: DeliveryController = Depends(get_controller),
):
    """Upload a file (multipart field ``file``) and return its share links."""
    # A plain-text "file" field carries no file content
    if isinstance(file, str):
        file = None

    contents = None
    if file is not None:
        # The part is already spooled by the multipart parser; only the
        # in-memory copy is capped, one byte past the ceiling
        contents = await file.read(controller.max_upload_bytes + 1)

    record = await controller.upload(
        contents,
        original_name=file.filename if file is not None else "",
        mime_type=file.content_type if file is not None else None,
        size_bytes=len(contents) if contents is not None else 0,
    )
    return UploadResponse(**_to_summary(record, request).model_dump())


@router.get("", response_model=FileListResponse)
async def list_files(
    request: Request,
    controller: DeliveryController = Depends(get_controller),
):
    """List all files, newest first."""
    records = await controller.list_all()
    return FileListResponse(files=[_to_summary(r, request) for r in records])


@router.get("/view/{file_id}")
async def view_file(
    file_id: str,
    controller: DeliveryController = Depends(get_controller),
):
    """Serve file bytes for display in the browser."""
    delivery = await controller.retrieve(file_id, DeliveryMode.VIEW)
    return Response(content=delivery.content, headers=delivery.headers)


@router.get("/download/{file_id}")
async def download_file(
    file_id: str,
    controller: DeliveryController = Depends(get_controller),
):
    """Serve file bytes as an attachment."""
    delivery = await controller.retrieve(file_id, DeliveryMode.DOWNLOAD)
    return Response(content=delivery.content, headers=delivery.headers)


@router.get("/{file_id}", response_model=FileDetailResponse)
async def get_file_metadata(
    file_id: str,
    request: Request,
    controller: DeliveryController = Depends(get_controller),
):
    """Get file metadata by ID."""
    record = await controller.describe(file_id)
    return FileDetailResponse(file=_to_summary(record, request))


@router.delete("/{file_id}", response_model=DeleteResponse)
async def delete_file(
    file_id: str,
    controller: DeliveryController = Depends(get_controller),
):
    """Delete a file and its record."""
    await controller.remove(file_id)
    return DeleteResponse()


def _to_summary(record: FileRecord, request: Request) -> FileSummary:
    return FileSummary(
        file_id=record.file_id,
        name=record.original_name,
        size=record.size_bytes,
        mime_type=record.mime_type,
        uploaded_at=record.uploaded_at,
        expires_at=record.expires_at,
        view_url=str(request.url_for("view_file", file_id=record.file_id)),
        download_url=str(request.url_for("download_file", file_id=record.file_id)),
    )
