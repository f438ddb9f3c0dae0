"""File response schemas."""
from datetime import datetime

from fileshare.schemas.base import CamelModel


class FileSummary(CamelModel):
    file_id: str
    name: str
    size: int
    mime_type: str
    uploaded_at: datetime
    expires_at: datetime
    view_url: str
    download_url: str


class UploadResponse(FileSummary):
    success: bool = True


class FileListResponse(CamelModel):
    success: bool = True
    files: list[FileSummary]


class FileDetailResponse(CamelModel):
    success: bool = True
    file: FileSummary
