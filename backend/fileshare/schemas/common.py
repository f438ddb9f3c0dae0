"""Shared Pydantic schemas."""
from typing import Optional

from fileshare.schemas.base import CamelModel


class DeleteResponse(CamelModel):
    success: bool = True
    message: str = "File deleted successfully"


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    code: str
    detail: Optional[str] = None
