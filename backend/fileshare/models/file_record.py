"""FileRecord model - file metadata plus the bytes themselves.

Bytes live in ``content`` by default. With blob storage enabled they live
on disk at ``storage_path`` and ``content`` stays NULL.
"""
from datetime import datetime

from sqlalchemy import BigInteger, Index, LargeBinary, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fileshare.models.base import Base, UTCDateTime


class FileRecord(Base):
    __tablename__ = "files"

    file_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    original_name: Mapped[str] = mapped_column(Text, nullable=False)
    mime_type: Mapped[str] = mapped_column(Text, nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content: Mapped[bytes | None] = mapped_column(LargeBinary, nullable=True, deferred=True)
    storage_path: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        Index("ix_files_uploaded_at", "uploaded_at"),
        Index("ix_files_expires_at", "expires_at"),
    )

    def is_expired(self, now: datetime) -> bool:
        """Reachable only while ``now`` is strictly before ``expires_at``."""
        return now >= self.expires_at

    def __repr__(self):
        return f"<FileRecord(file_id={self.file_id}, original_name={self.original_name})>"
