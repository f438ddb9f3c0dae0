"""Upload intake, expiry enforcement and response framing for shared files.

Lifecycle of a file as seen from here:

    upload() -> ACTIVE --retrieve() after expires_at--> EXPIRED -> deleted (GONE)
                  |
                  +----------------- remove() -------------------------> GONE

EXPIRED is only ever observed by the retrieval that triggers the cleanup.
Store failures surface as StorageUnavailable; nothing here retries a store
call except file_id allocation on a key collision.
"""
import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable
from urllib.parse import quote

from fileshare.errors import DuplicateKey, EmptyPayload, Expired, NotFound, PayloadTooLarge, StorageUnavailable
from fileshare.models.base import utcnow
from fileshare.models.file_record import FileRecord
from fileshare.services.identity_store import IdentityStore

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
MAX_ID_ATTEMPTS = 5

# Left unescaped in filenames on top of quote()'s letters, digits and -_.~
_FILENAME_SAFE = "!*'()"


class DeliveryMode(str, Enum):
    VIEW = "view"
    DOWNLOAD = "download"


@dataclass
class Delivery:
    """A framed file response: raw bytes plus the headers to send with them."""

    record: FileRecord
    content: bytes
    headers: dict[str, str] = field(default_factory=dict)


def generate_file_id() -> str:
    """128 bits from the OS CSPRNG as 32 hex characters."""
    return secrets.token_hex(16)


def content_disposition(disposition: str, filename: str) -> str:
    return f'{disposition}; filename="{quote(filename, safe=_FILENAME_SAFE)}"'


class DeliveryController:
    def __init__(
        self,
        store: IdentityStore,
        ttl_seconds: int = 86400,
        max_upload_bytes: int = 50 * 1024 * 1024,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = generate_file_id,
    ):
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_upload_bytes = max_upload_bytes
        self.clock = clock
        self.id_factory = id_factory

    async def upload(
        self,
        file_bytes: bytes | None,
        original_name: str,
        mime_type: str | None,
        size_bytes: int,
    ) -> FileRecord:
        """Store a new file and return its record.

        ``file_bytes=None`` means no file was sent at all; empty bytes are a
        valid zero-byte file.
        """
        if file_bytes is None:
            raise EmptyPayload()
        if size_bytes > self.max_upload_bytes:
            raise PayloadTooLarge(
                f"File exceeds the maximum upload size of {self.max_upload_bytes} bytes"
            )
        if size_bytes != len(file_bytes):
            raise ValueError(f"size_bytes={size_bytes} does not match payload length {len(file_bytes)}")

        uploaded_at = self.clock()
        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            record = FileRecord(
                file_id=self.id_factory(),
                original_name=original_name or "unnamed",
                mime_type=mime_type or DEFAULT_MIME_TYPE,
                size_bytes=size_bytes,
                content=file_bytes,
                uploaded_at=uploaded_at,
                expires_at=uploaded_at + self.ttl,
            )
            try:
                await self.store.create(record)
            except DuplicateKey:
                logger.warning(f"file_id collision on attempt {attempt}/{MAX_ID_ATTEMPTS}, regenerating")
                continue
            logger.info(
                "Stored file %s (%s, %d bytes, expires %s)",
                record.file_id, record.original_name, size_bytes, record.expires_at.isoformat(),
            )
            return record

        logger.error("Could not allocate a unique file_id after %d attempts", MAX_ID_ATTEMPTS)
        raise StorageUnavailable(f"Could not allocate a unique file id after {MAX_ID_ATTEMPTS} attempts")

    async def retrieve(self, file_id: str, mode: DeliveryMode) -> Delivery:
        """Frame a file for inline viewing or forced download.

        Raises NotFound for unknown ids and Expired (after evicting the
        record) once ``expires_at`` has passed.
        """
        record = await self._find_active(file_id, expired_error=Expired)
        content = await self.store.load_content(record)
        if len(content) != record.size_bytes:
            logger.error(
                "Stored content for %s is %d bytes, expected %d",
                file_id, len(content), record.size_bytes,
            )
            raise StorageUnavailable(f"Stored content for {file_id} is inconsistent")

        if mode is DeliveryMode.VIEW:
            headers = {
                "Content-Type": record.mime_type,
                "Content-Disposition": content_disposition("inline", record.original_name),
            }
        else:
            headers = {
                "Content-Type": DEFAULT_MIME_TYPE,
                "Content-Disposition": content_disposition("attachment", record.original_name),
                "Content-Length": str(record.size_bytes),
            }
        return Delivery(record=record, content=content, headers=headers)

    async def describe(self, file_id: str) -> FileRecord:
        """Metadata for an active file. Expired files are evicted and reported NotFound."""
        return await self._find_active(file_id, expired_error=NotFound)

    async def list_all(self) -> list[FileRecord]:
        """Every stored record, newest first. Expired ones are not filtered out."""
        return await self.store.list_all()

    async def remove(self, file_id: str) -> None:
        if not await self.store.delete_by_id(file_id):
            raise NotFound()
        logger.info("Deleted file %s", file_id)

    async def _find_active(self, file_id: str, expired_error: type[Exception]) -> FileRecord:
        record = await self.store.find_by_id(file_id)
        if record is None:
            raise NotFound()
        if record.is_expired(self.clock()):
            await self._evict(file_id)
            raise expired_error()
        return record

    async def _evict(self, file_id: str) -> None:
        """Best-effort removal of an expired record; failures are only logged."""
        try:
            deleted = await self.store.delete_by_id(file_id)
        except StorageUnavailable as e:
            logger.warning("Failed to evict expired file %s: %s", file_id, e)
            return
        if deleted:
            logger.info("Evicted expired file %s", file_id)
        else:
            logger.debug("Expired file %s was already evicted", file_id)
