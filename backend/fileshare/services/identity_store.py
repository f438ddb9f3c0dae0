"""Durable, key-addressed storage of FileRecord.

The store is a dumb persistence layer: it never interprets expiry on reads
and never retries. Uniqueness comes from the primary-key constraint. Every
call is bounded by ``timeout`` and any driver, filesystem or timeout failure
is reported as StorageUnavailable.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fileshare.errors import DuplicateKey, NotFound, StorageUnavailable
from fileshare.models.file_record import FileRecord
from fileshare.services.blob_storage import LocalBlobStorage

logger = logging.getLogger(__name__)


class IdentityStore:
    """FileRecord persistence over an async SQLAlchemy session factory.

    With ``blob_storage`` set, bytes go to the blob store and the row keeps
    only ``storage_path``. Creation writes the blob first and removes it if
    the row can't be written; deletion removes the row first and tolerates a
    failed blob delete.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        blob_storage: LocalBlobStorage | None = None,
        timeout: float = 10.0,
    ):
        self.session_factory = session_factory
        self.blob_storage = blob_storage
        self.timeout = timeout

    @asynccontextmanager
    async def _guard(self, operation: str):
        try:
            async with asyncio.timeout(self.timeout):
                yield
        except TimeoutError as e:
            logger.error("Store %s timed out after %.1fs", operation, self.timeout)
            raise StorageUnavailable(f"{operation} timed out after {self.timeout}s") from e
        except (SQLAlchemyError, OSError) as e:
            logger.error("Store %s failed: %s", operation, e)
            raise StorageUnavailable(f"{operation} failed: {e}") from e

    async def create(self, record: FileRecord) -> None:
        """Insert a new record. Raises DuplicateKey if file_id is taken."""
        storage_path = None
        if self.blob_storage is not None:
            async with self._guard("blob save"):
                storage_path = await self.blob_storage.save(record.content or b"")
            record.storage_path = storage_path
            record.content = None

        try:
            async with self._guard("create"):
                async with self.session_factory() as session:
                    session.add(record)
                    try:
                        await session.commit()
                    except IntegrityError as e:
                        await session.rollback()
                        raise DuplicateKey(f"file_id {record.file_id} already exists") from e
        except (DuplicateKey, StorageUnavailable):
            if storage_path is not None:
                await self._discard_blob(storage_path)
            raise

    async def find_by_id(self, file_id: str) -> FileRecord | None:
        """Return the record's metadata regardless of expiry, or None."""
        async with self._guard("find"):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(FileRecord).where(FileRecord.file_id == file_id)
                )
                return result.scalar_one_or_none()

    async def load_content(self, record: FileRecord) -> bytes:
        """Read the bytes belonging to a record found earlier.

        Raises NotFound if the record vanished in between.
        """
        if record.storage_path:
            if self.blob_storage is None:
                raise StorageUnavailable("Blob storage is not configured")
            async with self._guard("blob read"):
                try:
                    return await self.blob_storage.read(record.storage_path)
                except FileNotFoundError as e:
                    raise NotFound() from e

        async with self._guard("load content"):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(FileRecord.content).where(FileRecord.file_id == record.file_id)
                )
                row = result.first()
        if row is None:
            raise NotFound()
        return row.content or b""

    async def delete_by_id(self, file_id: str) -> bool:
        """Delete a record. Returns False when there was nothing to delete."""
        async with self._guard("delete"):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(FileRecord.storage_path).where(FileRecord.file_id == file_id)
                )
                row = result.first()
                if row is None:
                    return False
                deleted = await session.execute(
                    delete(FileRecord).where(FileRecord.file_id == file_id)
                )
                await session.commit()

        # A concurrent delete may have won between the select and the delete
        if deleted.rowcount == 0:
            return False
        if row.storage_path:
            await self._discard_blob(row.storage_path)
        return True

    async def list_all(self) -> list[FileRecord]:
        """All records newest first. Content is never loaded."""
        async with self._guard("list"):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(FileRecord).order_by(FileRecord.uploaded_at.desc())
                )
                return list(result.scalars().all())

    async def delete_expired(self, now: datetime) -> int:
        """Delete every record with expires_at <= now. Returns the count."""
        async with self._guard("delete expired"):
            async with self.session_factory() as session:
                result = await session.execute(
                    select(FileRecord.file_id, FileRecord.storage_path).where(
                        FileRecord.expires_at <= now
                    )
                )
                rows = result.all()
                if not rows:
                    return 0
                await session.execute(
                    delete(FileRecord).where(
                        FileRecord.file_id.in_([r.file_id for r in rows])
                    )
                )
                await session.commit()

        for row in rows:
            if row.storage_path:
                await self._discard_blob(row.storage_path)
        return len(rows)

    async def _discard_blob(self, storage_path: str) -> None:
        try:
            await self.blob_storage.delete(storage_path)
        except OSError as e:
            logger.warning("Failed to delete blob %s: %s", storage_path, e)
