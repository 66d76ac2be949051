"""
Import Service - Persist de-duplicated CSV rows and record the import job.
"""

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from app.db.models import CarTracker, Client, Device, ImportJob
from app.exceptions import ImportFormatError
from app.models.api import ImportEntity
from app.models.domain import ImportResult
from app.services.csv_import import import_car_trackers, import_clients

logger = get_logger(__name__)


def decode_upload(content: bytes) -> str:
    """Decode an uploaded file as UTF-8, tolerating a byte-order mark."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ImportFormatError(f"file is not valid UTF-8 text: {e.reason}") from e


class ImportService:
    """
    CSV import into the hosted database.

    Each row is inserted inside a savepoint so one failing row does not
    roll back the rows already accepted.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize import service with database session."""
        self.session = session

    async def import_file(
        self,
        entity: ImportEntity,
        file_name: str,
        text: str,
        created_by: UUID | None = None,
    ) -> ImportResult:
        """Import one CSV file for a supported entity and record a completed import job."""
        if entity == ImportEntity.CAR_TRACKERS:
            result = await import_car_trackers(text, self._insert_car_tracker)
        elif entity == ImportEntity.CLIENTS:
            result = await import_clients(text, self._insert_client)
        else:
            raise ImportFormatError(f"import of {entity.value} is not supported")

        self.session.add(
            ImportJob(
                source_file=file_name,
                entity_type=entity.value,
                total_rows=result.processed,
                success_rows=result.success,
                failed_rows=result.failed,
                status="completed",
                created_by=created_by,
            )
        )
        await self.session.commit()

        logger.info(
            "import_job_recorded",
            entity=entity.value,
            file_name=file_name,
            total_rows=result.processed,
        )
        return result

    async def _insert_car_tracker(self, device: dict[str, Any], detail: dict[str, Any]) -> None:
        async with self.session.begin_nested():
            row = Device(**device)
            self.session.add(row)
            await self.session.flush()
            self.session.add(CarTracker(device_id=row.id, **detail))
            await self.session.flush()

    async def _insert_client(self, client: dict[str, Any]) -> None:
        async with self.session.begin_nested():
            self.session.add(Client(**client))
            await self.session.flush()
