"""
Read-only Proxy Routes - Newest rows of selected tables for external tools.

Authenticated with the shared read-only key; never writes.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import require_read_only_api_key
from app.config import settings
from app.db.models import Client, Device
from app.db.session import get_read_db
from app.models.api import ClientReadResponse, DeviceReadResponse, ReadableTable
from app.services.csv_export import to_csv

router = APIRouter(
    prefix="/v1/read",
    tags=["read-proxy"],
    dependencies=[Depends(require_read_only_api_key)],
)

_TABLES: dict[ReadableTable, tuple[type, type[BaseModel]]] = {
    ReadableTable.DEVICES: (Device, DeviceReadResponse),
    ReadableTable.CLIENTS: (Client, ClientReadResponse),
}


async def _fetch_rows(db: AsyncSession, table: ReadableTable) -> list[BaseModel]:
    orm_model, response_model = _TABLES[table]
    rows = (
        await db.execute(
            select(orm_model)
            .order_by(orm_model.created_at.desc())
            .limit(settings.read_proxy_limit)
        )
    ).scalars().all()
    return [response_model.model_validate(row) for row in rows]


@router.get("/{table}", response_model=list[DeviceReadResponse] | list[ClientReadResponse])
async def read_table(
    table: ReadableTable,
    db: AsyncSession = Depends(get_read_db),
) -> list[BaseModel]:
    """Newest rows of a readable table, at most READ_PROXY_LIMIT."""
    return await _fetch_rows(db, table)


@router.get("/{table}/export", response_class=PlainTextResponse)
async def export_table(
    table: ReadableTable,
    db: AsyncSession = Depends(get_read_db),
) -> PlainTextResponse:
    """Same rows as the JSON read, rendered as CSV."""
    _, response_model = _TABLES[table]
    rows = await _fetch_rows(db, table)
    return PlainTextResponse(
        to_csv(
            [row.model_dump(mode="json") for row in rows],
            columns=list(response_model.model_fields),
        ),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{table.value}.csv"'},
    )
