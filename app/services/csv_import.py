"""
CSV Import - Parse, de-duplicate and map uploaded rows to insert payloads.

Persistence is delegated to an async on_insert callback so the same
pipeline serves the database-backed ImportService and tests.
"""

import csv
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from structlog import get_logger

from app.models.api import ImportEntity
from app.models.domain import DedupResult, ImportResult, ImportRowError

logger = get_logger(__name__)

CAR_TRACKER_COLUMNS = (
    "name",
    "brand",
    "model",
    "sim_number",
    "user_tel",
    "vehicle_model",
    "reg_number",
    "color",
    "identifier",
    "server",
    "port",
    "imei",
    "pwd",
    "email",
    "install_date",
    "sms_notification",
    "remote_cut_off",
    "last_top_up",
    "status",
    "location",
    "notes",
)

CLIENT_COLUMNS = (
    "name",
    "industry",
    "contact_name",
    "email",
    "phone",
    "address",
    "billing_address",
    "tax_number",
    "notes",
)

SUBSCRIPTION_COLUMNS = (
    "client_name",
    "plan_name",
    "billing_cycle",
    "amount",
    "currency",
    "start_date",
    "end_date",
    "next_invoice_date",
    "status",
    "device_identifier",
    "notes",
)

PROVIDER_PAYMENT_COLUMNS = (
    "provider_name",
    "device_identifier",
    "amount",
    "currency",
    "due_at",
    "description",
    "service_period_start",
    "service_period_end",
)

# Joins cells into the exact-content key; not expected inside CSV data.
ROW_KEY_DELIMITER = "\x01"

_TRUTHY = frozenset({"1", "true", "yes", "y"})
_WHITESPACE = re.compile(r"\s+")

Row = Sequence[str]
RowRecord = dict[str, str]


def parse_csv(text: str) -> list[list[str]]:
    """Split CSV text into trimmed cells, dropping blank lines."""
    lines = [line for line in re.split(r"\r?\n", text) if line.strip()]
    return [[cell.strip() for cell in row] for row in csv.reader(lines)]


def normalize_header(header: str) -> str:
    """Lower-case a header and collapse whitespace runs to underscores."""
    return _WHITESPACE.sub("_", header.strip().lower())


def row_to_record(headers: Sequence[str], row: Row) -> RowRecord:
    """Map headers to trimmed cells; missing trailing cells become empty strings."""
    return {
        header: (row[i].strip() if i < len(row) else "") for i, header in enumerate(headers)
    }


def _first_key(record: RowRecord, *columns: str) -> str | None:
    # The first column present in the header decides; a blank cell gives no key.
    for column in columns:
        if column in record:
            return record[column].strip().lower() or None
    return None


def car_tracker_business_key(record: RowRecord) -> str | None:
    """Identifier column, else IMEI, else name; lower-cased."""
    return _first_key(record, "identifier", "imei", "name")


def client_business_key(record: RowRecord) -> str | None:
    """Email column, else name; lower-cased."""
    return _first_key(record, "email", "name")


def deduplicate_rows(
    rows: Sequence[Row],
    get_business_key: Callable[[Row], str | None],
    first_line: int = 2,
) -> DedupResult:
    """
    Drop duplicate data rows; the first occurrence wins.

    A row is a duplicate when its exact content was already seen, or when
    its business key is non-empty and was already seen. Rows without a
    business key are only caught as exact-content duplicates. Accepted rows
    keep their input order and carry their line number in the file
    (first_line is the line of rows[0]; 2 when a header precedes them).
    """
    content_seen: set[str] = set()
    business_key_seen: set[str] = set()
    unique_rows: list[tuple[tuple[str, ...], int]] = []
    skipped = 0

    for offset, row in enumerate(rows):
        content_key = ROW_KEY_DELIMITER.join(row)
        if content_key in content_seen:
            skipped += 1
            continue
        business_key = get_business_key(row)
        if business_key and business_key in business_key_seen:
            skipped += 1
            continue
        content_seen.add(content_key)
        if business_key:
            business_key_seen.add(business_key)
        unique_rows.append((tuple(row), first_line + offset))

    return DedupResult(unique_rows=tuple(unique_rows), skipped=skipped)


def _optional(record: RowRecord, column: str) -> str | None:
    return record.get(column) or None


def _flag(record: RowRecord, column: str) -> bool:
    return record.get(column, "").lower() in _TRUTHY


def build_car_tracker(record: RowRecord, line: int) -> tuple[dict[str, Any], dict[str, Any]]:
    """Map an import row to the device payload and its car-tracker detail payload."""
    status = _WHITESPACE.sub("_", (record.get("status") or "in_stock").lower()) or "in_stock"
    device = {
        "device_type": "car_tracker",
        "name": record.get("name") or record.get("identifier") or f"Tracker {line}",
        "status": status,
        "identifier": _optional(record, "identifier"),
        "location": _optional(record, "location"),
        "notes": _optional(record, "notes"),
    }
    detail = {
        "brand": _optional(record, "brand"),
        "model": _optional(record, "model"),
        "sim_number": _optional(record, "sim_number"),
        "user_tel": _optional(record, "user_tel"),
        "vehicle_model": _optional(record, "vehicle_model"),
        "reg_number": _optional(record, "reg_number"),
        "color": _optional(record, "color"),
        "server": _optional(record, "server"),
        "port": _optional(record, "port"),
        "imei": _optional(record, "imei"),
        "pwd": _optional(record, "pwd"),
        "email": _optional(record, "email"),
        "install_date": _optional(record, "install_date"),
        "sms_notification": _flag(record, "sms_notification"),
        "remote_cut_off": _flag(record, "remote_cut_off"),
        "last_top_up": _optional(record, "last_top_up"),
    }
    return device, detail


def build_client(record: RowRecord, line: int) -> dict[str, Any]:
    """Map an import row to the client payload; name falls back to the email local part."""
    email = record.get("email", "")
    name_from_email = email.split("@")[0].strip() if "@" in email else None
    return {
        "name": record.get("name", "").strip() or name_from_email or f"Client {line}",
        "industry": _optional(record, "industry"),
        "contact_name": _optional(record, "contact_name"),
        "email": _optional(record, "email"),
        "phone": _optional(record, "phone"),
        "address": _optional(record, "address"),
        "billing_address": _optional(record, "billing_address"),
        "tax_number": _optional(record, "tax_number"),
        "notes": _optional(record, "notes"),
    }


async def _run_import(
    entity: ImportEntity,
    text: str,
    business_key: Callable[[RowRecord], str | None],
    insert_row: Callable[[RowRecord, int], Awaitable[None]],
) -> ImportResult:
    rows = parse_csv(text)
    if len(rows) < 2:
        return ImportResult()

    headers = [normalize_header(h) for h in rows[0]]
    deduped = deduplicate_rows(
        rows[1:], lambda row: business_key(row_to_record(headers, row))
    )

    success = 0
    errors: list[ImportRowError] = []
    for row, line in deduped.unique_rows:
        try:
            await insert_row(row_to_record(headers, row), line)
        except Exception as e:
            logger.warning("csv_import_row_failed", entity=entity.value, row=line, error=str(e))
            errors.append(ImportRowError(row=line, message=str(e)))
        else:
            success += 1

    result = ImportResult(
        total=len(deduped.unique_rows),
        success=success,
        failed=len(errors),
        skipped=deduped.skipped,
        errors=tuple(errors),
    )
    logger.info(
        "csv_import_completed",
        entity=entity.value,
        total=result.total,
        success=result.success,
        failed=result.failed,
        skipped=result.skipped,
    )
    return result


async def import_car_trackers(
    text: str,
    on_insert: Callable[[dict[str, Any], dict[str, Any]], Awaitable[None]],
) -> ImportResult:
    """Import car trackers; on_insert receives the device and detail payloads."""

    async def insert_row(record: RowRecord, line: int) -> None:
        device, detail = build_car_tracker(record, line)
        await on_insert(device, detail)

    return await _run_import(
        ImportEntity.CAR_TRACKERS, text, car_tracker_business_key, insert_row
    )


async def import_clients(
    text: str,
    on_insert: Callable[[dict[str, Any]], Awaitable[None]],
) -> ImportResult:
    """Import clients; on_insert receives the client payload."""

    async def insert_row(record: RowRecord, line: int) -> None:
        await on_insert(build_client(record, line))

    return await _run_import(ImportEntity.CLIENTS, text, client_business_key, insert_row)


def get_import_template(entity: ImportEntity) -> str:
    """Header line for an entity's import file."""
    columns = {
        ImportEntity.CAR_TRACKERS: CAR_TRACKER_COLUMNS,
        ImportEntity.CLIENTS: CLIENT_COLUMNS,
        ImportEntity.SUBSCRIPTIONS: SUBSCRIPTION_COLUMNS,
        ImportEntity.PROVIDER_PAYMENTS: PROVIDER_PAYMENT_COLUMNS,
    }.get(entity)
    if columns is None:
        return ""
    return ",".join(columns) + "\n"
