from __future__ import annotations

from datetime import date

from app.models import EntryType
from app.services.export_service import ReportFormat


def parse_date_range(start_raw: str | None, end_raw: str | None) -> tuple[date, date]:
    start_raw = (start_raw or '').strip()
    end_raw = (end_raw or '').strip()
    if not start_raw or not end_raw:
        raise ValueError('Start date and end date are required')
    try:
        # Accept full ISO timestamps but only keep the calendar day.
        start_date = date.fromisoformat(start_raw[:10])
        end_date = date.fromisoformat(end_raw[:10])
    except ValueError as exc:
        raise ValueError('Dates must use the YYYY-MM-DD format') from exc
    if end_date < start_date:
        raise ValueError('End date must be on or after start date')
    return start_date, end_date


def parse_report_format(raw: str | None) -> ReportFormat:
    value = (raw or ReportFormat.CSV.value).strip().lower()
    try:
        return ReportFormat(value)
    except ValueError as exc:
        raise ValueError(f'Unsupported export format: {raw}') from exc


def parse_entry_type(raw: str | None) -> EntryType | None:
    value = (raw or '').strip()
    if not value:
        return None
    for entry_type in EntryType:
        if value.lower() in {entry_type.value.lower(), entry_type.name.lower()}:
            return entry_type
    raise ValueError(f'Unsupported entry type: {raw}')


def parse_optional_id(raw: str | None, *, field: str) -> int | None:
    value = (raw or '').strip()
    if not value:
        return None
    if not value.isdigit():
        raise ValueError(f'{field} must be a numeric id')
    return int(value)
