from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from app.models import EntryType
from app.services.money_utils import ZERO, quantize_money
from app.services.record_store import TruckRecord

GROUP_BY_OPTIONS = ('date', 'truck', 'material', 'user')
MAX_PAGE_SIZE = 500


@dataclass(frozen=True)
class GroupRow:
    key: str
    total_amount: Decimal
    sales_amount: Decimal
    raw_stone_amount: Decimal
    total_units: Decimal
    entry_count: int
    last_entry_date: date | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            'key': self.key,
            'totalAmount': float(self.total_amount),
            'salesAmount': float(self.sales_amount),
            'rawStoneAmount': float(self.raw_stone_amount),
            'netAmount': float(self.sales_amount - self.raw_stone_amount),
            'totalUnits': float(self.total_units),
            'entryCount': self.entry_count,
            'lastEntryDate': self.last_entry_date.isoformat() if self.last_entry_date else None,
        }


@dataclass(frozen=True)
class Page:
    items: list
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


def _group_key(record: TruckRecord, group_by: str) -> str | None:
    if group_by == 'date':
        return record.entry_date.isoformat()
    if group_by == 'truck':
        return record.truck_number
    if group_by == 'material':
        if record.entry_type != EntryType.SALES or not record.material_type:
            return None
        return record.material_type
    return str(record.user_id) if record.user_id is not None else None


def group_truck_records(records: list[TruckRecord], *, group_by: str, descending: bool = True) -> list[GroupRow]:
    if group_by not in GROUP_BY_OPTIONS:
        raise ValueError(f'Unsupported groupBy: {group_by}')

    buckets: dict[str, dict[str, object]] = {}
    for record in records:
        key = _group_key(record, group_by)
        if key is None:
            continue
        bucket = buckets.setdefault(
            key,
            {
                'total_amount': ZERO,
                'sales_amount': ZERO,
                'raw_stone_amount': ZERO,
                'total_units': Decimal('0'),
                'entry_count': 0,
                'last_entry_date': None,
            },
        )
        amount = record.effective_amount
        bucket['total_amount'] += amount
        if record.entry_type == EntryType.SALES:
            bucket['sales_amount'] += amount
        else:
            bucket['raw_stone_amount'] += amount
        bucket['total_units'] += record.units
        bucket['entry_count'] += 1
        if bucket['last_entry_date'] is None or record.entry_date > bucket['last_entry_date']:
            bucket['last_entry_date'] = record.entry_date

    rows = [
        GroupRow(
            key=key,
            total_amount=quantize_money(bucket['total_amount']),
            sales_amount=quantize_money(bucket['sales_amount']),
            raw_stone_amount=quantize_money(bucket['raw_stone_amount']),
            total_units=bucket['total_units'],
            entry_count=bucket['entry_count'],
            last_entry_date=bucket['last_entry_date'],
        )
        for key, bucket in buckets.items()
    ]
    if group_by == 'date':
        rows.sort(key=lambda row: row.key, reverse=descending)
    else:
        rows.sort(key=lambda row: (row.total_amount, row.key), reverse=descending)
    return rows


def paginate(items: list, *, page: int, limit: int) -> Page:
    if page < 1:
        raise ValueError('page must be 1 or greater')
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValueError(f'limit must be between 1 and {MAX_PAGE_SIZE}')
    start = (page - 1) * limit
    return Page(items=items[start : start + limit], page=page, limit=limit, total=len(items))


REPORT_TEMPLATES = [
    {
        'id': 'daily-summary',
        'name': 'Daily Summary Report',
        'description': 'Daily breakdown of all truck entries',
        'defaultFilters': {'groupBy': 'date', 'period': 'month'},
    },
    {
        'id': 'material-analysis',
        'name': 'Material Analysis Report',
        'description': 'Analysis of sales by material type',
        'defaultFilters': {'entryType': EntryType.SALES.value, 'groupBy': 'material'},
    },
    {
        'id': 'truck-performance',
        'name': 'Truck Performance Report',
        'description': 'Performance analysis by truck number',
        'defaultFilters': {'groupBy': 'truck'},
    },
    {
        'id': 'financial-summary',
        'name': 'Financial Summary Report',
        'description': 'Complete financial overview',
        'defaultFilters': {},
    },
]

OWNER_REPORT_TEMPLATES = [
    {
        'id': 'user-performance',
        'name': 'User Performance Report',
        'description': 'Performance analysis by user',
        'defaultFilters': {'groupBy': 'user'},
    },
]


def list_report_templates(*, include_owner_templates: bool) -> list[dict]:
    templates = [dict(template) for template in REPORT_TEMPLATES]
    if include_owner_templates:
        templates.extend(dict(template) for template in OWNER_REPORT_TEMPLATES)
    return templates
