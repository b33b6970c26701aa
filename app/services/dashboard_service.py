from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from app.models import EntryType
from app.services.record_store import RecordStore, ReportFilter
from app.services.report_data_service import group_truck_records
from app.services.summary_service import SummaryResult, summarize

PERIODS = ('today', 'yesterday', 'week', 'month', 'year')


@dataclass(frozen=True)
class DateRange:
    start_date: date
    end_date: date

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def previous(self) -> DateRange:
        previous_end = self.start_date - timedelta(days=1)
        return DateRange(start_date=previous_end - timedelta(days=self.days - 1), end_date=previous_end)


def resolve_period(period: str, *, today: date) -> DateRange:
    """Map a named period to an inclusive date range; unknown names fall back to month."""
    if period == 'today':
        return DateRange(today, today)
    if period == 'yesterday':
        yesterday = today - timedelta(days=1)
        return DateRange(yesterday, yesterday)
    if period == 'week':
        # Weeks start on Sunday.
        week_start = today - timedelta(days=(today.weekday() + 1) % 7)
        return DateRange(week_start, today)
    if period == 'year':
        return DateRange(date(today.year, 1, 1), date(today.year, 12, 31))
    month_start = today.replace(day=1)
    next_month = (month_start + timedelta(days=32)).replace(day=1)
    return DateRange(month_start, next_month - timedelta(days=1))


def growth_percent(current: Decimal, previous: Decimal) -> Decimal:
    if previous <= 0:
        return Decimal('0.00')
    return ((current - previous) / previous * 100).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def build_dashboard_summary(store: RecordStore, report_filter: ReportFilter, *, today: date) -> dict[str, object]:
    summary = summarize(store, report_filter)
    records = store.list_truck_records(report_filter)

    today_filter = replace(report_filter, start_date=today, end_date=today)
    today_entries = len(store.list_truck_records(today_filter))

    sales_records = [record for record in records if record.entry_type == EntryType.SALES]
    material_breakdown = group_truck_records(sales_records, group_by='material')
    top_trucks = sorted(
        group_truck_records(records, group_by='truck'),
        key=lambda row: (-row.entry_count, row.key),
    )[:5]

    return {
        'dateRange': {
            'startDate': report_filter.start_date.isoformat(),
            'endDate': report_filter.end_date.isoformat(),
        },
        'summary': summary.as_dict(),
        'todayEntries': today_entries,
        'recentEntries': [
            {
                'id': record.id,
                'truckNumber': record.truck_number,
                'entryType': record.entry_type.value,
                'materialType': record.material_type,
                'totalAmount': float(record.effective_amount),
                'entryDate': record.entry_date.isoformat(),
                'entryTime': record.entry_time,
            }
            for record in records[:5]
        ],
        'materialBreakdown': [row.as_dict() for row in material_breakdown],
        'topTrucks': [row.as_dict() for row in top_trucks],
    }


def _daily_breakdown(store: RecordStore, report_filter: ReportFilter) -> list[dict[str, object]]:
    breakdown: list[dict[str, object]] = []
    records = store.list_truck_records(report_filter)
    for entry_type in EntryType:
        typed = [record for record in records if record.entry_type == entry_type]
        for row in group_truck_records(typed, group_by='date', descending=False):
            breakdown.append(
                {
                    'date': row.key,
                    'entryType': entry_type.value,
                    'totalAmount': float(row.total_amount),
                    'totalUnits': float(row.total_units),
                    'count': row.entry_count,
                }
            )
    breakdown.sort(key=lambda item: (item['date'], item['entryType']))
    return breakdown


def build_financial_metrics(store: RecordStore, report_filter: ReportFilter) -> dict[str, object]:
    current_range = DateRange(report_filter.start_date, report_filter.end_date)
    previous_range = current_range.previous()

    current: SummaryResult = summarize(store, report_filter)
    previous: SummaryResult = summarize(
        store,
        replace(report_filter, start_date=previous_range.start_date, end_date=previous_range.end_date),
    )
    return {
        'dateRange': {
            'startDate': current_range.start_date.isoformat(),
            'endDate': current_range.end_date.isoformat(),
        },
        'previousDateRange': {
            'startDate': previous_range.start_date.isoformat(),
            'endDate': previous_range.end_date.isoformat(),
        },
        'currentPeriod': current.as_dict(),
        'previousPeriod': previous.as_dict(),
        'growth': {
            'sales': float(growth_percent(current.total_sales, previous.total_sales)),
            'expenses': float(growth_percent(current.total_raw_stone, previous.total_raw_stone)),
        },
        'dailyBreakdown': _daily_breakdown(store, report_filter),
    }
