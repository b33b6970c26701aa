from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from app.logging_utils import get_logger
from app.models import EntryType
from app.services.money_utils import ZERO, quantize_money
from app.services.record_store import RecordStore, ReportFilter

LOGGER = get_logger(__name__)


@dataclass(frozen=True)
class SummaryResult:
    total_sales: Decimal
    total_raw_stone: Decimal
    total_other_expenses: Decimal
    total_expenses: Decimal
    sales_count: int
    raw_stone_count: int
    other_expenses_count: int
    total_entries: int
    net_profit: Decimal

    @property
    def is_empty_trucking(self) -> bool:
        return self.total_sales == 0 and self.total_raw_stone == 0

    def as_dict(self) -> dict[str, object]:
        return {
            'totalSales': float(self.total_sales),
            'totalRawStone': float(self.total_raw_stone),
            'totalOtherExpenses': float(self.total_other_expenses),
            'totalExpenses': float(self.total_expenses),
            'salesCount': self.sales_count,
            'rawStoneCount': self.raw_stone_count,
            'otherExpensesCount': self.other_expenses_count,
            'totalEntries': self.total_entries,
            'netProfit': float(self.net_profit),
        }


def combine_totals(
    *,
    total_sales: Decimal,
    total_raw_stone: Decimal,
    total_other_expenses: Decimal,
    sales_count: int,
    raw_stone_count: int,
    other_expenses_count: int,
) -> SummaryResult:
    """Both aggregation paths funnel through here so the derived fields agree."""

    total_sales = quantize_money(total_sales)
    total_raw_stone = quantize_money(total_raw_stone)
    total_other_expenses = quantize_money(total_other_expenses)
    total_expenses = total_raw_stone + total_other_expenses
    return SummaryResult(
        total_sales=total_sales,
        total_raw_stone=total_raw_stone,
        total_other_expenses=total_other_expenses,
        total_expenses=total_expenses,
        sales_count=sales_count,
        raw_stone_count=raw_stone_count,
        other_expenses_count=other_expenses_count,
        total_entries=sales_count + raw_stone_count + other_expenses_count,
        net_profit=total_sales - total_expenses,
    )


def empty_summary() -> SummaryResult:
    return combine_totals(
        total_sales=ZERO,
        total_raw_stone=ZERO,
        total_other_expenses=ZERO,
        sales_count=0,
        raw_stone_count=0,
        other_expenses_count=0,
    )


def _summarize_grouped(store: RecordStore, report_filter: ReportFilter) -> SummaryResult:
    totals = {entry_type: (ZERO, 0) for entry_type in EntryType}
    for group in store.truck_totals_by_type(report_filter):
        amount, count = totals[group.entry_type]
        totals[group.entry_type] = (amount + group.total_amount, count + group.count)

    expenses = store.expense_totals(report_filter)
    return combine_totals(
        total_sales=totals[EntryType.SALES][0],
        total_raw_stone=totals[EntryType.RAW_STONE][0],
        total_other_expenses=expenses.total_amount,
        sales_count=totals[EntryType.SALES][1],
        raw_stone_count=totals[EntryType.RAW_STONE][1],
        other_expenses_count=expenses.count,
    )


def recompute_from_records(store: RecordStore, report_filter: ReportFilter) -> SummaryResult:
    """Rebuild the summary by walking every matching record in process.

    Records whose stored total is missing are repaired from units and rate
    before they are summed.
    """

    total_sales = ZERO
    total_raw_stone = ZERO
    sales_count = 0
    raw_stone_count = 0
    for record in store.list_truck_records(report_filter):
        if record.entry_type == EntryType.SALES:
            total_sales += record.effective_amount
            sales_count += 1
        elif record.entry_type == EntryType.RAW_STONE:
            total_raw_stone += record.effective_amount
            raw_stone_count += 1

    expenses = store.list_expense_records(report_filter)
    return combine_totals(
        total_sales=total_sales,
        total_raw_stone=total_raw_stone,
        total_other_expenses=sum((expense.amount for expense in expenses), ZERO),
        sales_count=sales_count,
        raw_stone_count=raw_stone_count,
        other_expenses_count=len(expenses),
    )


def summarize(store: RecordStore, report_filter: ReportFilter) -> SummaryResult:
    if report_filter.end_date < report_filter.start_date:
        raise ValueError('End date must be on or after start date')

    primary = _summarize_grouped(store, report_filter)
    if not primary.is_empty_trucking or not report_filter.has_key_constraints:
        return primary

    # A zero grouped result may be a false negative; the record walk wins.
    fallback = recompute_from_records(store, report_filter)
    if fallback != primary:
        LOGGER.warning(
            'Summary fallback changed result for organization=%s range=%s..%s: '
            'grouped sales=%s raw_stone=%s entries=%s, recomputed sales=%s raw_stone=%s entries=%s',
            report_filter.organization_id,
            report_filter.start_date.isoformat(),
            report_filter.end_date.isoformat(),
            primary.total_sales,
            primary.total_raw_stone,
            primary.total_entries,
            fallback.total_sales,
            fallback.total_raw_stone,
            fallback.total_entries,
        )
    return fallback
