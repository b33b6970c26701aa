from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.models import Base, EntryType
from app.services.money_utils import compute_total_amount
from app.services.record_store import EntryTypeTotal, ExpenseRecord, ExpenseTotal, ReportFilter, TruckRecord


def truck(
    record_id: int,
    entry_type: EntryType,
    units: str,
    rate: str,
    *,
    total: str | None = 'auto',
    on: date = date(2024, 6, 10),
    organization_id: int = 1,
    user_id: int = 1,
    material_type: str | None = None,
    truck_number: str = 'KA01AB1234',
) -> TruckRecord:
    if total == 'auto':
        total_amount = compute_total_amount(units, rate)
    else:
        total_amount = Decimal(total) if total is not None else None
    return TruckRecord(
        id=record_id,
        organization_id=organization_id,
        user_id=user_id,
        truck_number=truck_number,
        truck_name='Driver',
        entry_type=entry_type,
        material_type=material_type or ('Dust' if entry_type == EntryType.SALES else None),
        units=Decimal(units),
        rate_per_unit=Decimal(rate),
        total_amount=total_amount,
        entry_date=on,
        entry_time='10:00',
    )


def expense(record_id: int, amount: str, *, on: date = date(2024, 6, 10), organization_id: int = 1) -> ExpenseRecord:
    return ExpenseRecord(
        id=record_id,
        organization_id=organization_id,
        expense_name='Diesel',
        amount=Decimal(amount),
        expense_date=on,
    )


class InMemoryRecordStore:
    """RecordStore double; ``drop_grouped_trucks`` mimics a grouping query that silently matches nothing."""

    def __init__(self, trucks=(), expenses=(), *, drop_grouped_trucks: bool = False) -> None:
        self.trucks = list(trucks)
        self.expenses = list(expenses)
        self.drop_grouped_trucks = drop_grouped_trucks
        self.record_scans = 0

    def _trucks(self, report_filter: ReportFilter) -> list[TruckRecord]:
        matched = []
        for record in self.trucks:
            if record.organization_id != report_filter.organization_id:
                continue
            if not (report_filter.start_date <= record.entry_date <= report_filter.end_date):
                continue
            if report_filter.user_id is not None and record.user_id != report_filter.user_id:
                continue
            if report_filter.entry_type is not None and record.entry_type != report_filter.entry_type:
                continue
            matched.append(record)
        return matched

    def _expenses(self, report_filter: ReportFilter) -> list[ExpenseRecord]:
        if report_filter.narrows_truck_fields:
            return []
        return [
            record
            for record in self.expenses
            if record.organization_id == report_filter.organization_id
            and report_filter.start_date <= record.expense_date <= report_filter.end_date
        ]

    def truck_totals_by_type(self, report_filter: ReportFilter) -> list[EntryTypeTotal]:
        if self.drop_grouped_trucks:
            return []
        groups: dict[EntryType, list[TruckRecord]] = {}
        for record in self._trucks(report_filter):
            groups.setdefault(record.entry_type, []).append(record)
        return [
            EntryTypeTotal(
                entry_type=entry_type,
                total_amount=sum((record.total_amount or Decimal('0') for record in records), Decimal('0')),
                count=len(records),
            )
            for entry_type, records in groups.items()
        ]

    def expense_totals(self, report_filter: ReportFilter) -> ExpenseTotal:
        records = self._expenses(report_filter)
        return ExpenseTotal(total_amount=sum((record.amount for record in records), Decimal('0')), count=len(records))

    def list_truck_records(self, report_filter: ReportFilter) -> list[TruckRecord]:
        self.record_scans += 1
        return sorted(self._trucks(report_filter), key=lambda record: record.entry_date, reverse=True)

    def list_expense_records(self, report_filter: ReportFilter) -> list[ExpenseRecord]:
        return self._expenses(report_filter)


def sqlite_session_factory() -> sessionmaker:
    engine = create_engine(
        'sqlite+pysqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
