from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from app.models import EntryStatus, EntryType, OtherExpense, TruckEntry
from app.services.money_utils import compute_total_amount, decimal_or_zero


@dataclass(frozen=True)
class ReportFilter:
    organization_id: int
    start_date: date
    end_date: date
    user_id: int | None = None
    entry_type: EntryType | None = None
    material_type: str | None = None
    truck_number: str | None = None

    @property
    def narrows_truck_fields(self) -> bool:
        return self.entry_type is not None or bool(self.material_type) or bool(self.truck_number)

    @property
    def has_key_constraints(self) -> bool:
        return self.organization_id is not None or self.user_id is not None or self.narrows_truck_fields


@dataclass(frozen=True)
class TruckRecord:
    id: int
    organization_id: int
    user_id: int | None
    truck_number: str
    truck_name: str
    entry_type: EntryType
    material_type: str | None
    units: Decimal
    rate_per_unit: Decimal
    total_amount: Decimal | None
    entry_date: date
    entry_time: str | None = None
    notes: str | None = None

    @property
    def effective_amount(self) -> Decimal:
        if self.total_amount:
            return decimal_or_zero(self.total_amount)
        return compute_total_amount(self.units, self.rate_per_unit)


@dataclass(frozen=True)
class ExpenseRecord:
    id: int
    organization_id: int
    expense_name: str
    amount: Decimal
    expense_date: date
    notes: str | None = None


@dataclass(frozen=True)
class EntryTypeTotal:
    entry_type: EntryType
    total_amount: Decimal
    count: int


@dataclass(frozen=True)
class ExpenseTotal:
    total_amount: Decimal
    count: int


class RecordStore(Protocol):
    def truck_totals_by_type(self, report_filter: ReportFilter) -> list[EntryTypeTotal]: ...

    def expense_totals(self, report_filter: ReportFilter) -> ExpenseTotal: ...

    def list_truck_records(self, report_filter: ReportFilter) -> list[TruckRecord]: ...

    def list_expense_records(self, report_filter: ReportFilter) -> list[ExpenseRecord]: ...


def _truck_conditions(report_filter: ReportFilter) -> list:
    conditions = [
        TruckEntry.organization_id == report_filter.organization_id,
        TruckEntry.status == EntryStatus.ACTIVE,
        TruckEntry.entry_date >= report_filter.start_date,
        TruckEntry.entry_date <= report_filter.end_date,
    ]
    if report_filter.user_id is not None:
        conditions.append(TruckEntry.user_id == report_filter.user_id)
    if report_filter.entry_type is not None:
        conditions.append(TruckEntry.entry_type == report_filter.entry_type)
    if report_filter.material_type:
        conditions.append(TruckEntry.material_type == report_filter.material_type)
    if report_filter.truck_number:
        conditions.append(TruckEntry.truck_number == report_filter.truck_number.strip().upper())
    return conditions


def _expense_conditions(report_filter: ReportFilter) -> list:
    return [
        OtherExpense.organization_id == report_filter.organization_id,
        OtherExpense.is_active.is_(True),
        OtherExpense.expense_date >= report_filter.start_date,
        OtherExpense.expense_date <= report_filter.end_date,
    ]


class SqlRecordStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def truck_totals_by_type(self, report_filter: ReportFilter) -> list[EntryTypeTotal]:
        rows = self.db.execute(
            select(
                TruckEntry.entry_type,
                func.coalesce(func.sum(TruckEntry.total_amount), 0).label('total_amount'),
                func.count(TruckEntry.id).label('entry_count'),
            )
            .where(*_truck_conditions(report_filter))
            .group_by(TruckEntry.entry_type)
        ).all()
        return [
            EntryTypeTotal(
                entry_type=EntryType(row.entry_type),
                total_amount=decimal_or_zero(row.total_amount),
                count=int(row.entry_count),
            )
            for row in rows
        ]

    def expense_totals(self, report_filter: ReportFilter) -> ExpenseTotal:
        if report_filter.narrows_truck_fields:
            return ExpenseTotal(total_amount=Decimal('0'), count=0)
        row = self.db.execute(
            select(
                func.coalesce(func.sum(OtherExpense.amount), 0).label('total_amount'),
                func.count(OtherExpense.id).label('expense_count'),
            ).where(*_expense_conditions(report_filter))
        ).one()
        return ExpenseTotal(total_amount=decimal_or_zero(row.total_amount), count=int(row.expense_count))

    def list_truck_records(self, report_filter: ReportFilter) -> list[TruckRecord]:
        entries = self.db.execute(
            select(TruckEntry)
            .where(*_truck_conditions(report_filter))
            .order_by(desc(TruckEntry.entry_date), desc(TruckEntry.entry_time), desc(TruckEntry.id))
        ).scalars().all()
        return [
            TruckRecord(
                id=entry.id,
                organization_id=entry.organization_id,
                user_id=entry.user_id,
                truck_number=entry.truck_number,
                truck_name=entry.truck_name,
                entry_type=EntryType(entry.entry_type),
                material_type=entry.material_type,
                units=decimal_or_zero(entry.units),
                rate_per_unit=decimal_or_zero(entry.rate_per_unit),
                total_amount=entry.total_amount,
                entry_date=entry.entry_date,
                entry_time=entry.entry_time,
                notes=entry.notes,
            )
            for entry in entries
        ]

    def list_expense_records(self, report_filter: ReportFilter) -> list[ExpenseRecord]:
        if report_filter.narrows_truck_fields:
            return []
        expenses = self.db.execute(
            select(OtherExpense)
            .where(*_expense_conditions(report_filter))
            .order_by(desc(OtherExpense.expense_date), desc(OtherExpense.id))
        ).scalars().all()
        return [
            ExpenseRecord(
                id=expense.id,
                organization_id=expense.organization_id,
                expense_name=expense.expense_name,
                amount=decimal_or_zero(expense.amount),
                expense_date=expense.expense_date,
                notes=expense.notes,
            )
            for expense in expenses
        ]
