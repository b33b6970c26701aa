from __future__ import annotations

import csv
import io
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from app.models import EntryType
from app.services.money_utils import format_money
from app.services.record_store import ExpenseRecord, RecordStore, ReportFilter, TruckRecord
from app.services.summary_service import SummaryResult, summarize

EXPENSE_ENTRY_TYPE = 'Expense'
NOT_APPLICABLE = 'N/A'

EXPORT_COLUMNS = [
    ('date', 'Date'),
    ('time', 'Time'),
    ('truck_number', 'Truck Number'),
    ('entry_type', 'Entry Type'),
    ('material_type', 'Material Type'),
    ('units', 'Units'),
    ('rate_per_unit', 'Rate Per Unit'),
    ('total_amount', 'Total Amount'),
    ('description', 'Description'),
]


class ReportFormat(str, Enum):
    PDF = 'pdf'
    CSV = 'csv'

    @property
    def media_type(self) -> str:
        return 'application/pdf' if self is ReportFormat.PDF else 'text/csv'


@dataclass(frozen=True)
class ReportSpec:
    organization_id: int
    start_date: date
    end_date: date
    format: ReportFormat
    created_at: datetime
    user_id: int | None = None
    requested_by: int | None = None

    def to_filter(self) -> ReportFilter:
        return ReportFilter(
            organization_id=self.organization_id,
            start_date=self.start_date,
            end_date=self.end_date,
            user_id=self.user_id,
        )

    @property
    def file_name(self) -> str:
        return f'crusher-report-{self.start_date.isoformat()}-to-{self.end_date.isoformat()}.{self.format.value}'


@dataclass(frozen=True)
class ExportRow:
    date: date
    time: str | None
    truck_number: str | None
    entry_type: str
    material_type: str | None
    units: Decimal | None
    rate_per_unit: Decimal | None
    total_amount: Decimal
    description: str | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            'date': self.date.isoformat(),
            'time': self.time,
            'truckNumber': self.truck_number,
            'entryType': self.entry_type,
            'materialType': self.material_type,
            'units': float(self.units) if self.units is not None else None,
            'ratePerUnit': float(self.rate_per_unit) if self.rate_per_unit is not None else None,
            'totalAmount': float(self.total_amount),
            'description': self.description,
        }


@dataclass(frozen=True)
class ReportFile:
    content: bytes
    media_type: str
    file_name: str


def build_export_rows(trucks: list[TruckRecord], expenses: list[ExpenseRecord]) -> list[ExportRow]:
    rows = [
        ExportRow(
            date=record.entry_date,
            time=record.entry_time,
            truck_number=record.truck_number,
            entry_type=EntryType(record.entry_type).value,
            material_type=record.material_type,
            units=record.units,
            rate_per_unit=record.rate_per_unit,
            total_amount=record.effective_amount,
            description=record.notes,
        )
        for record in trucks
    ]
    rows.extend(
        ExportRow(
            date=expense.expense_date,
            time=None,
            truck_number=None,
            entry_type=EXPENSE_ENTRY_TYPE,
            material_type=None,
            units=None,
            rate_per_unit=None,
            total_amount=expense.amount,
            description=expense.expense_name if not expense.notes else f'{expense.expense_name} - {expense.notes}',
        )
        for expense in expenses
    )
    rows.sort(key=lambda row: (row.date, row.time or ''), reverse=True)
    return rows


def _cell(row: ExportRow, field: str) -> str:
    value = getattr(row, field)
    if field in {'units', 'rate_per_unit', 'material_type'} and value is None:
        return NOT_APPLICABLE
    if value is None:
        return ''
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return f'{value:.2f}'
    return str(value)


def _summary_lines(summary: SummaryResult) -> list[tuple[str, str]]:
    return [
        ('Total Sales', f'{summary.total_sales:.2f}'),
        ('Raw Stone Cost', f'{summary.total_raw_stone:.2f}'),
        ('Other Expenses', f'{summary.total_other_expenses:.2f}'),
        ('Total Expenses', f'{summary.total_expenses:.2f}'),
        ('Net Profit', f'{summary.net_profit:.2f}'),
        ('Sales Entries', str(summary.sales_count)),
        ('Raw Stone Entries', str(summary.raw_stone_count)),
        ('Other Expense Entries', str(summary.other_expenses_count)),
        ('Total Entries', str(summary.total_entries)),
    ]


def render_csv(rows: list[ExportRow], summary: SummaryResult, spec: ReportSpec) -> bytes:
    sio = io.StringIO()
    writer = csv.writer(sio)
    writer.writerow([label for _, label in EXPORT_COLUMNS])
    for row in rows:
        writer.writerow([_cell(row, field) for field, _ in EXPORT_COLUMNS])

    writer.writerow([])
    writer.writerow(['Summary', f'{spec.start_date.isoformat()} to {spec.end_date.isoformat()}'])
    for label, value in _summary_lines(summary):
        writer.writerow([label, value])
    return sio.getvalue().encode('utf-8')


def render_pdf(rows: list[ExportRow], summary: SummaryResult, spec: ReportSpec) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        leftMargin=28,
        rightMargin=28,
        topMargin=36,
        bottomMargin=36,
        title='Crusher Financial Statement',
    )
    styles = getSampleStyleSheet()
    header_color = colors.HexColor('#2C3E50')

    story = [
        Paragraph('Crusher Financial Statement', styles['Title']),
        Paragraph(
            f'Statement period: {spec.start_date.isoformat()} to {spec.end_date.isoformat()}',
            styles['Normal'],
        ),
        Paragraph(
            f"Generated: {datetime.now(tz=timezone.utc).strftime('%Y-%m-%d %H:%M UTC')}",
            styles['Normal'],
        ),
        Spacer(1, 12),
        Paragraph('Account Summary', styles['Heading2']),
    ]

    summary_table = Table(_summary_lines(summary), colWidths=[160, 140])
    summary_table.setStyle(
        TableStyle(
            [
                ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
                ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
                ('LINEBELOW', (0, 0), (-1, -1), 0.25, colors.HexColor('#BDC3C7')),
            ]
        )
    )
    story.extend([summary_table, Spacer(1, 16), Paragraph('Transaction History', styles['Heading2'])])

    pdf_columns = [column for column in EXPORT_COLUMNS if column[0] != 'description']
    table_data = [[label for _, label in pdf_columns]]
    for row in rows:
        cells = [_cell(row, field) for field, _ in pdf_columns]
        cells[-1] = format_money(row.total_amount)
        table_data.append(cells)

    transactions = Table(table_data, repeatRows=1)
    transactions.setStyle(
        TableStyle(
            [
                ('BACKGROUND', (0, 0), (-1, 0), header_color),
                ('TEXTCOLOR', (0, 0), (-1, 0), colors.white),
                ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                ('FONTSIZE', (0, 0), (-1, -1), 8),
                ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.HexColor('#ECF0F1'), colors.white]),
                ('ALIGN', (5, 1), (-1, -1), 'RIGHT'),
                ('BOX', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
            ]
        )
    )
    story.append(transactions)

    doc.build(story)
    return buffer.getvalue()


def generate_report(store: RecordStore, spec: ReportSpec) -> ReportFile:
    report_filter = spec.to_filter()
    summary = summarize(store, report_filter)
    rows = build_export_rows(
        store.list_truck_records(report_filter),
        store.list_expense_records(report_filter),
    )
    if spec.format is ReportFormat.PDF:
        content = render_pdf(rows, summary, spec)
    else:
        content = render_csv(rows, summary, spec)
    return ReportFile(content=content, media_type=spec.format.media_type, file_name=spec.file_name)
