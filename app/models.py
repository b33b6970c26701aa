from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates

from app.services.money_utils import compute_total_amount, decimal_or_zero

# SQLite only autoincrements INTEGER PRIMARY KEY columns.
IdType = BigInteger().with_variant(Integer, 'sqlite')

MAX_UNITS_PER_ENTRY = Decimal('100')


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    pass


class PrincipalRole(str, Enum):
    OWNER = 'OWNER'
    USER = 'USER'


class EntryType(str, Enum):
    SALES = 'Sales'
    RAW_STONE = 'Raw Stone'


class EntryStatus(str, Enum):
    ACTIVE = 'active'
    DELETED = 'deleted'


class MaterialType(str, Enum):
    METAL_1_1_2 = '1 1/2" Metal'
    JALLI_3_4 = '3/4" Jalli'
    JALLI_1_2 = '1/2" Jalli'
    KURANAI_1_4 = '1/4" Kuranai'
    DUST = 'Dust'
    WETMIX = 'Wetmix'
    M_SAND = 'M sand'
    P_SAND = 'P sand'


class Organization(Base):
    __tablename__ = 'organizations'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Principal(Base):
    __tablename__ = 'principals'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    organization_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('organizations.id'))
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[PrincipalRole] = mapped_column(SQLEnum(PrincipalRole, name='principal_role'), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class TruckEntry(Base):
    __tablename__ = 'truck_entries'
    __table_args__ = (
        CheckConstraint(
            "entry_type <> 'Sales' OR material_type IS NOT NULL",
            name='truck_entries_sales_material_check',
        ),
        CheckConstraint('units > 0 AND units <= 100', name='truck_entries_units_check'),
        CheckConstraint('rate_per_unit > 0', name='truck_entries_rate_check'),
        Index('ix_truck_entries_org_date', 'organization_id', 'entry_date'),
        Index('ix_truck_entries_user_date', 'user_id', 'entry_date'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey('principals.id'), nullable=False)
    truck_number: Mapped[str] = mapped_column(String(16), nullable=False)
    truck_name: Mapped[str] = mapped_column(String(50), nullable=False)
    entry_type: Mapped[EntryType] = mapped_column(
        SQLEnum(EntryType, name='entry_type', values_callable=_enum_values),
        nullable=False,
    )
    material_type: Mapped[str | None] = mapped_column(Text)
    units: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    rate_per_unit: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    total_amount: Mapped[Decimal | None] = mapped_column(Numeric(16, 2))
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    entry_time: Mapped[str | None] = mapped_column(String(5))
    status: Mapped[EntryStatus] = mapped_column(
        SQLEnum(EntryStatus, name='entry_status', values_callable=_enum_values),
        nullable=False,
        default=EntryStatus.ACTIVE,
    )
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    @validates('units', 'rate_per_unit')
    def _refresh_total_amount(self, key: str, value: object) -> Decimal:
        amount = decimal_or_zero(value)
        if key == 'units' and not (Decimal('0') < amount <= MAX_UNITS_PER_ENTRY):
            raise ValueError('Units must be greater than 0 and cannot exceed 100')
        if key == 'rate_per_unit' and amount <= 0:
            raise ValueError('Rate per unit must be greater than 0')

        units = amount if key == 'units' else self.units
        rate_per_unit = amount if key == 'rate_per_unit' else self.rate_per_unit
        if units is not None and rate_per_unit is not None:
            self.total_amount = compute_total_amount(units, rate_per_unit)
        return amount

    def soft_delete(self) -> None:
        self.status = EntryStatus.DELETED


@event.listens_for(TruckEntry, 'before_insert')
@event.listens_for(TruckEntry, 'before_update')
def _derive_total_amount(_mapper, _connection, target: TruckEntry) -> None:
    target.total_amount = compute_total_amount(target.units, target.rate_per_unit)


class OtherExpense(Base):
    __tablename__ = 'other_expenses'
    __table_args__ = (
        CheckConstraint('amount >= 0', name='other_expenses_amount_check'),
        Index('ix_other_expenses_org_date', 'organization_id', 'expense_date'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    organization_id: Mapped[int] = mapped_column(IdType, ForeignKey('organizations.id'), nullable=False)
    user_id: Mapped[int] = mapped_column(IdType, ForeignKey('principals.id'), nullable=False)
    expense_name: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    attempted_username: Mapped[str] = mapped_column(String(50), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    principal_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('principals.id'))
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    actor_principal_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('principals.id'))
    organization_id: Mapped[int | None] = mapped_column(IdType, ForeignKey('organizations.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64))
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (
        UniqueConstraint('session_token', name='web_sessions_session_token_key'),
    )

    id: Mapped[int] = mapped_column(IdType, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    principal_id: Mapped[int] = mapped_column(IdType, ForeignKey('principals.id'), nullable=False)
    ip: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
