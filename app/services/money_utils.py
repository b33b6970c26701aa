from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal('0.01')
ZERO = Decimal('0.00')


def decimal_or_zero(raw_value: object) -> Decimal:
    if raw_value is None:
        return Decimal('0')
    try:
        return Decimal(str(raw_value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal('0')


def quantize_money(value: object) -> Decimal:
    return decimal_or_zero(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_total_amount(units: object, rate_per_unit: object) -> Decimal:
    return quantize_money(decimal_or_zero(units) * decimal_or_zero(rate_per_unit))


def format_money(value: Decimal | None) -> str:
    if value is None:
        return ''
    return f'{quantize_money(value):,.2f}'
