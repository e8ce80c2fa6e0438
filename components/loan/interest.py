"""Money rounding and simple-interest arithmetic."""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

from dateutil.relativedelta import relativedelta

MONEY = Decimal("0.01")
RATE = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Quantize to 2 fractional digits, the persisted precision of money fields."""
    return Decimal(str(value)).quantize(MONEY, rounding=ROUND_HALF_UP)


def to_rate(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(RATE, rounding=ROUND_HALF_UP)


def add_months(value: date, months: int) -> date:
    """Shift a date by whole calendar months, clamping to the month's last day."""
    return value + relativedelta(months=months)


def months_between(start: date, end: date) -> Decimal:
    """
    Fractional calendar months from start to end.

    Whole months are counted on the calendar; the remainder is the share of
    days elapsed in the following month. Returns 0 when end is not after start.
    """
    if end <= start:
        return Decimal(0)

    elapsed = relativedelta(end, start)
    whole = elapsed.years * 12 + elapsed.months
    anchor = add_months(start, whole)

    span = (add_months(start, whole + 1) - anchor).days
    remainder = (end - anchor).days
    return Decimal(whole) + Decimal(remainder) / Decimal(span)


def simple_interest(principal: Decimal, annual_rate: Decimal, months: Decimal) -> Decimal:
    """Interest on principal for the elapsed months at a percent-per-annum rate, no compounding."""
    if months <= 0 or principal <= 0 or annual_rate <= 0:
        return ZERO
    return to_money(principal * annual_rate / Decimal(100) * months / Decimal(12))
