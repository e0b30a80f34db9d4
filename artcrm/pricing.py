"""
artcrm/pricing.py

Proposal arithmetic and input integrity checks.

Rules:
- line total = quantity * unit_price
- total = sum(line totals) * (1 - discount/100), rounded to 2 minor units
- installment amount = total / installment_count
- Excess (bonus) quantity changes the displayed quantity only. It is NOT billed.

All money is Decimal, quantized to 0.01 with ROUND_HALF_UP.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, NamedTuple, Sequence, Tuple

from dateutil.relativedelta import relativedelta

CURRENCIES = ("TRY", "USD", "EUR")

HUNDRED = Decimal("100")

# Column limits: INTEGER quantity, Numeric(12,2) unit price,
# Numeric(5,2) percentages, Numeric(14,2) totals.
MAX_QUANTITY = 2**31 - 1
MAX_UNIT_PRICE = Decimal("9999999999.99")
MAX_PERCENTAGE = Decimal("999.99")
MAX_AMOUNT = Decimal("999999999999.99")
MAX_INSTALLMENTS = 120


def _to_decimal(value) -> Decimal:
    """Convert Numeric/None to Decimal safely."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value))


def _money(x: Decimal) -> Decimal:
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    """A proposal line as submitted, before it is persisted."""

    product_id: int | None
    quantity: int | None
    unit_price: Decimal | None
    excess: bool = False
    excess_percentage: Decimal = Decimal("0")


class Totals(NamedTuple):
    subtotal: Decimal
    total_amount: Decimal
    installment_amount: Decimal


def line_total(item) -> Decimal:
    if not item.quantity or item.unit_price is None:
        return Decimal("0.00")
    return _money(Decimal(str(item.quantity)) * _to_decimal(item.unit_price))


def effective_quantity(item) -> Decimal:
    """Displayed quantity, including the bonus share when excess is set."""
    qty = Decimal(str(item.quantity or 0))
    if not item.excess:
        return qty
    pct = _to_decimal(item.excess_percentage)
    return (qty * (Decimal("1") + pct / HUNDRED)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def compute_totals(items: Iterable, discount, installment_count: int = 1) -> Totals:
    subtotal = sum((line_total(i) for i in items), Decimal("0.00"))
    factor = Decimal("1") - _to_decimal(discount) / HUNDRED
    total = _money(subtotal * factor)

    count = installment_count if installment_count and installment_count > 0 else 1
    installment = _money(total / Decimal(count))

    return Totals(subtotal=_money(subtotal), total_amount=total, installment_amount=installment)


def installment_schedule(total, installment_count: int, first_due: date) -> List[Tuple[date, Decimal]]:
    """
    Monthly payment plan starting at first_due.

    Every installment is total/count rounded; the last one absorbs the rounding
    remainder so the amounts add up to total exactly.
    """
    if installment_count < 1:
        raise ValueError("installment_count must be at least 1")

    total = _money(_to_decimal(total))
    regular = _money(total / Decimal(installment_count))

    schedule = []
    for i in range(installment_count - 1):
        schedule.append((first_due + relativedelta(months=+i), regular))

    last = total - regular * (installment_count - 1)
    schedule.append((first_due + relativedelta(months=+(installment_count - 1)), last))
    return schedule


def _two_places(value: Decimal) -> bool:
    """True if value needs no rounding to be stored in a 2-decimal column."""
    return value == value.quantize(Decimal("0.01"))


def validate_proposal_input(
    items: Sequence[LineItem],
    discount,
    installment_count,
    currency: str | None,
) -> List[str]:
    """
    Integrity problems with a proposal submission (empty list means valid).

    Checked before anything reaches the repository, and before compute_totals():
    every amount must fit its column and carry at most two decimals, so the total
    computed here is the total recomputed from the stored row.
    """
    problems: List[str] = []

    if currency not in CURRENCIES:
        problems.append(f"Currency must be one of {', '.join(CURRENCIES)}.")

    if discount is None:
        problems.append("Discount must be a number between 0 and 100.")
    else:
        d = _to_decimal(discount)
        if d < 0 or d > HUNDRED:
            problems.append("Discount must be between 0 and 100.")
        elif not _two_places(d):
            problems.append("Discount can have at most two decimals.")

    if installment_count is None or int(installment_count) < 1:
        problems.append("Installment count must be at least 1.")
    elif int(installment_count) > MAX_INSTALLMENTS:
        problems.append(f"Installment count cannot exceed {MAX_INSTALLMENTS}.")

    if not items:
        problems.append("A proposal needs at least one line item.")

    subtotal = Decimal("0")
    lines_ok = True
    for idx, item in enumerate(items, start=1):
        if item.product_id is None:
            problems.append(f"Line {idx}: product is required.")

        if item.quantity is None or item.quantity <= 0:
            problems.append(f"Line {idx}: quantity must be a positive integer.")
            lines_ok = False
        elif item.quantity > MAX_QUANTITY:
            problems.append(f"Line {idx}: quantity cannot exceed {MAX_QUANTITY}.")
            lines_ok = False

        price = _to_decimal(item.unit_price) if item.unit_price is not None else None
        if price is None or price < 0:
            problems.append(f"Line {idx}: unit price must be zero or more.")
            lines_ok = False
        elif price > MAX_UNIT_PRICE:
            problems.append(f"Line {idx}: unit price cannot exceed {MAX_UNIT_PRICE}.")
            lines_ok = False
        elif not _two_places(price):
            problems.append(f"Line {idx}: unit price can have at most two decimals.")
            lines_ok = False

        if item.excess:
            pct = _to_decimal(item.excess_percentage)
            if pct < 0:
                problems.append(f"Line {idx}: excess percentage cannot be negative.")
            elif pct > MAX_PERCENTAGE:
                problems.append(f"Line {idx}: excess percentage cannot exceed {MAX_PERCENTAGE}.")
            elif not _two_places(pct):
                problems.append(f"Line {idx}: excess percentage can have at most two decimals.")

        if lines_ok:
            subtotal += Decimal(item.quantity) * price

    if lines_ok and subtotal > MAX_AMOUNT:
        problems.append(f"Proposal total cannot exceed {MAX_AMOUNT}.")

    return problems
