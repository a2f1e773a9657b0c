"""Order pricing engine - pure arithmetic, no database access.

Per line:
  subtotal        = quantity * unit_price
  discount_amount = subtotal * discount% / 100
  taxable_amount  = subtotal - discount_amount
  tax_amount      = taxable_amount * tax% / 100
  line_total      = taxable_amount + tax_amount

Per order, the gross/discount/tax totals are summed from the raw line inputs,
while net_amount is the sum of line totals. The two paths agree algebraically;
totals_drift() reports how far apart they ended up in floating point.

Inputs are never rejected: unparsable numbers count as 0 and negative values
flow through the arithmetic unchanged.
"""

import math
from dataclasses import dataclass, replace
from typing import Iterable, List, Optional

DRIFT_TOLERANCE = 0.005


def parse_amount(value: object) -> float:
    """Lenient number parsing for form/API input. Anything unusable becomes 0.0."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        result = float(value)
    else:
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            result = float(text)
        except ValueError:
            return 0.0
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


@dataclass(frozen=True)
class LineInput:
    product_id: Optional[int]
    quantity: float = 1.0
    unit_price: float = 0.0
    discount_percentage: float = 0.0
    tax_percentage: float = 0.0

    @classmethod
    def from_raw(cls, product_id, quantity='1', unit_price='0', discount_percentage='0', tax_percentage='0'):
        return cls(
            product_id=product_id,
            quantity=parse_amount(quantity),
            unit_price=parse_amount(unit_price),
            discount_percentage=parse_amount(discount_percentage),
            tax_percentage=parse_amount(tax_percentage),
        )


@dataclass(frozen=True)
class LineAmounts:
    quantity: float
    unit_price: float
    discount_percentage: float
    tax_percentage: float
    subtotal: float
    discount_amount: float
    taxable_amount: float
    tax_amount: float
    line_total: float


@dataclass(frozen=True)
class OrderTotals:
    total_amount: float
    discount_amount: float
    tax_amount: float
    net_amount: float


@dataclass(frozen=True)
class PriceResolution:
    """Outcome of a price list lookup. `found` is False when no active entry matched."""
    found: bool
    customer_type: Optional[str] = None
    unit_price: Optional[float] = None
    discount_percentage: Optional[float] = None
    entry_id: Optional[int] = None

    @classmethod
    def not_found(cls, customer_type=None):
        return cls(found=False, customer_type=customer_type)

    def to_dict(self):
        return {
            'price_found': self.found,
            'customer_type': self.customer_type,
            'unit_price': self.unit_price,
            'discount_percentage': self.discount_percentage,
            'price_entry_id': self.entry_id,
        }


def compute_line(quantity: float, unit_price: float, discount_percentage: float, tax_percentage: float) -> LineAmounts:
    subtotal = quantity * unit_price
    discount_amount = subtotal * (discount_percentage / 100)
    taxable_amount = subtotal - discount_amount
    tax_amount = taxable_amount * (tax_percentage / 100)
    return LineAmounts(
        quantity=quantity,
        unit_price=unit_price,
        discount_percentage=discount_percentage,
        tax_percentage=tax_percentage,
        subtotal=subtotal,
        discount_amount=discount_amount,
        taxable_amount=taxable_amount,
        tax_amount=tax_amount,
        line_total=taxable_amount + tax_amount,
    )


def price_line(line: LineInput) -> LineAmounts:
    return compute_line(line.quantity, line.unit_price, line.discount_percentage, line.tax_percentage)


def aggregate_order(lines: Iterable[LineInput]) -> OrderTotals:
    total_amount = 0.0
    discount_amount = 0.0
    tax_amount = 0.0
    net_amount = 0.0
    for line in lines:
        gross = line.quantity * line.unit_price
        total_amount += gross
        discount_amount += gross * line.discount_percentage / 100
        tax_amount += gross * (1 - line.discount_percentage / 100) * line.tax_percentage / 100
        net_amount += price_line(line).line_total
    return OrderTotals(
        total_amount=total_amount,
        discount_amount=discount_amount,
        tax_amount=tax_amount,
        net_amount=net_amount,
    )


def totals_drift(totals: OrderTotals) -> float:
    """net_amount minus (gross - discount + tax); ~0 unless floating point error crept in."""
    return totals.net_amount - (totals.total_amount - totals.discount_amount + totals.tax_amount)


def apply_price_resolution(line: LineInput, resolution: PriceResolution) -> LineInput:
    """Pre-fill price and discount from a found price entry; otherwise keep the line as it was."""
    if not resolution.found:
        return line
    return replace(
        line,
        unit_price=resolution.unit_price,
        discount_percentage=resolution.discount_percentage or 0.0,
    )


def price_order(lines: List[LineInput]):
    """Convenience for callers that need both views: ([LineAmounts], OrderTotals)."""
    return [price_line(line) for line in lines], aggregate_order(lines)
