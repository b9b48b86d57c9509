# Overview: Pure order pricing: line subtotals, discounts, sales tax, credit interest and grand totals.

"""
Order Pricing Service

WHY: Checkout, sales processing, invoices and the payments page all need the
same subtotal / tax / interest figures. They are computed here, once, and
every caller goes through compute_order_totals().

DESIGN PRINCIPLES:
- Pure functions: no database access, no hidden state
- Money in integer centavos at the boundary, Decimal arithmetic inside
- Half-up rounding to the centavo at each stored figure
- No clamping of discounts here; entry-time clamping belongs to the caller
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Iterable, Mapping, Any

from ..models.customers import PAYMENT_TYPE_CASH, PAYMENT_TYPE_CREDIT, VALID_PAYMENT_TYPES


class PricingError(ValueError):
    """Raised when pricing inputs cannot produce a total."""


# =============================================================================
# RATES (CONSTANTS)
# =============================================================================

TAX_RATE = Decimal("0.12")

# Credit term length (months) -> interest percent for the whole term
TERM_INTEREST_PERCENT: dict[int, Decimal] = {
    1: Decimal("2"),
    3: Decimal("6"),
    6: Decimal("12"),
    12: Decimal("24"),
}

ALLOWED_TERMS = tuple(sorted(TERM_INTEREST_PERCENT))

_ONE_CENT = Decimal("1")
_HUNDRED = Decimal("100")


def round_cents(value: Decimal) -> int:
    """Round a centavo amount half-up to a whole centavo."""
    return int(value.quantize(_ONE_CENT, rounding=ROUND_HALF_UP))


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Lenient Decimal conversion; None/blank/garbage -> default."""
    if value is None or value == "":
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default


# =============================================================================
# LINE & SUBTOTAL CALCULATOR
# =============================================================================

@dataclass(frozen=True)
class PricedLine:
    """One order line as seen by the calculator."""
    quantity: int = 0
    unit_price_cents: int = 0
    discount_percent: Decimal = Decimal("0")
    out_of_stock: bool = False

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PricedLine":
        """
        Build a line from loosely-typed input.

        Missing quantity / price / discount default to 0 rather than erroring.
        """
        return cls(
            quantity=int(to_decimal(data.get("quantity"))),
            unit_price_cents=int(to_decimal(data.get("unit_price_cents"))),
            discount_percent=to_decimal(data.get("discount_percent")),
            out_of_stock=bool(data.get("out_of_stock", False)),
        )

    @property
    def gross(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.unit_price_cents)

    @property
    def discount(self) -> Decimal:
        return self.gross * self.discount_percent / _HUNDRED

    @property
    def net(self) -> Decimal:
        return self.gross - self.discount


@dataclass(frozen=True)
class LineTotals:
    subtotal_cents: int
    total_discount_cents: int
    after_discount_cents: int


def compute_line_totals(lines: Iterable[PricedLine], exclude_out_of_stock: bool = False) -> LineTotals:
    """
    Reduce order lines to subtotal, aggregate discount and post-discount subtotal.

    exclude_out_of_stock drops lines flagged out of stock (delivery receipts).
    """
    gross = Decimal("0")
    discount = Decimal("0")
    for line in lines:
        if exclude_out_of_stock and line.out_of_stock:
            continue
        gross += line.gross
        discount += line.discount

    subtotal_cents = round_cents(gross)
    total_discount_cents = round_cents(discount)
    return LineTotals(
        subtotal_cents=subtotal_cents,
        total_discount_cents=total_discount_cents,
        after_discount_cents=subtotal_cents - total_discount_cents,
    )


# =============================================================================
# TAX & INTEREST CALCULATOR
# =============================================================================

def interest_percent_for_terms(terms_months: int) -> Decimal:
    """
    Default credit interest for a term length.

    Only the published table is honored; other lengths have no default rate.
    """
    try:
        return TERM_INTEREST_PERCENT[int(terms_months)]
    except (KeyError, TypeError, ValueError):
        raise PricingError(
            f"No default interest rate for {terms_months}-month terms. "
            f"Choose one of {list(ALLOWED_TERMS)} or supply an interest percent."
        )


@dataclass(frozen=True)
class PricingPolicy:
    """
    Everything besides the lines that affects an order's totals.

    allow_interest_override is True only for the admin sales flow; the
    customer checkout always uses the table rate.
    """
    payment_type: str = PAYMENT_TYPE_CASH
    tax_enabled: bool = True
    terms_months: int | None = None
    interest_override: Decimal | None = None
    allow_interest_override: bool = False
    shipping_fee_cents: int = 0
    exclude_out_of_stock: bool = False


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    total_discount_cents: int
    after_discount_cents: int
    sales_tax_cents: int
    interest_percent: Decimal
    interest_amount_cents: int
    shipping_fee_cents: int
    grand_total_cents: int
    payment_type: str = PAYMENT_TYPE_CASH
    terms_months: int = 1
    per_term_amount_cents: int = field(default=0)

    @property
    def is_credit(self) -> bool:
        return self.payment_type == PAYMENT_TYPE_CREDIT

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "total_discount_cents": self.total_discount_cents,
            "after_discount_cents": self.after_discount_cents,
            "sales_tax_cents": self.sales_tax_cents,
            "interest_percent": str(self.interest_percent),
            "interest_amount_cents": self.interest_amount_cents,
            "shipping_fee_cents": self.shipping_fee_cents,
            "grand_total_cents": self.grand_total_cents,
            "payment_type": self.payment_type,
            "terms_months": self.terms_months,
            "per_term_amount_cents": self.per_term_amount_cents,
        }


def resolve_interest_percent(policy: PricingPolicy) -> Decimal:
    """Interest percent for the policy; always 0 for non-credit orders."""
    if policy.payment_type != PAYMENT_TYPE_CREDIT:
        return Decimal("0")

    if not policy.terms_months or int(policy.terms_months) < 1:
        raise PricingError("Credit orders require terms of at least 1 month")

    if policy.interest_override is not None:
        if not policy.allow_interest_override:
            raise PricingError("Interest is fixed by the selected term")
        override = to_decimal(policy.interest_override)
        if override < 0:
            raise PricingError("Interest % must be 0 or higher")
        return override

    return interest_percent_for_terms(policy.terms_months)


def compute_order_totals(lines: Iterable[PricedLine], policy: PricingPolicy | None = None) -> OrderTotals:
    """
    Compute the full set of order totals.

    salesTax      = afterDiscount * 12%            (when tax is enabled)
    interest      = (afterDiscount + salesTax) * interestPercent / 100
    grandTotal    = afterDiscount + salesTax + interest + shippingFee
    perTermAmount = grandTotal / terms, rounded (credit) or grandTotal (cash)
    """
    policy = policy or PricingPolicy()

    if policy.payment_type not in VALID_PAYMENT_TYPES:
        raise PricingError(f"Invalid payment type: {policy.payment_type}. Must be one of {list(VALID_PAYMENT_TYPES)}")

    shipping_fee_cents = int(policy.shipping_fee_cents or 0)
    if shipping_fee_cents < 0:
        raise PricingError("Shipping fee cannot be negative")

    line_totals = compute_line_totals(lines, exclude_out_of_stock=policy.exclude_out_of_stock)
    after_discount = Decimal(line_totals.after_discount_cents)

    sales_tax_cents = round_cents(after_discount * TAX_RATE) if policy.tax_enabled else 0

    interest_percent = resolve_interest_percent(policy)
    taxed = after_discount + Decimal(sales_tax_cents)
    interest_amount_cents = round_cents(taxed * interest_percent / _HUNDRED)

    grand_total_cents = (
        line_totals.after_discount_cents
        + sales_tax_cents
        + interest_amount_cents
        + shipping_fee_cents
    )

    is_credit = policy.payment_type == PAYMENT_TYPE_CREDIT
    terms_months = int(policy.terms_months) if is_credit else 1

    return OrderTotals(
        subtotal_cents=line_totals.subtotal_cents,
        total_discount_cents=line_totals.total_discount_cents,
        after_discount_cents=line_totals.after_discount_cents,
        sales_tax_cents=sales_tax_cents,
        interest_percent=interest_percent,
        interest_amount_cents=interest_amount_cents,
        shipping_fee_cents=shipping_fee_cents,
        grand_total_cents=grand_total_cents,
        payment_type=policy.payment_type,
        terms_months=terms_months,
        per_term_amount_cents=per_term_amount(grand_total_cents, terms_months),
    )


def per_term_amount(grand_total_cents: int, terms_months: int) -> int:
    """Grand total split evenly over the terms, rounded half-up to the centavo."""
    if terms_months < 1:
        raise PricingError("terms_months must be at least 1")
    return round_cents(Decimal(grand_total_cents) / Decimal(terms_months))
