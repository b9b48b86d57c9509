# Overview: Service-layer operations for credit installment schedules; schedule building, payment application and amount validation.

"""
Installment Scheduling Service

WHY: Credit orders are paid in equal monthly terms. The schedule is fixed
when the order is completed; received payments fill terms in order.

DESIGN PRINCIPLES:
- Schedule math and amount validation are pure (no database access)
- The last term absorbs the rounding remainder, so terms sum to the grand total
- Payments fill the earliest unpaid term first, carrying any remainder forward
- approve_order() is the only writer of schedule rows; payment_service is the
  only writer of amount_paid
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Protocol, Sequence

from ..extensions import db
from ..models import Order, OrderInstallment
from ..models.orders import INSTALLMENT_STATUS_PAID, INSTALLMENT_STATUS_PENDING
from app.time_utils import add_months, to_iso_date
from .pricing_service import OrderTotals, per_term_amount


class InstallmentError(ValueError):
    """Raised for invalid schedule inputs."""


class TermLike(Protocol):
    term_no: int
    amount_due_cents: int
    amount_paid_cents: int
    status: str


# =============================================================================
# SCHEDULE CREATION
# =============================================================================

@dataclass
class ScheduledTerm:
    term_no: int
    due_date: date
    amount_due_cents: int
    amount_paid_cents: int = 0
    status: str = INSTALLMENT_STATUS_PENDING

    def to_dict(self) -> dict:
        return {
            "term_no": self.term_no,
            "due_date": to_iso_date(self.due_date),
            "amount_due_cents": self.amount_due_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "status": self.status,
        }


def split_into_terms(grand_total_cents: int, terms_months: int) -> list[int]:
    """
    Per-term amounts for a grand total.

    Every term but the last is round(total / terms); the last absorbs the
    difference so that sum(amounts) == grand_total_cents exactly.
    """
    if terms_months < 1:
        raise InstallmentError("terms_months must be at least 1")
    if grand_total_cents < 0:
        raise InstallmentError("grand total cannot be negative")

    base = per_term_amount(grand_total_cents, terms_months)
    if base * (terms_months - 1) > grand_total_cents:
        # Tiny totals over many terms: rounding up would leave the last term negative
        base = grand_total_cents // terms_months

    amounts = [base] * (terms_months - 1)
    amounts.append(grand_total_cents - base * (terms_months - 1))
    return amounts


def build_installment_schedule(
    grand_total_cents: int,
    terms_months: int,
    first_due_date: date,
) -> list[ScheduledTerm]:
    """Monthly schedule starting at first_due_date, one row per term."""
    return [
        ScheduledTerm(
            term_no=index + 1,
            due_date=add_months(first_due_date, index),
            amount_due_cents=amount,
        )
        for index, amount in enumerate(split_into_terms(grand_total_cents, terms_months))
    ]


# =============================================================================
# PAYMENT APPLICATION
# =============================================================================

def is_term_paid(term: TermLike) -> bool:
    return (term.amount_paid_cents or 0) >= term.amount_due_cents


def unpaid_terms(terms: Iterable[TermLike]) -> list:
    """Unpaid terms in term_no order."""
    return sorted((t for t in terms if not is_term_paid(t)), key=lambda t: t.term_no)


def current_term_amount(terms: Iterable[TermLike]) -> int:
    """amount_due of the earliest unpaid term, or 0 when fully paid."""
    pending = unpaid_terms(terms)
    return pending[0].amount_due_cents if pending else 0


def outstanding_cents(terms: Iterable[TermLike]) -> int:
    return sum(max(t.amount_due_cents - (t.amount_paid_cents or 0), 0) for t in terms)


def apply_amount_to_terms(terms: Iterable[TermLike], amount_cents: int) -> int:
    """
    Apply a received amount greedily to the earliest unpaid terms.

    Each term is filled up to its amount_due before moving to the next; a
    term whose amount_paid reaches amount_due is marked paid. Mutates the
    given rows and returns the centavos left over after the last term.
    """
    if amount_cents < 0:
        raise InstallmentError("amount cannot be negative")

    remaining = amount_cents
    for term in unpaid_terms(terms):
        if remaining <= 0:
            break
        room = term.amount_due_cents - (term.amount_paid_cents or 0)
        applied = min(room, remaining)
        term.amount_paid_cents = (term.amount_paid_cents or 0) + applied
        remaining -= applied
        if is_term_paid(term):
            term.status = INSTALLMENT_STATUS_PAID
    return remaining


# =============================================================================
# AMOUNT VALIDATION (client feedback; receive path is authoritative)
# =============================================================================

MSG_NOT_POSITIVE = "Please enter a valid amount greater than 0."
MSG_NOT_MULTIPLE = "Amount must be an exact multiple of the current term amount or the full remaining balance."
MSG_EXCEEDS_TERMS = "Amount exceeds the remaining installments."
MSG_EXCEEDS_BALANCE = "Amount exceeds the remaining balance."
MSG_NO_TERMS = "This order has no unpaid installments."
MSG_CLAMPED = "Amount exceeds the remaining balance and was reduced to the balance."


@dataclass
class AmountCheck:
    """Outcome of validating a submitted amount."""
    ok: bool
    amount_cents: int
    message: str | None = None
    clamped: bool = False
    num_terms_covered: int = 0
    notices: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "amount_cents": self.amount_cents,
            "message": self.message,
            "clamped": self.clamped,
            "num_terms_covered": self.num_terms_covered,
            "notices": list(self.notices),
        }


def validate_cash_amount(amount_cents: int, remaining_balance_cents: int) -> AmountCheck:
    """
    Cash orders: any positive amount; above the balance is clamped, not rejected.
    """
    if amount_cents is None or amount_cents <= 0:
        return AmountCheck(ok=False, amount_cents=amount_cents or 0, message=MSG_NOT_POSITIVE)

    if amount_cents > remaining_balance_cents:
        return AmountCheck(
            ok=True,
            amount_cents=max(remaining_balance_cents, 0),
            clamped=True,
            notices=[MSG_CLAMPED],
        )
    return AmountCheck(ok=True, amount_cents=amount_cents)


def validate_credit_amount(
    amount_cents: int,
    terms: Sequence[TermLike],
    remaining_balance_cents: int,
) -> AmountCheck:
    """
    Credit orders: amount must be k x the current term's amount_due
    (1 <= k <= unpaid terms), or exactly the remaining balance. It may never
    exceed the remaining balance.

    The exact amount_due of the next k terms is also accepted, since the
    last term carries the rounding remainder.
    """
    if amount_cents is None or amount_cents <= 0:
        return AmountCheck(ok=False, amount_cents=amount_cents or 0, message=MSG_NOT_POSITIVE)

    pending = unpaid_terms(terms)
    if amount_cents == remaining_balance_cents:
        return AmountCheck(ok=True, amount_cents=amount_cents, num_terms_covered=len(pending))

    if not pending:
        return AmountCheck(ok=False, amount_cents=amount_cents, message=MSG_NO_TERMS)

    term_amount = current_term_amount(pending)
    if term_amount <= 0:
        return AmountCheck(ok=False, amount_cents=amount_cents, message=MSG_NO_TERMS)

    covered, leftover = divmod(amount_cents, term_amount)
    if covered > len(pending):
        return AmountCheck(ok=False, amount_cents=amount_cents, message=MSG_EXCEEDS_TERMS, num_terms_covered=covered)
    if amount_cents > remaining_balance_cents:
        return AmountCheck(ok=False, amount_cents=amount_cents, message=MSG_EXCEEDS_BALANCE, num_terms_covered=covered)

    if leftover == 0:
        return AmountCheck(ok=True, amount_cents=amount_cents, num_terms_covered=covered)

    # Exact sum of the next k unpaid terms (last-term remainder)
    running = 0
    for k, term in enumerate(pending, start=1):
        running += term.amount_due_cents
        if running == amount_cents:
            return AmountCheck(ok=True, amount_cents=amount_cents, num_terms_covered=k)
        if running > amount_cents:
            break

    return AmountCheck(ok=False, amount_cents=amount_cents, message=MSG_NOT_MULTIPLE, num_terms_covered=covered)


# =============================================================================
# PERSISTENCE (approve_order)
# =============================================================================

def approve_order(
    order: Order,
    totals: OrderTotals,
    *,
    first_due_date: date,
    po_number: str,
    salesman: str,
    forwarder: str | None,
    processed_by_email: str,
    processed_by_name: str | None,
    processed_by_role: str | None,
) -> list[OrderInstallment]:
    """
    Persist the pricing snapshot and installment rows for a completing order.

    Must run inside the caller's transaction with the order row locked.
    Does not commit. Cash orders get a single-term snapshot and no rows.
    """
    if order.installments:
        raise InstallmentError(f"Order {order.id} already has an installment schedule")

    order.payment_terms = totals.terms_months
    order.interest_percent = totals.interest_percent if totals.is_credit else Decimal("0")
    order.sales_tax_cents = totals.sales_tax_cents
    order.grand_total_with_interest_cents = totals.grand_total_cents
    order.per_term_amount_cents = totals.per_term_amount_cents
    order.shipping_fee_cents = totals.shipping_fee_cents
    order.first_due_date = first_due_date
    order.po_number = po_number
    order.salesman = salesman
    order.forwarder = forwarder
    order.processed_by_email = processed_by_email
    order.processed_by_name = processed_by_name
    order.processed_by_role = processed_by_role
    if totals.is_credit:
        order.terms = f"Net {totals.terms_months} Monthly"

    if not totals.is_credit:
        return []

    rows = [
        OrderInstallment(
            order_id=order.id,
            term_no=term.term_no,
            due_date=term.due_date,
            amount_due_cents=term.amount_due_cents,
            amount_paid_cents=0,
            status=INSTALLMENT_STATUS_PENDING,
        )
        for term in build_installment_schedule(
            totals.grand_total_cents, totals.terms_months, first_due_date
        )
    ]
    db.session.add_all(rows)
    return rows


def get_order_installments(order_id: int) -> list[OrderInstallment]:
    return (
        db.session.query(OrderInstallment)
        .filter_by(order_id=order_id)
        .order_by(OrderInstallment.term_no)
        .all()
    )
