# Overview: Service-layer operations for order payments; balance, submission, receipt and rejection.

"""
Payment Processing Service

WHY: Customers pay completed orders by cash or cheque. An admin then receives
the payment (applying it to the balance and installments) or rejects it.

DESIGN PRINCIPLES:
- Payments are separate from orders (many-to-one relationship)
- A payment leaves "pending" exactly once; both exits are conditional updates
- Receiving is the only path that changes installment amount_paid
- Amount rules live in installment_service; this module supplies the balance
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Order, Payment, OrderInstallment
from ..models.customers import PAYMENT_TYPE_CREDIT
from ..models.orders import ORDER_STATUS_COMPLETED
from ..models.payments import (
    METHOD_CASH,
    METHOD_CHEQUE,
    VALID_METHODS,
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_RECEIVED,
    PAYMENT_STATUS_REJECTED,
)
from app.time_utils import utcnow, business_today
from .activity_service import log_activity
from .concurrency import lock_for_update, run_with_retry, compare_and_set_status
from .installment_service import (
    AmountCheck,
    apply_amount_to_terms,
    current_term_amount,
    unpaid_terms,
    validate_cash_amount,
    validate_credit_amount,
)


class PaymentError(Exception):
    """Raised for payment operation errors."""
    pass


class PaymentNotFoundError(PaymentError):
    pass


class PaymentAlreadyProcessedError(PaymentError):
    """The payment already left the pending state."""
    pass


# A submitted cash payment reduces the balance before an admin receives it;
# a pending cheque does not count until it clears.
CASH_PENDING_COUNTS_AS_PAID = True


def default_method_for(order: Order) -> str:
    """Cash orders pay in cash, credit orders by cheque."""
    return METHOD_CHEQUE if order.payment_type == PAYMENT_TYPE_CREDIT else METHOD_CASH


def _get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise PaymentError(f"Order {order_id} not found")
    return order


def _get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise PaymentNotFoundError(f"Payment {payment_id} not found")
    return payment


# =============================================================================
# BALANCE
# =============================================================================

def unbilled_shipping_cents(order: Order) -> int:
    """
    Truck delivery fee not covered by the completion snapshot.

    Orders scheduled onto a truck after completion owe the fee on top of
    the snapshot; a fee already snapshotted is never charged twice.
    """
    if order.status != ORDER_STATUS_COMPLETED:
        return 0
    return max(order.delivery_shipping_fee_cents - (order.shipping_fee_cents or 0), 0)


def payable_total_cents(order: Order) -> int:
    """
    Grand total the customer owes.

    The completion snapshot plus any delivery fee assigned after completion;
    orders without a snapshot have nothing payable yet.
    """
    if not order.grand_total_with_interest_cents:
        return 0
    return order.grand_total_with_interest_cents + unbilled_shipping_cents(order)


def _sum_payments(order_id: int, *, status: str, method: str | None = None) -> int:
    query = db.session.query(func.coalesce(func.sum(Payment.amount_cents), 0)).filter(
        Payment.order_id == order_id,
        Payment.status == status,
    )
    if method:
        query = query.filter(Payment.method == method)
    return int(query.scalar() or 0)


def paid_cents(order_id: int) -> int:
    """Received payments plus, by policy, pending cash payments."""
    total = _sum_payments(order_id, status=PAYMENT_STATUS_RECEIVED)
    if CASH_PENDING_COUNTS_AS_PAID:
        total += _sum_payments(order_id, status=PAYMENT_STATUS_PENDING, method=METHOD_CASH)
    return total


def get_remaining_balance(order_id: int) -> int:
    """Payable total minus counted payments, never below zero."""
    order = _get_order(order_id)
    return max(payable_total_cents(order) - paid_cents(order_id), 0)


def check_payment_amount(order_id: int, amount_cents: int, method: str | None = None) -> AmountCheck:
    """
    Validate an amount the customer is about to submit. No writes.

    Credit orders must cover whole terms (or the exact balance) whatever the
    method; on cash orders amounts above the balance are clamped to it.
    """
    order = _get_order(order_id)
    method = method or default_method_for(order)
    if method not in VALID_METHODS:
        raise PaymentError(f"Invalid payment method: {method}. Must be one of {list(VALID_METHODS)}")

    remaining = get_remaining_balance(order_id)
    if order.payment_type == PAYMENT_TYPE_CREDIT:
        return validate_credit_amount(amount_cents, order.installments, remaining)
    return validate_cash_amount(amount_cents, remaining)


# =============================================================================
# SUBMISSION (customer)
# =============================================================================

def submit_payment(
    order_id: int,
    amount_cents: int,
    *,
    method: str | None = None,
    cheque_number: str | None = None,
    bank_name: str | None = None,
    cheque_date: date | None = None,
    image_url: str | None = None,
    submitted_by: str | None = None,
) -> tuple[Payment, AmountCheck]:
    """
    Record a pending payment against a completed order.

    Args:
        order_id: Order being paid
        amount_cents: Amount entered by the customer
        method: Cash or Cheque (defaults from the order's payment type)
        cheque_number, bank_name, cheque_date: required for cheques
        image_url: optional proof-of-payment reference
        submitted_by: email recorded on the activity log

    Returns:
        (payment, check); check.amount_cents is the amount actually stored,
        which differs from amount_cents only when a cash amount was clamped.
    """
    def _op() -> tuple[Payment, AmountCheck]:
        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if not order:
            raise PaymentError(f"Order {order_id} not found")
        if order.status != ORDER_STATUS_COMPLETED:
            raise PaymentError("Payments can only be made on completed orders")

        chosen = method or default_method_for(order)
        if chosen not in VALID_METHODS:
            raise PaymentError(f"Invalid payment method: {chosen}. Must be one of {list(VALID_METHODS)}")

        if chosen == METHOD_CHEQUE:
            missing = [
                label for label, value in (
                    ("Cheque Number", cheque_number),
                    ("Bank Name", bank_name),
                    ("Cheque Date", cheque_date),
                ) if not value
            ]
            if missing:
                raise PaymentError(f"Missing cheque details: {', '.join(missing)}")
            if cheque_date < business_today():
                raise PaymentError("Cheque date cannot be in the past.")

        if get_remaining_balance(order_id) <= 0:
            raise PaymentError("This order is already fully paid.")

        check = check_payment_amount(order_id, amount_cents, chosen)
        if not check.ok:
            raise PaymentError(check.message)

        payment = Payment(
            customer_id=order.customer_id,
            order_id=order.id,
            amount_cents=check.amount_cents,
            method=chosen,
            status=PAYMENT_STATUS_PENDING,
            cheque_number=cheque_number if chosen == METHOD_CHEQUE else None,
            bank_name=bank_name if chosen == METHOD_CHEQUE else None,
            cheque_date=cheque_date if chosen == METHOD_CHEQUE else None,
            image_url=image_url,
        )
        db.session.add(payment)
        db.session.flush()

        log_activity(
            user_email=submitted_by or "customer",
            user_role="customer",
            action="Submit Payment",
            entity_type="payment",
            entity_id=payment.id,
            details={
                "order_id": order.id,
                "amount_cents": payment.amount_cents,
                "method": payment.method,
                "clamped": check.clamped,
            },
        )
        db.session.commit()
        return payment, check

    payment, check = run_with_retry(_op)
    current_app.logger.info(
        "Payment %s submitted for order %s: %s cents (%s)",
        payment.id, payment.order_id, payment.amount_cents, payment.method,
    )
    return payment, check


# =============================================================================
# ADMIN DECISIONS
# =============================================================================

def receive_payment_and_apply(payment_id: int, admin_email: str) -> Payment:
    """
    Mark a pending payment received and apply it to the order's installments.

    The status change and the installment updates commit together. A second
    call for the same payment raises PaymentAlreadyProcessedError.
    """
    def _op() -> Payment:
        _get_payment(payment_id)
        moved = compare_and_set_status(
            Payment,
            payment_id,
            expected=PAYMENT_STATUS_PENDING,
            values={
                "status": PAYMENT_STATUS_RECEIVED,
                "received_at": utcnow(),
                "received_by": admin_email,
            },
        )
        if not moved:
            raise PaymentAlreadyProcessedError("Payment has already been processed")

        payment = _get_payment(payment_id)
        db.session.refresh(payment)

        leftover = 0
        terms = lock_for_update(
            db.session.query(OrderInstallment)
            .filter_by(order_id=payment.order_id)
            .order_by(OrderInstallment.term_no)
        ).all()
        if terms:
            leftover = apply_amount_to_terms(terms, payment.amount_cents)
            if leftover:
                current_app.logger.warning(
                    "Payment %s exceeded the installment schedule of order %s by %s cents",
                    payment.id, payment.order_id, leftover,
                )

        log_activity(
            user_email=admin_email,
            user_role="admin",
            action="Receive Payment",
            entity_type="payment",
            entity_id=payment.id,
            details={
                "order_id": payment.order_id,
                "amount_cents": payment.amount_cents,
                "method": payment.method,
                "leftover_cents": leftover,
            },
        )
        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    current_app.logger.info("Payment %s received by %s", payment.id, admin_email)
    return payment


def reject_payment(payment_id: int, admin_email: str) -> Payment:
    """
    pending -> rejected via a conditional update. Rejected payments have no
    effect on the balance or installments.
    """
    def _op() -> Payment:
        _get_payment(payment_id)
        moved = compare_and_set_status(
            Payment,
            payment_id,
            expected=PAYMENT_STATUS_PENDING,
            values={
                "status": PAYMENT_STATUS_REJECTED,
                "rejected_at": utcnow(),
                "rejected_by": admin_email,
            },
        )
        if not moved:
            raise PaymentAlreadyProcessedError("Payment has already been processed")

        payment = _get_payment(payment_id)
        db.session.refresh(payment)
        log_activity(
            user_email=admin_email,
            user_role="admin",
            action="Reject Payment",
            entity_type="payment",
            entity_id=payment.id,
            details={"order_id": payment.order_id, "amount_cents": payment.amount_cents},
        )
        db.session.commit()
        return payment

    payment = run_with_retry(_op)
    current_app.logger.info("Payment %s rejected by %s", payment.id, admin_email)
    return payment


# =============================================================================
# QUERIES
# =============================================================================

def get_payment_summary(order_id: int) -> dict:
    """Balance breakdown plus the installment schedule for an order."""
    order = _get_order(order_id)
    terms = list(order.installments)
    received = _sum_payments(order_id, status=PAYMENT_STATUS_RECEIVED)
    pending_cash = _sum_payments(order_id, status=PAYMENT_STATUS_PENDING, method=METHOD_CASH)
    pending_cheque = _sum_payments(order_id, status=PAYMENT_STATUS_PENDING, method=METHOD_CHEQUE)
    total = payable_total_cents(order)

    return {
        "order_id": order.id,
        "payment_type": order.payment_type,
        "default_method": default_method_for(order),
        "grand_total_cents": total,
        "unbilled_shipping_cents": unbilled_shipping_cents(order),
        "received_cents": received,
        "pending_cash_cents": pending_cash,
        "pending_cheque_cents": pending_cheque,
        "paid_cents": paid_cents(order_id),
        "remaining_balance_cents": max(total - paid_cents(order_id), 0),
        "current_term_amount_cents": current_term_amount(terms),
        "unpaid_terms": len(unpaid_terms(terms)),
        "installments": [t.to_dict() for t in terms],
    }


def list_payments(
    *,
    status: str | None = None,
    order_id: int | None = None,
    customer_ids: list[int] | None = None,
    limit: int = 200,
) -> list[Payment]:
    query = db.session.query(Payment)
    if status:
        query = query.filter(Payment.status == status)
    if order_id is not None:
        query = query.filter(Payment.order_id == order_id)
    if customer_ids is not None:
        query = query.filter(Payment.customer_id.in_(customer_ids))
    return query.order_by(Payment.id.desc()).limit(limit).all()
