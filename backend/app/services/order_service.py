# Overview: Service-layer operations for sales orders; checkout, accept/reject, admin edits and completion.

"""
Sales Order Service

WHY: An order moves from customer checkout through admin review to
completion, where stock is deducted and the pricing snapshot and
installment schedule are fixed.

LIFECYCLE:
- pending   -> accepted | rejected   (admin review)
- accepted  -> completed | rejected  (admin processing)
- completed and rejected are terminal
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Order, OrderItem, InventoryItem, TruckDelivery
from ..models.customers import PAYMENT_TYPE_CREDIT
from ..models.orders import (
    ORDER_STATUS_PENDING,
    ORDER_STATUS_ACCEPTED,
    ORDER_STATUS_REJECTED,
    ORDER_STATUS_COMPLETED,
)
from ..validation import ConflictError, describe_db_error
from app.time_utils import utcnow, business_today, add_months
from .activity_service import log_activity
from .concurrency import lock_for_update, run_with_retry, compare_and_set_status
from .customer_service import CustomerInfo, get_or_create_customer, missing_checkout_fields, CustomerError
from .installment_service import approve_order
from .pricing_service import (
    PricedLine,
    PricingPolicy,
    OrderTotals,
    PricingError,
    compute_order_totals,
    interest_percent_for_terms,
)


MAX_QTY_PER_LINE = 1000
MAX_DISCOUNT_PERCENT = Decimal("50")
MIN_DISCOUNT_PERCENT = Decimal("0")


class OrderError(Exception):
    """Raised for order operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class OrderStateError(OrderError):
    """The order is not in a status that allows the operation."""


class OrderNotFoundError(OrderError):
    """No order with the given id."""


@dataclass(frozen=True)
class Processor:
    """Admin performing an order action."""
    email: str
    name: str | None = None
    role: str | None = "admin"


def order_txn_code(order: Order) -> str:
    """Display code TXN-YYYYMMDD-XXXXXX derived from the order id and creation date."""
    created = order.date_created or utcnow()
    suffix = f"{order.id:06d}"[-6:]
    return f"TXN-{created:%Y%m%d}-{suffix}"


def _get_order(order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if not order:
        raise OrderNotFoundError(f"Order {order_id} not found")
    return order


def get_order(order_id: int) -> Order:
    return _get_order(order_id)


def list_orders(
    *,
    status: str | None = None,
    customer_ids: list[int] | None = None,
    limit: int = 100,
) -> list[Order]:
    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if customer_ids is not None:
        query = query.filter(Order.customer_id.in_(customer_ids))
    return query.order_by(Order.id.desc()).limit(limit).all()


# =============================================================================
# PRICING HELPERS
# =============================================================================

def priced_lines(order: Order, *, use_fulfilled: bool = False) -> list[PricedLine]:
    """
    Calculator input for an order's items.

    use_fulfilled prices each line at its fulfilled quantity when one was set.
    """
    lines = []
    for item in order.items:
        quantity = item.quantity
        if use_fulfilled and item.fulfilled_quantity is not None:
            quantity = item.fulfilled_quantity
        lines.append(PricedLine(
            quantity=quantity or 0,
            unit_price_cents=item.price_cents or 0,
            discount_percent=Decimal(item.discount_percent or 0),
            out_of_stock=item.out_of_stock,
        ))
    return lines


def quote_order(
    order: Order,
    *,
    tax_enabled: bool = True,
    terms_months: int | None = None,
    interest_override: Decimal | None = None,
) -> OrderTotals:
    """Totals the admin would lock in by completing the order with these settings."""
    is_credit = order.payment_type == PAYMENT_TYPE_CREDIT
    policy = PricingPolicy(
        payment_type=order.payment_type,
        tax_enabled=tax_enabled,
        terms_months=(terms_months or order.payment_terms or 1) if is_credit else None,
        interest_override=interest_override if is_credit else None,
        allow_interest_override=True,
        shipping_fee_cents=order.delivery_shipping_fee_cents,
    )
    return compute_order_totals(priced_lines(order, use_fulfilled=True), policy)


def saved_totals(order: Order) -> dict:
    """
    Totals for display. Completed orders report their stored snapshot;
    open orders are re-derived from their lines.
    """
    if order.status == ORDER_STATUS_COMPLETED and order.grand_total_with_interest_cents is not None:
        lines = compute_order_totals(
            priced_lines(order, use_fulfilled=True),
            PricingPolicy(tax_enabled=False),
        )
        interest_percent = Decimal(order.interest_percent or 0)
        return {
            "subtotal_cents": lines.subtotal_cents,
            "total_discount_cents": lines.total_discount_cents,
            "after_discount_cents": lines.after_discount_cents,
            "sales_tax_cents": order.sales_tax_cents or 0,
            "interest_percent": str(interest_percent),
            "interest_amount_cents": (
                order.grand_total_with_interest_cents
                - lines.after_discount_cents
                - (order.sales_tax_cents or 0)
                - (order.shipping_fee_cents or 0)
            ),
            "shipping_fee_cents": order.shipping_fee_cents or 0,
            "grand_total_cents": order.grand_total_with_interest_cents,
            "payment_type": order.payment_type,
            "terms_months": order.payment_terms or 1,
            "per_term_amount_cents": order.per_term_amount_cents,
        }
    return quote_order(order).to_dict()


# =============================================================================
# CHECKOUT
# =============================================================================

def place_order(
    info: CustomerInfo,
    cart: list[dict],
    *,
    terms_months: int | None = None,
    accepted_terms: bool = False,
    user_id: int | None = None,
) -> Order:
    """
    Customer checkout: upsert the customer, then create a pending order with
    unit prices snapshotted from inventory.

    Credit orders take their interest from the term table; customers cannot
    choose a different rate.
    """
    missing = missing_checkout_fields(info)
    if not cart:
        missing.append("Cart")

    is_credit = info.payment_type == PAYMENT_TYPE_CREDIT
    if is_credit:
        if not terms_months:
            missing.append("Payment Terms (months)")
        if not accepted_terms:
            missing.append("Accept Terms & Conditions")
    if missing:
        raise OrderError("Please complete all required fields.", details={"missing": missing})

    interest_percent = None
    if is_credit:
        try:
            interest_percent = interest_percent_for_terms(terms_months)
        except PricingError as exc:
            raise OrderError(str(exc))

    def _op() -> Order:
        try:
            customer = get_or_create_customer(info, user_id=user_id)
        except CustomerError as exc:
            raise OrderError(str(exc), details=exc.details)

        items: list[OrderItem] = []
        for entry in cart:
            inventory_id = entry.get("inventory_id")
            quantity = entry.get("quantity")
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
                raise OrderError("Each cart line needs a quantity of at least 1", details={"inventory_id": inventory_id})
            if quantity > MAX_QTY_PER_LINE:
                raise OrderError(
                    f"Maximum {MAX_QTY_PER_LINE} per item. For more, please submit another transaction.",
                    details={"inventory_id": inventory_id},
                )
            item = db.session.get(InventoryItem, inventory_id) if inventory_id else None
            if not item:
                raise OrderError(f"Inventory item {inventory_id} not found")
            items.append(OrderItem(
                inventory_id=item.id,
                quantity=quantity,
                price_cents=item.unit_price_cents or 0,
                discount_percent=Decimal("0"),
            ))

        totals = compute_order_totals(
            [PricedLine(quantity=i.quantity, unit_price_cents=i.price_cents) for i in items],
            PricingPolicy(tax_enabled=False),
        )

        order = Order(
            customer_id=customer.id,
            status=ORDER_STATUS_PENDING,
            payment_type=customer.payment_type,
            total_amount_cents=totals.subtotal_cents,
        )
        if is_credit:
            order.terms = f"Net {terms_months} Monthly"
            order.payment_terms = terms_months
            order.interest_percent = interest_percent

        db.session.add(order)
        db.session.flush()
        for item in items:
            item.order_id = order.id
        db.session.add_all(items)

        log_activity(
            user_email=customer.email or "guest",
            user_role="customer",
            action="Place Order",
            entity_type="order",
            entity_id=order.id,
            details={
                "customer_code": customer.code,
                "total_amount_cents": order.total_amount_cents,
                "payment_type": order.payment_type,
                "terms_months": order.payment_terms,
            },
        )
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s placed by customer %s", order.id, order.customer_id)
    return order


def get_order_totals(order_id: int) -> dict:
    """Totals for an order, from its snapshot once completed."""
    return saved_totals(_get_order(order_id))


# =============================================================================
# ADMIN REVIEW
# =============================================================================

def accept_order(order_id: int, processor: Processor) -> Order:
    """pending -> accepted; a second concurrent accept sees zero rows and fails."""
    def _op() -> Order:
        _get_order(order_id)
        moved = compare_and_set_status(
            Order,
            order_id,
            expected=ORDER_STATUS_PENDING,
            values={"status": ORDER_STATUS_ACCEPTED, "accepted_at": utcnow(), "version_id": Order.version_id + 1},
        )
        if not moved:
            raise OrderStateError("Order was already processed")

        log_activity(
            user_email=processor.email,
            user_role=processor.role,
            action="Accept Sales Order",
            entity_type="order",
            entity_id=order_id,
        )
        db.session.commit()
        return _get_order(order_id)

    return run_with_retry(_op)


def reject_order(order_id: int, processor: Processor) -> Order:
    """pending or accepted -> rejected."""
    def _op() -> Order:
        order = _get_order(order_id, lock=True)
        if order.status not in (ORDER_STATUS_PENDING, ORDER_STATUS_ACCEPTED):
            raise OrderStateError(f"Cannot reject order with status {order.status}")

        order.status = ORDER_STATUS_REJECTED
        order.rejected_at = utcnow()

        log_activity(
            user_email=processor.email,
            user_role=processor.role,
            action="Reject Sales Order",
            entity_type="order",
            entity_id=order.id,
            details={
                "customer_id": order.customer_id,
                "items": [
                    {"inventory_id": i.inventory_id, "ordered_qty": i.quantity, "unit_price_cents": i.price_cents}
                    for i in order.items
                ],
                "total_amount_cents": order.total_amount_cents,
                "payment_type": order.payment_type,
            },
        )
        db.session.commit()
        return order

    return run_with_retry(_op)


def clamp_discount(value: Decimal) -> Decimal:
    """Entry-time clamp of an admin-entered discount to [0, 50]."""
    return max(MIN_DISCOUNT_PERCENT, min(MAX_DISCOUNT_PERCENT, Decimal(value)))


def update_order_item(
    order_id: int,
    item_id: int,
    *,
    discount_percent: Decimal | None = None,
    fulfilled_quantity: int | None = None,
    remarks: str | None = None,
) -> OrderItem:
    """
    Admin edits while processing an order.

    The discount is clamped to [0, 50] here, at entry; the pricing service
    trusts whatever is stored.
    """
    def _op() -> OrderItem:
        order = _get_order(order_id, lock=True)
        if order.status not in (ORDER_STATUS_PENDING, ORDER_STATUS_ACCEPTED):
            raise OrderStateError(f"Cannot edit items of order with status {order.status}")

        item = lock_for_update(db.session.query(OrderItem).filter_by(id=item_id, order_id=order_id)).first()
        if not item:
            raise OrderNotFoundError(f"Order item {item_id} not found on order {order_id}")

        if discount_percent is not None:
            item.discount_percent = clamp_discount(discount_percent)
        if fulfilled_quantity is not None:
            if fulfilled_quantity < 0 or fulfilled_quantity > item.quantity:
                raise OrderError(
                    f"Fulfilled quantity must be between 0 and {item.quantity}",
                    details={"item_id": item_id},
                )
            item.fulfilled_quantity = fulfilled_quantity
        if remarks is not None:
            item.remarks = remarks

        db.session.commit()
        return item

    return run_with_retry(_op)


# =============================================================================
# COMPLETION
# =============================================================================

def complete_order(
    order_id: int,
    processor: Processor,
    *,
    po_number: str,
    salesman: str,
    forwarder: str | None = None,
    tax_enabled: bool = True,
    terms_months: int | None = None,
    interest_override: Decimal | None = None,
    first_due_date: date | None = None,
) -> Order:
    """
    accepted -> completed.

    Deducts stock by fulfilled quantity, computes the totals once, and hands
    them to approve_order, which stores the snapshot and the schedule. Any
    failure rolls back the whole completion.
    """
    missing = [label for label, value in (("PO Number", po_number), ("Salesman", salesman)) if not (value or "").strip()]
    if missing:
        raise OrderError("Please fill all required fields!", details={"missing": missing})

    def _op() -> Order:
        order = _get_order(order_id, lock=True)
        if order.status != ORDER_STATUS_ACCEPTED:
            raise OrderStateError(f"Cannot complete order with status {order.status}")

        for item in order.items:
            fulfilled = item.quantity if item.fulfilled_quantity is None else item.fulfilled_quantity
            stock = lock_for_update(db.session.query(InventoryItem).filter_by(id=item.inventory_id)).first()
            if stock is None or (stock.quantity or 0) - fulfilled < 0:
                name = stock.product_name if stock else item.inventory_id
                raise OrderError(f"Insufficient stock for {name}", details={"inventory_id": item.inventory_id})
            stock.quantity = stock.quantity - fulfilled
            item.fulfilled_quantity = fulfilled

        try:
            totals = quote_order(
                order,
                tax_enabled=tax_enabled,
                terms_months=terms_months,
                interest_override=interest_override,
            )
        except PricingError as exc:
            raise OrderError(str(exc))

        approve_order(
            order,
            totals,
            first_due_date=first_due_date or add_months(business_today(), 1),
            po_number=po_number.strip(),
            salesman=salesman.strip(),
            forwarder=(forwarder or "").strip() or None,
            processed_by_email=processor.email,
            processed_by_name=processor.name,
            processed_by_role=processor.role,
        )

        now = utcnow()
        order.status = ORDER_STATUS_COMPLETED
        order.date_completed = now
        order.processed_at = now

        log_activity(
            user_email=processor.email,
            user_role=processor.role,
            action="Complete Sales Order",
            entity_type="order",
            entity_id=order.id,
            details={"po_number": order.po_number, **totals.to_dict()},
        )
        db.session.commit()
        return order

    try:
        order = run_with_retry(_op)
    except IntegrityError as exc:
        message = describe_db_error(exc)
        if message:
            raise ConflictError(message)
        raise

    current_app.logger.info(
        "Order %s completed by %s: grand total %s cents over %s term(s)",
        order.id, processor.email, order.grand_total_with_interest_cents, order.payment_terms,
    )
    return order


# =============================================================================
# DELIVERY SCHEDULING
# =============================================================================

def schedule_delivery(
    order_ids: list[int],
    *,
    shipping_fee_cents: int = 0,
    destination: str | None = None,
    plate_number: str | None = None,
    schedule_date: date | None = None,
) -> TruckDelivery:
    """
    Group orders onto a truck delivery whose fee is charged to each of them.

    Open orders pick the fee up at completion. Completed orders keep their
    snapshot and owe the fee on top of it (see payment_service.payable_total_cents).
    """
    if not order_ids:
        raise OrderError("Select at least one order to schedule")
    if shipping_fee_cents < 0:
        raise OrderError("Shipping fee cannot be negative")

    def _op() -> TruckDelivery:
        delivery = TruckDelivery(
            destination=destination,
            plate_number=plate_number,
            schedule_date=schedule_date,
            shipping_fee_cents=shipping_fee_cents,
        )
        db.session.add(delivery)
        db.session.flush()

        for order_id in order_ids:
            order = _get_order(order_id, lock=True)
            if order.status == ORDER_STATUS_REJECTED:
                raise OrderStateError(f"Order {order_id} cannot be scheduled with status {order.status}")
            order.truck_delivery_id = delivery.id

        db.session.commit()
        return delivery

    delivery = run_with_retry(_op)
    current_app.logger.info("Truck delivery %s scheduled for orders %s", delivery.id, order_ids)
    return delivery
