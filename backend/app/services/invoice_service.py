# Overview: Invoice and delivery receipt documents for completed orders, as plain dicts.

from __future__ import annotations

from ..extensions import db
from ..models import Order
from app.time_utils import to_utc_z, to_iso_date
from .order_service import OrderNotFoundError, order_txn_code, priced_lines, saved_totals
from .pricing_service import compute_line_totals, round_cents


def _load(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise OrderNotFoundError(f"Order {order_id} not found")
    return order


def _header(order: Order) -> dict:
    customer = order.customer
    return {
        "order_id": order.id,
        "txn_code": order_txn_code(order),
        "customer_code": customer.code if customer else None,
        "customer_name": customer.name if customer else None,
        "contact_person": customer.contact_person if customer else None,
        "phone": customer.phone if customer else None,
        "address": customer.address if customer else None,
        "payment_type": order.payment_type,
        "terms": order.terms,
        "po_number": order.po_number,
        "salesman": order.salesman,
        "forwarder": order.forwarder,
        "status": order.status,
        "date_created": to_utc_z(order.date_created),
        "date_completed": to_utc_z(order.date_completed),
        "first_due_date": to_iso_date(order.first_due_date),
    }


def _line_rows(order: Order, *, skip_out_of_stock: bool) -> list[dict]:
    rows = []
    for item, line in zip(order.items, priced_lines(order, use_fulfilled=True)):
        if skip_out_of_stock and line.out_of_stock:
            continue
        rows.append({
            "item_id": item.id,
            "product_name": item.inventory.product_name if item.inventory else None,
            "unit": item.inventory.unit if item.inventory else None,
            "ordered_quantity": item.quantity,
            "quantity": line.quantity,
            "unit_price_cents": item.price_cents,
            "discount_percent": str(item.discount_percent or 0),
            "amount_cents": round_cents(line.net),
            "out_of_stock": item.out_of_stock,
            "remarks": item.remarks,
        })
    return rows


def build_invoice(order_id: int) -> dict:
    """Sales invoice: every line, with the order's totals and installment schedule."""
    order = _load(order_id)
    return {
        **_header(order),
        "lines": _line_rows(order, skip_out_of_stock=False),
        "totals": saved_totals(order),
        "installments": [t.to_dict() for t in order.installments],
    }


def build_delivery_receipt(order_id: int) -> dict:
    """
    Delivery receipt: only delivered lines count toward the subtotal.

    Older orders completed without a saved grand total fall back to
    net + shipping + tax for the amount due.
    """
    order = _load(order_id)
    lines = compute_line_totals(priced_lines(order, use_fulfilled=True), exclude_out_of_stock=True)

    shipping = order.shipping_fee_cents
    if shipping is None:
        shipping = order.delivery_shipping_fee_cents
    tax = order.sales_tax_cents or 0

    amount_due = order.grand_total_with_interest_cents or 0
    if amount_due == 0:
        amount_due = lines.after_discount_cents + shipping + tax

    return {
        **_header(order),
        "lines": _line_rows(order, skip_out_of_stock=True),
        "subtotal_cents": lines.subtotal_cents,
        "total_discount_cents": lines.total_discount_cents,
        "net_cents": lines.after_discount_cents,
        "sales_tax_cents": tax,
        "shipping_fee_cents": shipping,
        "amount_due_cents": amount_due,
    }
