"""Tests for invoice and delivery receipt documents."""

from app.services.invoice_service import build_delivery_receipt, build_invoice


def test_invoice_header_and_totals(db_session, make_completed_order):
    order = make_completed_order(payment_type="Credit", terms_months=3)
    invoice = build_invoice(order.id)

    assert invoice["txn_code"].startswith("TXN-")
    assert invoice["customer_name"] == "Dela Cruz Hardware"
    assert invoice["terms"] == "Net 3 Monthly"
    assert invoice["totals"]["grand_total_cents"] == 1187200
    assert len(invoice["installments"]) == 3
    assert invoice["lines"][0]["amount_cents"] == 1000000


def test_receipt_falls_back_when_grand_total_missing(db_session, make_completed_order):
    order = make_completed_order()
    order.grand_total_with_interest_cents = 0
    db_session.commit()

    receipt = build_delivery_receipt(order.id)

    assert receipt["net_cents"] == 1000000
    assert receipt["sales_tax_cents"] == 120000
    assert receipt["amount_due_cents"] == 1120000


def test_line_amount_uses_fulfilled_quantity_and_discount(db_session, catalog, processor):
    from decimal import Decimal

    from app.services.order_service import accept_order, complete_order, place_order, update_order_item
    from conftest import customer_info

    order = place_order(customer_info(), [{"inventory_id": catalog["cement"].id, "quantity": 100}])
    accept_order(order.id, processor)
    update_order_item(order.id, order.items[0].id, fulfilled_quantity=50, discount_percent=Decimal("10"))
    complete_order(order.id, processor, po_number="PO-LINE", salesman="Pedro", tax_enabled=False)

    line = build_invoice(order.id)["lines"][0]
    assert line["ordered_quantity"] == 100
    assert line["quantity"] == 50
    assert line["amount_cents"] == 450000
    assert build_invoice(order.id)["totals"]["grand_total_cents"] == 450000
