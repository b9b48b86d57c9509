from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date


ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_ACCEPTED = "accepted"
ORDER_STATUS_REJECTED = "rejected"
ORDER_STATUS_COMPLETED = "completed"

INSTALLMENT_STATUS_PENDING = "pending"
INSTALLMENT_STATUS_PAID = "paid"


def _decimal_to_str(value) -> str | None:
    return None if value is None else str(value)


class TruckDelivery(db.Model):
    """Delivery run; carries the shipping fee charged to its orders."""
    __tablename__ = "truck_deliveries"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    destination = db.Column(db.String(255), nullable=True)
    plate_number = db.Column(db.String(32), nullable=True)
    schedule_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(32), nullable=False, default="Scheduled")
    shipping_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "destination": self.destination,
            "plate_number": self.plate_number,
            "schedule_date": to_iso_date(self.schedule_date),
            "status": self.status,
            "shipping_fee_cents": self.shipping_fee_cents,
        }


class Order(db.Model):
    """
    Sales order placed by a customer at checkout.

    LIFECYCLE: pending -> accepted -> completed, or pending/accepted -> rejected.

    `total_amount_cents` is the checkout subtotal. The pricing snapshot
    (sales tax, interest, grand total, per-term amount) is written once by
    approve_order when the order is completed.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("po_number", name="unique_po_number"),
        db.Index("ix_orders_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)

    # Cash | Credit, snapshotted from the customer at checkout
    payment_type = db.Column(db.String(16), nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Credit terms ("Net 3 Monthly", 3 months, 6.00%)
    terms = db.Column(db.String(64), nullable=True)
    payment_terms = db.Column(db.Integer, nullable=True)
    interest_percent = db.Column(db.Numeric(6, 2), nullable=True)

    # Snapshot written at completion
    sales_tax_cents = db.Column(db.Integer, nullable=True)
    grand_total_with_interest_cents = db.Column(db.Integer, nullable=True)
    per_term_amount_cents = db.Column(db.Integer, nullable=True)
    # Shipping fee known at completion, included in grand_total_with_interest_cents
    shipping_fee_cents = db.Column(db.Integer, nullable=True)
    first_due_date = db.Column(db.Date, nullable=True)

    po_number = db.Column(db.String(64), nullable=True)
    salesman = db.Column(db.String(255), nullable=True)
    forwarder = db.Column(db.String(255), nullable=True)
    processed_by_email = db.Column(db.String(255), nullable=True)
    processed_by_name = db.Column(db.String(255), nullable=True)
    processed_by_role = db.Column(db.String(32), nullable=True)

    truck_delivery_id = db.Column(db.Integer, db.ForeignKey("truck_deliveries.id"), nullable=True, index=True)

    date_created = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    date_completed = db.Column(db.DateTime(timezone=True), nullable=True)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    truck_delivery = db.relationship("TruckDelivery", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def delivery_shipping_fee_cents(self) -> int:
        if self.truck_delivery is None:
            return 0
        return self.truck_delivery.shipping_fee_cents or 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "status": self.status,
            "payment_type": self.payment_type,
            "total_amount_cents": self.total_amount_cents,
            "terms": self.terms,
            "payment_terms": self.payment_terms,
            "interest_percent": _decimal_to_str(self.interest_percent),
            "sales_tax_cents": self.sales_tax_cents,
            "grand_total_with_interest_cents": self.grand_total_with_interest_cents,
            "per_term_amount_cents": self.per_term_amount_cents,
            "first_due_date": to_iso_date(self.first_due_date),
            "shipping_fee_cents": self.shipping_fee_cents,
            "po_number": self.po_number,
            "salesman": self.salesman,
            "forwarder": self.forwarder,
            "processed_by_email": self.processed_by_email,
            "processed_by_name": self.processed_by_name,
            "processed_by_role": self.processed_by_role,
            "truck_delivery_id": self.truck_delivery_id,
            "date_created": to_utc_z(self.date_created),
            "accepted_at": to_utc_z(self.accepted_at),
            "rejected_at": to_utc_z(self.rejected_at),
            "date_completed": to_utc_z(self.date_completed),
            "processed_at": to_utc_z(self.processed_at),
        }


class OrderItem(db.Model):
    """
    One product line on an order.

    `price_cents` is the unit price snapshot taken at checkout.
    `discount_percent` is a signed percent (negative values act as add-ons).
    `fulfilled_quantity` is set by the admin when completing the order.
    """
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("inventory.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_percent = db.Column(db.Numeric(6, 2), nullable=False, default=0)
    fulfilled_quantity = db.Column(db.Integer, nullable=True)
    remarks = db.Column(db.Text, nullable=True)

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))
    inventory = db.relationship("InventoryItem")

    @property
    def out_of_stock(self) -> bool:
        """Nothing was delivered for this line."""
        return self.fulfilled_quantity is not None and self.fulfilled_quantity <= 0

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "inventory_id": self.inventory_id,
            "product_name": self.inventory.product_name if self.inventory else None,
            "unit": self.inventory.unit if self.inventory else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_percent": _decimal_to_str(self.discount_percent),
            "fulfilled_quantity": self.fulfilled_quantity,
            "remarks": self.remarks,
        }


class OrderInstallment(db.Model):
    """
    One monthly term of a credit order's installment schedule.

    Rows are written by approve_order and mutated only when a payment is
    received (receive_payment_and_apply). status is "paid" iff
    amount_paid_cents >= amount_due_cents.
    """
    __tablename__ = "order_installments"
    __table_args__ = (
        db.UniqueConstraint("order_id", "term_no", name="uq_order_installments_order_term"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    term_no = db.Column(db.Integer, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    amount_due_cents = db.Column(db.Integer, nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=INSTALLMENT_STATUS_PENDING)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    order = db.relationship(
        "Order",
        backref=db.backref("installments", lazy=True, order_by="OrderInstallment.term_no"),
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "term_no": self.term_no,
            "due_date": to_iso_date(self.due_date),
            "amount_due_cents": self.amount_due_cents,
            "amount_paid_cents": self.amount_paid_cents,
            "status": self.status,
        }
