from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z, to_iso_date


METHOD_CASH = "Cash"
METHOD_CHEQUE = "Cheque"
VALID_METHODS = (METHOD_CASH, METHOD_CHEQUE)

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_RECEIVED = "received"
PAYMENT_STATUS_REJECTED = "rejected"


class Payment(db.Model):
    """
    Payment submitted by a customer against a completed order.

    LIFECYCLE: created "pending"; an admin moves it to "received" (applied to
    the balance and installments) or "rejected" (no effect). Immutable once
    it leaves "pending".
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_order_status", "order_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)

    # Cheque details (required for Cheque, optional for Cash)
    cheque_number = db.Column(db.String(64), nullable=True)
    bank_name = db.Column(db.String(128), nullable=True)
    cheque_date = db.Column(db.Date, nullable=True)
    image_url = db.Column(db.String(1024), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    received_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_by = db.Column(db.String(255), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by = db.Column(db.String(255), nullable=True)

    order = db.relationship("Order", backref=db.backref("payments", lazy=True, order_by="Payment.id"))
    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "order_id": self.order_id,
            "amount_cents": self.amount_cents,
            "method": self.method,
            "status": self.status,
            "cheque_number": self.cheque_number,
            "bank_name": self.bank_name,
            "cheque_date": to_iso_date(self.cheque_date),
            "image_url": self.image_url,
            "created_at": to_utc_z(self.created_at),
            "received_at": to_utc_z(self.received_at),
            "received_by": self.received_by,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejected_by": self.rejected_by,
        }
