from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


class InventoryItem(db.Model):
    """
    Sellable hardware item with its on-hand quantity.

    Prices are stored in centavos. `quantity` is decremented when an order
    is completed, by each line's fulfilled quantity.
    """
    __tablename__ = "inventory"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sku = db.Column(db.String(64), nullable=True, unique=True, index=True)
    product_name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    unit = db.Column(db.String(32), nullable=False, default="pcs")

    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_price_cents = db.Column(db.Integer, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.product_name!r} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "product_name": self.product_name,
            "category": self.category,
            "unit": self.unit,
            "unit_price_cents": self.unit_price_cents,
            "cost_price_cents": self.cost_price_cents,
            "quantity": self.quantity,
            "created_at": to_utc_z(self.created_at),
        }
