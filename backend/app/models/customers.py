from __future__ import annotations

from ..extensions import db
from app.time_utils import to_utc_z


PAYMENT_TYPE_CASH = "Cash"
PAYMENT_TYPE_CREDIT = "Credit"
VALID_PAYMENT_TYPES = (PAYMENT_TYPE_CASH, PAYMENT_TYPE_CREDIT)


class Customer(db.Model):
    """
    Customer master data captured at checkout or account creation.

    `code` is the customer's transaction code (TXN-YYYYMMDD-XXXXXX). It is
    assigned once and never rewritten when contact details change.

    Address fields hold PSGC codes for region/province/city/barangay plus the
    composed human-readable address.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("code", name="customers_code_key"),
        db.Index("ix_customers_email", "email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    contact_person = db.Column(db.String(255), nullable=True)
    customer_type = db.Column(db.String(64), nullable=True)

    # Cash | Credit
    payment_type = db.Column(db.String(16), nullable=False, default=PAYMENT_TYPE_CASH)

    address = db.Column(db.Text, nullable=True)
    house_street = db.Column(db.String(255), nullable=True)
    landmark = db.Column(db.String(255), nullable=True)
    area = db.Column(db.String(128), nullable=True)
    region_code = db.Column(db.String(16), nullable=True)
    province_code = db.Column(db.String(16), nullable=True)
    city_code = db.Column(db.String(16), nullable=True)
    barangay_code = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("customers", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "contact_person": self.contact_person,
            "customer_type": self.customer_type,
            "payment_type": self.payment_type,
            "address": self.address,
            "house_street": self.house_street,
            "landmark": self.landmark,
            "area": self.area,
            "region_code": self.region_code,
            "province_code": self.province_code,
            "city_code": self.city_code,
            "barangay_code": self.barangay_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
