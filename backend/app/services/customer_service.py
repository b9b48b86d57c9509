# Overview: Service-layer operations for customers; transaction codes, address composition and account creation.

from __future__ import annotations

import re
import secrets
import string
from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Customer
from ..models.auth import ROLE_CUSTOMER
from ..models.customers import PAYMENT_TYPE_CASH, PAYMENT_TYPE_CREDIT, VALID_PAYMENT_TYPES
from app.time_utils import business_today
from .auth_service import create_user, normalize_email
from .concurrency import run_with_retry


# PSGC region code for the National Capital Region (no provinces)
NCR_REGION_CODE = "130000000"

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_ATTEMPTS = 5


class CustomerError(Exception):
    """Raised for customer record problems."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


@dataclass
class CustomerInfo:
    """Checkout / signup form fields."""
    name: str
    email: str | None = None
    phone: str | None = None
    contact_person: str | None = None
    customer_type: str | None = None
    payment_type: str = PAYMENT_TYPE_CASH
    house_street: str | None = None
    landmark: str | None = None
    area: str | None = None
    region_code: str | None = None
    province_code: str | None = None
    city_code: str | None = None
    barangay_code: str | None = None
    # Display names resolved by the address lookup, used for the composed address
    region_name: str | None = None
    province_name: str | None = None
    city_name: str | None = None
    barangay_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "CustomerInfo":
        fields = cls.__dataclass_fields__
        cleaned = {}
        for key in fields:
            value = data.get(key)
            if isinstance(value, str):
                value = value.strip() or None
            if value is not None:
                cleaned[key] = value
        cleaned.setdefault("name", "")
        return cls(**cleaned)

    @property
    def is_ncr(self) -> bool:
        return self.region_code == NCR_REGION_CODE


def generate_customer_code() -> str:
    """TXN-YYYYMMDD-XXXXXX with a random 6-character suffix."""
    suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))
    return f"TXN-{business_today():%Y%m%d}-{suffix}"


def normalize_phone(value: str | None) -> str:
    """
    Normalize a Philippine mobile number to 11-digit 09XXXXXXXXX form.

    Returns "" when the input is not a recognizable PH mobile number.
    """
    digits = re.sub(r"\D", "", value or "")
    if digits.startswith("63") and len(digits) == 12:
        return "0" + digits[2:]
    if len(digits) == 11 and digits.startswith("0"):
        return digits
    return ""


def compose_address(info: CustomerInfo) -> str:
    """House/street, barangay, city, province (skipped for NCR), region."""
    parts = [
        info.house_street,
        info.barangay_name,
        info.city_name,
        None if info.is_ncr else info.province_name,
        info.region_name,
    ]
    return ", ".join(p for p in parts if p)


def missing_checkout_fields(info: CustomerInfo) -> list[str]:
    """Labels of required checkout fields that are empty. Email and phone are optional."""
    missing = []
    if not info.name:
        missing.append("Customer Name")
    if not info.contact_person:
        missing.append("Contact Person")
    if not info.house_street:
        missing.append("House & Street")
    if not info.region_code:
        missing.append("Region")
    if not info.is_ncr and not info.province_code:
        missing.append("Province")
    if not info.city_code:
        missing.append("City / Municipality")
    if not info.barangay_code:
        missing.append("Barangay")
    return missing


def _apply_info(customer: Customer, info: CustomerInfo) -> None:
    customer.name = info.name
    customer.email = normalize_email(info.email) or None
    customer.phone = normalize_phone(info.phone) or info.phone
    customer.contact_person = info.contact_person
    customer.customer_type = info.customer_type
    customer.payment_type = PAYMENT_TYPE_CREDIT if info.payment_type == PAYMENT_TYPE_CREDIT else PAYMENT_TYPE_CASH
    customer.house_street = info.house_street
    customer.landmark = info.landmark
    customer.area = info.area
    customer.region_code = info.region_code
    customer.province_code = None if info.is_ncr else info.province_code
    customer.city_code = info.city_code
    customer.barangay_code = info.barangay_code
    customer.address = compose_address(info) or customer.address


def ensure_unique_customer_code() -> str:
    """Generate a code not yet used by any customer."""
    for attempt in range(_CODE_ATTEMPTS):
        code = generate_customer_code()
        if not db.session.query(Customer.id).filter_by(code=code).first():
            return code
        current_app.logger.warning("Customer code collision on attempt %d", attempt + 1)
    raise CustomerError("Could not allocate a unique transaction code")


def get_or_create_customer(info: CustomerInfo, user_id: int | None = None) -> Customer:
    """
    Find the customer by email (or linked user) and refresh contact and
    address fields, or create a new one with a fresh code.

    The code of an existing customer is never rewritten. Does not commit.
    """
    if not info.name:
        raise CustomerError("Customer Name is required")
    if info.payment_type not in VALID_PAYMENT_TYPES:
        raise CustomerError(f"Invalid payment type: {info.payment_type}")

    existing = None
    if user_id is not None:
        existing = db.session.query(Customer).filter_by(user_id=user_id).order_by(Customer.id.desc()).first()
    email = normalize_email(info.email)
    if existing is None and email:
        existing = db.session.query(Customer).filter_by(email=email).order_by(Customer.id.desc()).first()

    if existing is not None:
        _apply_info(existing, info)
        if user_id is not None and existing.user_id is None:
            existing.user_id = user_id
        db.session.flush()
        return existing

    customer = Customer(user_id=user_id, code=ensure_unique_customer_code())
    _apply_info(customer, info)
    db.session.add(customer)
    db.session.flush()
    return customer


def create_customer_account(info: CustomerInfo, password: str) -> Customer:
    """
    Account creation: login user plus customer record, in one transaction.
    """
    email = normalize_email(info.email)
    if not email:
        raise CustomerError("Email is required to create an account")

    def _op() -> Customer:
        user = create_user(email=email, password=password, role=ROLE_CUSTOMER, name=info.name, commit=False)
        created = get_or_create_customer(info, user_id=user.id)
        db.session.commit()
        return created

    customer = run_with_retry(_op)
    current_app.logger.info("Created customer account %s (%s)", customer.code, email)
    return customer


def get_customer(customer_id: int) -> Customer | None:
    return db.session.get(Customer, customer_id)


def customers_for_user(user_id: int) -> list[Customer]:
    return db.session.query(Customer).filter_by(user_id=user_id).order_by(Customer.id).all()
