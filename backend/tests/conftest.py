"""
Pytest fixtures for the UniAsia order backend tests.

Provides test database setup, accounts with bearer tokens, a small catalog
and helpers for driving an order to completion.
"""

import pytest
from app import create_app
from app.extensions import db
from app.models import InventoryItem
from app.models.auth import ROLE_ADMIN, ROLE_CUSTOMER
from app.services.auth_service import create_user
from app.services.customer_service import CustomerInfo
from app.services.order_service import Processor, place_order, accept_order, complete_order
from app.services.session_service import create_session


TEST_PASSWORD = "Password123!"

CUSTOMER_FORM = {
    "name": "Dela Cruz Hardware",
    "email": "buyer@delacruz.ph",
    "phone": "+63 917 123 4567",
    "contact_person": "Juan Dela Cruz",
    "customer_type": "Hardware Store",
    "payment_type": "Cash",
    "house_street": "12 Rizal St.",
    "region_code": "040000000",
    "province_code": "041000000",
    "city_code": "041005000",
    "barangay_code": "041005001",
    "region_name": "CALABARZON",
    "province_name": "Batangas",
    "city_name": "Batangas City",
    "barangay_name": "Poblacion",
}


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user(email="admin@uniasia.test", password=TEST_PASSWORD, role=ROLE_ADMIN, name="Admin")


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    _, token = create_session(admin_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def processor(admin_user):
    return Processor(email=admin_user.email, name=admin_user.name, role=admin_user.role)


@pytest.fixture(scope='function')
def customer_user(db_session):
    return create_user(email="buyer@delacruz.ph", password=TEST_PASSWORD, role=ROLE_CUSTOMER, name="Juan")


@pytest.fixture(scope='function')
def customer_headers(customer_user):
    _, token = create_session(customer_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope='function')
def catalog(db_session):
    """Two stocked items: a ₱100.00 item and a ₱250.00 item."""
    cement = InventoryItem(sku="CEM-40", product_name="Portland Cement 40kg", unit="bag",
                           unit_price_cents=10000, quantity=500)
    rebar = InventoryItem(sku="RB-10", product_name="Deformed Bar 10mm", unit="pcs",
                          unit_price_cents=25000, quantity=200)
    db_session.add_all([cement, rebar])
    db_session.commit()
    return {"cement": cement, "rebar": rebar}


def customer_info(**overrides) -> CustomerInfo:
    data = dict(CUSTOMER_FORM)
    data.update(overrides)
    return CustomerInfo.from_dict(data)


@pytest.fixture(scope='function')
def make_completed_order(db_session, catalog, processor):
    """
    Factory: place, accept and complete an order for 100 bags of cement
    (₱10,000.00 subtotal) with tax on.
    """
    def _make(payment_type="Cash", terms_months=None, quantity=100, po_number="PO-1001", user_id=None):
        order = place_order(
            customer_info(payment_type=payment_type),
            [{"inventory_id": catalog["cement"].id, "quantity": quantity}],
            terms_months=terms_months,
            accepted_terms=payment_type == "Credit",
            user_id=user_id,
        )
        accept_order(order.id, processor)
        return complete_order(
            order.id,
            processor,
            po_number=po_number,
            salesman="Pedro",
            tax_enabled=True,
        )

    return _make
