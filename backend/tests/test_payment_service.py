"""
Tests for payment submission, receipt, rejection and balance policy.
"""

from datetime import timedelta

import pytest

from app.extensions import db
from app.models import OrderInstallment, Payment
from app.services import order_service, payment_service
from app.services.concurrency import compare_and_set_status
from app.services.payment_service import (
    PaymentError,
    PaymentAlreadyProcessedError,
    get_remaining_balance,
    receive_payment_and_apply,
    reject_payment,
    submit_payment,
)
from app.time_utils import business_today


def _cheque_kwargs(**overrides):
    kwargs = {
        "method": "Cheque",
        "cheque_number": "000123",
        "bank_name": "BDO",
        "cheque_date": business_today(),
    }
    kwargs.update(overrides)
    return kwargs


def _terms(order_id):
    return (
        db.session.query(OrderInstallment)
        .filter_by(order_id=order_id)
        .order_by(OrderInstallment.term_no)
        .all()
    )


class TestBalancePolicy:
    def test_pending_cash_counts_as_paid(self, db_session, make_completed_order):
        order = make_completed_order()
        assert get_remaining_balance(order.id) == 1120000

        payment, _ = submit_payment(order.id, 120000, method="Cash")
        assert payment.status == "pending"
        assert get_remaining_balance(order.id) == 1000000

        receive_payment_and_apply(payment.id, "admin@uniasia.test")
        assert get_remaining_balance(order.id) == 1000000

    def test_rejected_cash_restores_balance(self, db_session, make_completed_order):
        order = make_completed_order()
        payment, _ = submit_payment(order.id, 120000, method="Cash")
        assert get_remaining_balance(order.id) == 1000000

        reject_payment(payment.id, "admin@uniasia.test")
        assert get_remaining_balance(order.id) == 1120000

    def test_pending_cheque_not_counted_until_received(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        payment, _ = submit_payment(order.id, 395733, **_cheque_kwargs())
        assert get_remaining_balance(order.id) == 1187200

        receive_payment_and_apply(payment.id, "admin@uniasia.test")
        assert get_remaining_balance(order.id) == 1187200 - 395733

    def test_cash_clamped_to_balance(self, db_session, make_completed_order):
        order = make_completed_order()
        first, _ = submit_payment(order.id, 1070000, method="Cash")
        receive_payment_and_apply(first.id, "admin@uniasia.test")
        assert get_remaining_balance(order.id) == 50000

        payment, check = submit_payment(order.id, 5000000, method="Cash")

        assert check.clamped
        assert check.notices
        assert payment.amount_cents == 50000
        assert get_remaining_balance(order.id) == 0


class TestSubmission:
    def test_order_must_be_completed(self, db_session, catalog):
        from app.services.order_service import place_order
        from conftest import customer_info

        order = place_order(customer_info(), [{"inventory_id": catalog["cement"].id, "quantity": 1}])
        with pytest.raises(PaymentError, match="completed orders"):
            submit_payment(order.id, 100, method="Cash")

    def test_cheque_details_required(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        with pytest.raises(PaymentError, match="Bank Name"):
            submit_payment(order.id, 395733, **_cheque_kwargs(bank_name=None))

    def test_cheque_date_not_in_past(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        with pytest.raises(PaymentError, match="past"):
            submit_payment(order.id, 395733, **_cheque_kwargs(cheque_date=business_today() - timedelta(days=1)))

    def test_credit_amount_must_be_term_multiple(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        with pytest.raises(PaymentError, match="exact multiple"):
            submit_payment(order.id, 400000, **_cheque_kwargs())
        assert db_session.query(Payment).count() == 0

    def test_credit_order_paid_in_cash_still_covers_whole_terms(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        with pytest.raises(PaymentError, match="exact multiple"):
            submit_payment(order.id, 12345, method="Cash")
        assert db_session.query(Payment).count() == 0
        assert get_remaining_balance(order.id) == 1187200

        payment, check = submit_payment(order.id, 395733, method="Cash")
        assert payment.amount_cents == 395733
        assert check.num_terms_covered == 1

    def test_default_method_follows_payment_type(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        payment, _ = submit_payment(
            order.id, 395733,
            cheque_number="1", bank_name="BPI", cheque_date=business_today(),
        )
        assert payment.method == "Cheque"

    def test_fully_paid_order_rejects_payment(self, db_session, make_completed_order):
        order = make_completed_order()
        submit_payment(order.id, 1120000, method="Cash")
        with pytest.raises(PaymentError, match="fully paid"):
            submit_payment(order.id, 100, method="Cash")


class TestReceive:
    def test_applies_to_earliest_terms(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        payment, check = submit_payment(order.id, 2 * 395733, **_cheque_kwargs())
        assert check.num_terms_covered == 2

        received = receive_payment_and_apply(payment.id, "admin@uniasia.test")

        assert received.status == "received"
        assert received.received_by == "admin@uniasia.test"
        assert received.received_at is not None
        assert [t.status for t in _terms(order.id)] == ["paid", "paid", "pending"]
        assert _terms(order.id)[2].amount_paid_cents == 0

    def test_second_receive_is_already_processed(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        payment, _ = submit_payment(order.id, 395733, **_cheque_kwargs())

        receive_payment_and_apply(payment.id, "admin@uniasia.test")
        with pytest.raises(PaymentAlreadyProcessedError):
            receive_payment_and_apply(payment.id, "other@uniasia.test")

        terms = _terms(order.id)
        assert terms[0].amount_paid_cents == 395733
        assert terms[1].amount_paid_cents == 0

    def test_rejected_payment_cannot_be_received(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        payment, _ = submit_payment(order.id, 395733, **_cheque_kwargs())

        rejected = reject_payment(payment.id, "admin@uniasia.test")
        assert rejected.status == "rejected"
        assert rejected.rejected_by == "admin@uniasia.test"

        with pytest.raises(PaymentAlreadyProcessedError):
            receive_payment_and_apply(payment.id, "admin@uniasia.test")
        with pytest.raises(PaymentAlreadyProcessedError):
            reject_payment(payment.id, "admin@uniasia.test")
        assert all(t.amount_paid_cents == 0 for t in _terms(order.id))

    def test_unknown_payment(self, db_session):
        with pytest.raises(payment_service.PaymentNotFoundError):
            receive_payment_and_apply(999, "admin@uniasia.test")


def test_payment_summary(db_session, make_completed_order):
    order = make_completed_order(payment_type="Credit", terms_months=3)
    payment, _ = submit_payment(order.id, 395733, **_cheque_kwargs())
    receive_payment_and_apply(payment.id, "admin@uniasia.test")
    submit_payment(order.id, 395733, **_cheque_kwargs(cheque_number="000124"))

    summary = payment_service.get_payment_summary(order.id)

    assert summary["grand_total_cents"] == 1187200
    assert summary["received_cents"] == 395733
    assert summary["pending_cheque_cents"] == 395733
    assert summary["remaining_balance_cents"] == 1187200 - 395733
    assert summary["unpaid_terms"] == 2
    assert summary["current_term_amount_cents"] == 395733
    assert len(summary["installments"]) == 3


class TestShippingFee:
    def test_delivery_after_completion_adds_fee(self, db_session, make_completed_order):
        order = make_completed_order()
        assert get_remaining_balance(order.id) == 1120000

        order_service.schedule_delivery([order.id], shipping_fee_cents=50000)

        assert get_remaining_balance(order.id) == 1170000
        summary = payment_service.get_payment_summary(order.id)
        assert summary["unbilled_shipping_cents"] == 50000
        assert summary["grand_total_cents"] == 1170000

    def test_snapshotted_fee_not_charged_twice(self, db_session, catalog, processor):
        from app.services.order_service import accept_order, complete_order, place_order
        from conftest import customer_info

        order = place_order(customer_info(), [{"inventory_id": catalog["cement"].id, "quantity": 1}])
        order_service.schedule_delivery([order.id], shipping_fee_cents=50000)
        accept_order(order.id, processor)
        complete_order(order.id, processor, po_number="PO-SHIP", salesman="Pedro", tax_enabled=False)

        assert get_remaining_balance(order.id) == 60000
        assert payment_service.get_payment_summary(order.id)["unbilled_shipping_cents"] == 0

    def test_credit_fee_paid_with_exact_balance(self, db_session, make_completed_order):
        order = make_completed_order(payment_type="Credit", terms_months=3)
        order_service.schedule_delivery([order.id], shipping_fee_cents=50000)

        assert get_remaining_balance(order.id) == 1187200 + 50000
        check = payment_service.check_payment_amount(order.id, 1187200 + 50000)
        assert check.ok
        assert check.num_terms_covered == 3


def test_pending_exit_is_taken_once(db_session, make_completed_order):
    order = make_completed_order(payment_type="Credit", terms_months=3)
    payment, _ = submit_payment(order.id, 395733, **_cheque_kwargs())

    # Both updates run before either commits
    first = compare_and_set_status(Payment, payment.id, expected="pending", values={"status": "received"})
    second = compare_and_set_status(Payment, payment.id, expected="pending", values={"status": "rejected"})
    db_session.commit()

    assert first is True
    assert second is False
    db_session.refresh(payment)
    assert payment.status == "received"
