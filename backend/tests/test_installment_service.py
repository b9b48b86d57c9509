"""
Tests for installment schedule math, payment application and amount checks.
"""

from datetime import date

import pytest

from app.services.installment_service import (
    InstallmentError,
    MSG_CLAMPED,
    MSG_EXCEEDS_BALANCE,
    MSG_EXCEEDS_TERMS,
    MSG_NOT_MULTIPLE,
    MSG_NOT_POSITIVE,
    apply_amount_to_terms,
    build_installment_schedule,
    current_term_amount,
    split_into_terms,
    unpaid_terms,
    validate_cash_amount,
    validate_credit_amount,
)


class TestSchedule:
    def test_last_term_absorbs_remainder(self):
        terms = build_installment_schedule(1187200, 3, date(2026, 11, 16))

        assert [t.amount_due_cents for t in terms] == [395733, 395733, 395734]
        assert sum(t.amount_due_cents for t in terms) == 1187200
        assert all(t.status == "pending" and t.amount_paid_cents == 0 for t in terms)

    def test_due_dates_step_by_month_and_clamp(self):
        terms = build_installment_schedule(300000, 3, date(2026, 1, 31))

        assert [t.due_date for t in terms] == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 31)]

    def test_twelve_terms_cross_year(self):
        terms = build_installment_schedule(1000000, 12, date(2026, 11, 5))
        assert terms[-1].due_date == date(2027, 10, 5)
        assert [t.term_no for t in terms] == list(range(1, 13))

    @pytest.mark.parametrize("total,count", [(1, 12), (100, 3), (99999, 6), (7, 12), (0, 3)])
    def test_sum_is_exact_and_nonnegative(self, total, count):
        amounts = split_into_terms(total, count)
        assert sum(amounts) == total
        assert all(a >= 0 for a in amounts)

    def test_zero_terms_rejected(self):
        with pytest.raises(InstallmentError):
            split_into_terms(1000, 0)


class TestApplyAmount:
    def _schedule(self):
        return build_installment_schedule(1187200, 3, date(2026, 11, 16))

    def test_exact_k_terms_marks_k_paid(self):
        terms = self._schedule()
        leftover = apply_amount_to_terms(terms, 395733)

        assert leftover == 0
        assert [t.status for t in terms] == ["paid", "pending", "pending"]
        assert terms[1].amount_paid_cents == 0

    def test_remainder_carries_to_next_term(self):
        terms = self._schedule()
        apply_amount_to_terms(terms, 500000)

        assert terms[0].status == "paid"
        assert terms[1].amount_paid_cents == 500000 - 395733
        assert terms[1].status == "pending"

    def test_partial_term_then_fill(self):
        terms = self._schedule()
        apply_amount_to_terms(terms, 100000)
        apply_amount_to_terms(terms, 295733)

        assert terms[0].status == "paid"
        assert terms[0].amount_paid_cents == 395733
        assert terms[1].amount_paid_cents == 0

    def test_overpayment_returns_leftover(self):
        terms = self._schedule()
        leftover = apply_amount_to_terms(terms, 1187300)

        assert leftover == 100
        assert all(t.status == "paid" for t in terms)

    def test_two_terms_after_first_paid(self):
        terms = self._schedule()
        apply_amount_to_terms(terms, 395733)

        check = validate_credit_amount(2 * 395733, terms, 1187200 - 395733)
        assert check.ok
        assert check.num_terms_covered == 2

        apply_amount_to_terms(terms, 2 * 395733)
        assert terms[1].status == "paid"
        # Last term carries the extra centavo
        assert terms[2].amount_paid_cents == 395733
        assert terms[2].status == "pending"
        assert current_term_amount(terms) == 395734


class TestCreditValidation:
    def _schedule(self):
        return build_installment_schedule(1187200, 3, date(2026, 11, 16))

    def test_single_term(self):
        check = validate_credit_amount(395733, self._schedule(), 1187200)
        assert check.ok
        assert check.num_terms_covered == 1

    def test_not_a_multiple(self):
        check = validate_credit_amount(400000, self._schedule(), 1187200)
        assert not check.ok
        assert check.message == MSG_NOT_MULTIPLE

    def test_exceeds_terms(self):
        check = validate_credit_amount(4 * 395733, self._schedule(), 1187200)
        assert not check.ok
        assert check.message == MSG_EXCEEDS_TERMS

    def test_exact_remaining_balance(self):
        check = validate_credit_amount(1187200, self._schedule(), 1187200)
        assert check.ok
        assert check.num_terms_covered == 3

    def test_zero_rejected(self):
        check = validate_credit_amount(0, self._schedule(), 1187200)
        assert not check.ok
        assert check.message == MSG_NOT_POSITIVE

    def test_whole_schedule_at_rounded_up_term_rejected(self):
        terms = build_installment_schedule(20000, 3, date(2026, 11, 16))
        assert [t.amount_due_cents for t in terms] == [6667, 6667, 6666]

        check = validate_credit_amount(3 * 6667, terms, 20000)
        assert not check.ok
        assert check.message == MSG_EXCEEDS_BALANCE

        assert validate_credit_amount(20000, terms, 20000).ok

    def test_partly_paid_term_keeps_amount_due(self):
        terms = self._schedule()
        terms[0].amount_paid_cents = 100000
        remaining = 1187200 - 100000

        check = validate_credit_amount(395733, terms, remaining)
        assert check.ok
        assert check.num_terms_covered == 1

        check = validate_credit_amount(295733, terms, remaining)
        assert not check.ok
        assert check.message == MSG_NOT_MULTIPLE

    def test_unpaid_terms_order(self):
        terms = self._schedule()
        terms[0].amount_paid_cents = terms[0].amount_due_cents
        assert [t.term_no for t in unpaid_terms(terms)] == [2, 3]


class TestCashValidation:
    def test_clamped_to_balance(self):
        check = validate_cash_amount(5000000, 50000)

        assert check.ok
        assert check.clamped
        assert check.amount_cents == 50000
        assert MSG_CLAMPED in check.notices

    def test_within_balance(self):
        check = validate_cash_amount(20000, 50000)
        assert check.ok
        assert not check.clamped
        assert check.amount_cents == 20000

    def test_negative_rejected(self):
        assert not validate_cash_amount(-1, 50000).ok
