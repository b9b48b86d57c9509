"""
Tests for the order pricing calculator.

Pure functions; no database fixtures needed.
"""

from decimal import Decimal

import pytest

from app.services.pricing_service import (
    PricedLine,
    PricingPolicy,
    PricingError,
    TAX_RATE,
    compute_line_totals,
    compute_order_totals,
    interest_percent_for_terms,
    per_term_amount,
)


def _lines(*specs):
    return [PricedLine(quantity=q, unit_price_cents=p, discount_percent=Decimal(str(d))) for q, p, d in specs]


class TestLineTotals:
    def test_subtotal_discount_and_net(self):
        totals = compute_line_totals(_lines((10, 10000, 10), (2, 25000, 0)))

        assert totals.subtotal_cents == 150000
        assert totals.total_discount_cents == 10000
        assert totals.after_discount_cents == 140000

    def test_missing_values_default_to_zero(self):
        line = PricedLine.from_mapping({"quantity": None, "unit_price_cents": "", "discount_percent": None})
        totals = compute_line_totals([line])

        assert totals.subtotal_cents == 0
        assert totals.after_discount_cents == 0

    def test_out_of_stock_excluded_only_when_requested(self):
        lines = [
            PricedLine(quantity=5, unit_price_cents=1000),
            PricedLine(quantity=3, unit_price_cents=2000, out_of_stock=True),
        ]

        assert compute_line_totals(lines).subtotal_cents == 11000
        assert compute_line_totals(lines, exclude_out_of_stock=True).subtotal_cents == 5000

    def test_calculator_does_not_clamp_discount(self):
        totals = compute_line_totals(_lines((1, 10000, 80)))
        assert totals.total_discount_cents == 8000

    @pytest.mark.parametrize("discount", ["0", "12.5", "33.33", "100"])
    def test_net_between_zero_and_gross(self, discount):
        line = PricedLine(quantity=7, unit_price_cents=1999, discount_percent=Decimal(discount))
        assert Decimal(0) <= line.net <= line.gross


class TestInterestTable:
    @pytest.mark.parametrize("terms,percent", [(1, "2"), (3, "6"), (6, "12"), (12, "24")])
    def test_table(self, terms, percent):
        assert interest_percent_for_terms(terms) == Decimal(percent)

    def test_out_of_table_term_rejected(self):
        with pytest.raises(PricingError):
            interest_percent_for_terms(4)


class TestOrderTotals:
    def test_cash_order_with_tax(self):
        totals = compute_order_totals(_lines((100, 10000, 0)), PricingPolicy(payment_type="Cash"))

        assert totals.after_discount_cents == 1000000
        assert totals.sales_tax_cents == 120000
        assert totals.interest_percent == 0
        assert totals.interest_amount_cents == 0
        assert totals.grand_total_cents == 1120000
        assert totals.terms_months == 1
        assert totals.per_term_amount_cents == 1120000

    def test_credit_three_months(self):
        totals = compute_order_totals(
            _lines((100, 10000, 0)),
            PricingPolicy(payment_type="Credit", terms_months=3),
        )

        assert totals.interest_percent == Decimal("6")
        assert totals.interest_amount_cents == 67200
        assert totals.grand_total_cents == 1187200
        assert totals.per_term_amount_cents == 395733

    def test_cash_ignores_terms_and_override(self):
        totals = compute_order_totals(
            _lines((1, 10000, 0)),
            PricingPolicy(payment_type="Cash", terms_months=12, interest_override=Decimal("30")),
        )
        assert totals.interest_amount_cents == 0
        assert totals.terms_months == 1

    def test_tax_disabled(self):
        totals = compute_order_totals(_lines((1, 10000, 0)), PricingPolicy(tax_enabled=False))
        assert totals.sales_tax_cents == 0
        assert totals.grand_total_cents == 10000

    def test_shipping_fee_added(self):
        totals = compute_order_totals(
            _lines((1, 10000, 0)),
            PricingPolicy(tax_enabled=False, shipping_fee_cents=50000),
        )
        assert totals.grand_total_cents == 60000

    def test_override_requires_permission(self):
        with pytest.raises(PricingError, match="fixed by the selected term"):
            compute_order_totals(
                _lines((1, 10000, 0)),
                PricingPolicy(payment_type="Credit", terms_months=3, interest_override=Decimal("10")),
            )

    def test_admin_override_allows_out_of_table_term(self):
        totals = compute_order_totals(
            _lines((1, 100000, 0)),
            PricingPolicy(
                payment_type="Credit",
                tax_enabled=False,
                terms_months=4,
                interest_override=Decimal("8"),
                allow_interest_override=True,
            ),
        )
        assert totals.interest_amount_cents == 8000
        assert totals.grand_total_cents == 108000
        assert totals.per_term_amount_cents == 27000

    def test_out_of_table_term_without_override_rejected(self):
        with pytest.raises(PricingError):
            compute_order_totals(_lines((1, 100, 0)), PricingPolicy(payment_type="Credit", terms_months=5))

    def test_credit_requires_terms(self):
        with pytest.raises(PricingError):
            compute_order_totals(_lines((1, 100, 0)), PricingPolicy(payment_type="Credit"))

    def test_grand_total_not_below_net_plus_tax(self):
        totals = compute_order_totals(
            _lines((3, 3333, 15), (1, 99, 0)),
            PricingPolicy(payment_type="Credit", terms_months=12, shipping_fee_cents=150),
        )
        assert totals.grand_total_cents >= totals.after_discount_cents + totals.sales_tax_cents

    def test_same_inputs_same_output(self):
        lines = _lines((7, 1234, 5))
        policy = PricingPolicy(payment_type="Credit", terms_months=6)
        assert compute_order_totals(lines, policy) == compute_order_totals(lines, policy)

    def test_tax_rate(self):
        assert TAX_RATE == Decimal("0.12")


def test_per_term_amount_rounds_half_up():
    assert per_term_amount(1187200, 3) == 395733
    assert per_term_amount(5, 2) == 3
