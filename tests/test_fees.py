"""Unit tests for shipping fee, commission and COD payout formulas."""

from decimal import Decimal

import pytest

from cargolink.domain.fees import (
    ShippingFeeCalculator,
    company_cod_fee,
    sender_payout,
    to_money,
    transfer_commission,
)


@pytest.fixture
def calculator():
    return ShippingFeeCalculator(base_fee=30000, fee_per_kg=5000, cod_fee_rate=0.01)


class TestShippingFee:
    def test_base_only(self, calculator):
        quote = calculator.quote()
        assert quote.base_fee == Decimal("30000.00")
        assert quote.weight_fee == Decimal("0.00")
        assert quote.cod_fee == Decimal("0.00")
        assert quote.total_fee == Decimal("30000.00")

    def test_weight_and_cod(self, calculator):
        # 30000 + 2.5 * 5000 + 500000 * 1 %
        quote = calculator.quote(Decimal("2.5"), Decimal("500000"))
        assert quote.weight_fee == Decimal("12500.00")
        assert quote.cod_fee == Decimal("5000.00")
        assert quote.total_fee == Decimal("47500.00")

    def test_cod_fee_rounds_half_up(self, calculator):
        # 12345 * 0.01 = 123.45 ; 12345.5 * 0.01 = 123.455 -> 123.46
        assert calculator.quote(cod_amount=Decimal("12345.5")).cod_fee == Decimal("123.46")


class TestMoney:
    def test_to_money_accepts_floats_without_binary_noise(self):
        assert to_money(0.1 + 0.2) == Decimal("0.30")

    def test_to_money_none_is_zero(self):
        assert to_money(None) == Decimal("0.00")


class TestCommissionAndPayout:
    def test_commission(self):
        assert transfer_commission(Decimal("47500"), Decimal("10")) == Decimal("4750.00")

    def test_zero_rate_commission(self):
        assert transfer_commission(Decimal("47500"), 0) == Decimal("0.00")

    def test_company_cod_fee(self):
        assert company_cod_fee(Decimal("500000"), 0.02) == Decimal("10000.00")

    def test_payout_without_adjustment(self):
        assert sender_payout(Decimal("500000"), Decimal("10000")) == Decimal("490000.00")

    def test_payout_with_negative_adjustment(self):
        assert sender_payout(
            Decimal("500000"), Decimal("10000"), Decimal("-20000")
        ) == Decimal("470000.00")
