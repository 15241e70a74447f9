"""
Fee calculations
================

Formulas
--------
Shipping fee   = Base_Fee + Weight_kg x Fee_Per_Kg + COD_Amount x COD_Fee_Rate
Commission     = Shipping_Fee x Partnership_Commission_Rate / 100
Company COD fee = Collected_Amount x Company_COD_Fee_Rate
Sender payout  = Collected_Amount - Company_COD_Fee + Adjustment

Commission is what the originating company pays a partner for carrying an
order; the company COD fee is what a carrier keeps for handling cash.  They
are deliberately separate formulas over different bases.

All money is ``Decimal`` rounded half-up to 2 places.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce ints / floats / strings to a 2-dp ``Decimal``."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ShippingFeeQuote:
    base_fee: Decimal
    weight_fee: Decimal
    cod_fee: Decimal

    @property
    def total_fee(self) -> Decimal:
        return to_money(self.base_fee + self.weight_fee + self.cod_fee)


class ShippingFeeCalculator:
    """High-level API used by the order service and the quote endpoint."""

    def __init__(
        self,
        base_fee: float = 30000.0,
        fee_per_kg: float = 5000.0,
        cod_fee_rate: float = 0.01,
    ):
        self.base_fee = to_money(base_fee)
        self.fee_per_kg = Decimal(str(fee_per_kg))
        self.cod_fee_rate = Decimal(str(cod_fee_rate))

    def quote(
        self, weight_kg: Optional[Decimal] = None, cod_amount: Optional[Decimal] = None
    ) -> ShippingFeeQuote:
        weight = Decimal(str(weight_kg or 0))
        cod = Decimal(str(cod_amount or 0))
        return ShippingFeeQuote(
            base_fee=self.base_fee,
            weight_fee=to_money(weight * self.fee_per_kg),
            cod_fee=to_money(cod * self.cod_fee_rate),
        )


def transfer_commission(shipping_fee, commission_rate) -> Decimal:
    """Commission owed to the partner company for a transferred order."""
    fee = Decimal(str(shipping_fee or 0))
    rate = Decimal(str(commission_rate or 0))
    return to_money(fee * rate / Decimal(100))


def company_cod_fee(collected_amount, fee_rate) -> Decimal:
    """Share of collected cash the carrier keeps before paying the sender."""
    amount = Decimal(str(collected_amount or 0))
    return to_money(amount * Decimal(str(fee_rate)))


def sender_payout(collected_amount, company_fee, adjustment=None) -> Decimal:
    return to_money(
        Decimal(str(collected_amount or 0))
        - Decimal(str(company_fee or 0))
        + Decimal(str(adjustment or 0))
    )
