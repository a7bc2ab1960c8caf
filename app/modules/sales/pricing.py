# app/modules/sales/pricing.py
from decimal import Decimal, ROUND_HALF_UP
from typing import Tuple

CENT = Decimal("0.01")
ZERO = Decimal("0")

class PricingEngine:
    """
    Aritmética de moneda: conversión del subtotal en kip a USD/THB y cálculo
    del cambio. Todo en Decimal.
    """

    @staticmethod
    def convert_amount(amount: Decimal, rate: Decimal) -> Decimal:
        # Tasa no positiva -> 0, nunca divide por cero
        if rate is None or rate <= 0:
            return ZERO
        return (amount / rate).quantize(CENT, rounding=ROUND_HALF_UP)

    def convert(
        self,
        subtotal: Decimal,
        usd_rate: Decimal,
        thb_rate: Decimal
    ) -> Tuple[Decimal, Decimal]:
        return (
            self.convert_amount(subtotal, usd_rate),
            self.convert_amount(subtotal, thb_rate)
        )

    @staticmethod
    def compute_change(payment: Decimal, subtotal: Decimal) -> Decimal:
        return max(ZERO, payment - subtotal)
