"""Cálculo del precio final de una actividad"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

from services.activity_payments.exceptions import FreeActivityError
from services.activity_payments.models.pricing import ActivityPricingConfig, AppliedDiscount, PriceQuote

CENT = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(value: Any) -> Optional[Decimal]:
    """Monto enviado por el cliente; None si falta o no es numérico"""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def compute_final_price(
    config: ActivityPricingConfig,
    custom_amount: Any,
    applied_discount: Optional[AppliedDiscount],
) -> PriceQuote:
    """
    Precio original, descuento y monto final en centavos.

    El descuento se redondea al centavo, así final_amount_minor_units / 100
    coincide exactamente con final_price.
    """
    if config.is_free:
        raise FreeActivityError()

    if config.is_price_random:
        requested = parse_amount(custom_amount)
        if requested is None:
            requested = config.base_price
        original_price = max(config.min_price, min(config.max_price, requested))
    else:
        original_price = config.base_price
    original_price = to_money(original_price)

    percentage = applied_discount.percentage if applied_discount else 0
    discount_amount = to_money(original_price * Decimal(percentage) / Decimal(100))
    final_price = max(original_price - discount_amount, Decimal("0.00"))

    return PriceQuote(
        original_price=original_price,
        discount_amount=discount_amount,
        final_price=final_price,
        final_amount_minor_units=int((final_price * 100).to_integral_value(rounding=ROUND_HALF_UP)),
    )
