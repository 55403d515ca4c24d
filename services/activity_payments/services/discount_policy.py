"""Evaluación de descuentos del lado del servidor"""
from datetime import datetime
from typing import List, Optional

from services.activity_payments.exceptions import DiscountExpired, DiscountNotAvailable, InvalidDiscount
from services.activity_payments.models.pricing import (
    ActivityPricingConfig,
    AppliedDiscount,
    DiscountType,
    DISCOUNT_LABELS,
)

SEGMENT_DISCOUNTS = (
    DiscountType.SENIORS,
    DiscountType.STUDENTS,
    DiscountType.FAMILIES,
    DiscountType.DISABILITY,
)


def parse_discount_code(selected_discount: Optional[str]) -> DiscountType:
    """Convertir el código enviado por el cliente; vacío equivale a 'none'"""
    if not selected_discount:
        return DiscountType.NONE
    try:
        return DiscountType(selected_discount)
    except ValueError:
        raise InvalidDiscount()


def evaluate_discount(
    config: ActivityPricingConfig,
    selected_discount: Optional[str],
    now: datetime,
) -> Optional[AppliedDiscount]:
    """
    Decidir si el descuento seleccionado aplica a la actividad.

    Args:
        config: configuración de precio de la actividad
        selected_discount: código enviado por el cliente (seniors, students, ...)
        now: hora actual (con zona horaria)

    Returns:
        AppliedDiscount, o None si no se seleccionó descuento

    Raises:
        InvalidDiscount: código desconocido
        DiscountNotAvailable: la actividad no ofrece ese descuento
        DiscountExpired: la inscripción temprana ya cerró
    """
    discount_type = parse_discount_code(selected_discount)
    if discount_type == DiscountType.NONE:
        return None

    percentage = config.percentage_for(discount_type)
    if percentage <= 0:
        raise DiscountNotAvailable()

    if discount_type == DiscountType.EARLY_BIRD:
        deadline = config.discount_early_bird_deadline
        if deadline is None:
            raise DiscountNotAvailable()
        if now > deadline:
            raise DiscountExpired()
        return AppliedDiscount(
            type=discount_type,
            label=DISCOUNT_LABELS[discount_type],
            percentage=percentage,
            deadline=deadline,
        )

    return AppliedDiscount(
        type=discount_type,
        label=DISCOUNT_LABELS[discount_type],
        percentage=percentage,
    )


def available_discounts(config: ActivityPricingConfig, now: datetime) -> List[AppliedDiscount]:
    """Descuentos que la actividad ofrece en este momento"""
    discounts = []
    for discount_type in SEGMENT_DISCOUNTS + (DiscountType.EARLY_BIRD,):
        try:
            discount = evaluate_discount(config, discount_type.value, now)
        except (DiscountNotAvailable, DiscountExpired):
            continue
        discounts.append(discount)
    return discounts
