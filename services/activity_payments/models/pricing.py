"""Objetos de valor del cálculo de precios y del PaymentIntent verificado"""
from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class DiscountType(str, Enum):
    SENIORS = "seniors"
    STUDENTS = "students"
    FAMILIES = "families"
    DISABILITY = "disability"
    EARLY_BIRD = "early_bird"
    NONE = "none"


DISCOUNT_LABELS = {
    DiscountType.SENIORS: "Adultos mayores (65+)",
    DiscountType.STUDENTS: "Estudiantes",
    DiscountType.FAMILIES: "Familias (3+ hijos)",
    DiscountType.DISABILITY: "Personas con discapacidad",
    DiscountType.EARLY_BIRD: "Inscripción temprana",
}


class ActivityPricingConfig(BaseModel):
    """Configuración de precio de una actividad (solo lectura)"""
    model_config = ConfigDict(frozen=True)

    activity_id: int
    title: str
    base_price: Decimal = Decimal("0")
    is_free: bool = False
    is_price_random: bool = False
    min_price: Decimal = Decimal("0")
    max_price: Decimal = Decimal("999999")
    discount_seniors: int = Field(0, ge=0, le=100)
    discount_students: int = Field(0, ge=0, le=100)
    discount_families: int = Field(0, ge=0, le=100)
    discount_disability: int = Field(0, ge=0, le=100)
    discount_early_bird: int = Field(0, ge=0, le=100)
    discount_early_bird_deadline: Optional[datetime] = None
    requires_approval: bool = False

    @field_validator("discount_early_bird_deadline")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Las columnas sin zona horaria se interpretan como UTC
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def percentage_for(self, discount_type: DiscountType) -> int:
        return {
            DiscountType.SENIORS: self.discount_seniors,
            DiscountType.STUDENTS: self.discount_students,
            DiscountType.FAMILIES: self.discount_families,
            DiscountType.DISABILITY: self.discount_disability,
            DiscountType.EARLY_BIRD: self.discount_early_bird,
        }.get(discount_type, 0)


class AppliedDiscount(BaseModel):
    """Descuento validado por el servidor; el porcentaje siempre viene de la actividad"""
    model_config = ConfigDict(frozen=True)

    type: DiscountType
    label: str
    percentage: int
    deadline: Optional[datetime] = None


class PriceQuote(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_price: Decimal
    discount_amount: Decimal
    final_price: Decimal
    final_amount_minor_units: int


class VerifiedPaymentIntent(BaseModel):
    """
    PaymentIntent tal como lo reporta Stripe.

    Solo StripeService construye instancias a partir de respuestas de la pasarela;
    es el único origen válido de montos para persistir una inscripción.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    amount: int  # centavos
    currency: str
    status: str
    customer_id: Optional[str] = None
    client_secret: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)
