"""Modelos Pydantic para pago e inscripción a actividades"""
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Union
from datetime import datetime


class CamelModel(BaseModel):
    """El frontend envía y recibe camelCase"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomerData(CamelModel):
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    age: Optional[int] = None
    emergency_contact: Optional[str] = None
    emergency_phone: Optional[str] = None
    medical_conditions: Optional[str] = None
    additional_notes: Optional[str] = None

    @field_validator("age", mode="before")
    @classmethod
    def empty_age(cls, value):
        # El formulario envía "" cuando el campo queda vacío
        if value == "":
            return None
        return value


class ClientCheckoutRequest(CamelModel):
    """
    Solicitud del cliente para crear un PaymentIntent.

    No es confiable: base_amount se ignora y custom_amount solo se usa
    (acotado) en actividades con precio flexible.
    """
    customer_data: Optional[CustomerData] = None
    base_amount: Optional[Union[float, str]] = None
    selected_discount: Optional[str] = None
    custom_amount: Optional[Union[float, str]] = None


class CompletePaymentRegistrationRequest(CamelModel):
    """Notificación del cliente de que el pago terminó; los montos se releen de Stripe"""
    payment_intent_id: str
    customer_data: CustomerData
    base_amount: Optional[Union[float, str]] = None
    selected_discount: Optional[str] = None
    final_amount: Optional[Union[float, str]] = None


class AppliedDiscountResponse(CamelModel):
    type: str
    label: str
    percentage: int
    deadline: Optional[datetime] = None


class PriceBreakdown(CamelModel):
    original_price: float
    discount_amount: float
    final_price: float


class CreatePaymentIntentResponse(CamelModel):
    client_secret: Optional[str] = None
    payment_intent_id: str
    customer_id: Optional[str] = None
    amount: float
    currency: str
    applied_discount: Optional[AppliedDiscountResponse] = None
    price_breakdown: PriceBreakdown


class RegistrationSummary(CamelModel):
    id: int
    participant_name: str
    status: str


class CompletePaymentRegistrationResponse(CamelModel):
    success: bool
    registration: RegistrationSummary
    payment_amount: float
    currency: str
    message: str


class PaymentStatusResponse(CamelModel):
    payment_status: str
    registration_exists: bool
    registration: Optional[RegistrationSummary] = None


class ActivityDiscountsResponse(CamelModel):
    activity_id: int
    title: str
    is_free: bool
    is_price_random: bool
    base_price: float
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    currency: str
    discounts: List[AppliedDiscountResponse] = []


class RegistrationAdminResponse(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    full_name: str
    email: str
    phone: Optional[str] = None
    status: str
    payment_status: str
    stripe_payment_intent_id: Optional[str] = None
    paid_amount: Optional[float] = None
    payment_date: Optional[datetime] = None
    applied_discount_type: Optional[str] = None
    applied_discount_percentage: Optional[int] = None
    original_amount: Optional[float] = None
    discount_amount: Optional[float] = None
    created_at: Optional[datetime] = None
