"""Servicio de integración con Stripe"""
import asyncio
import functools
import logging
import os
from typing import Dict, Optional

import stripe

from app.core.config import settings
from services.activity_payments.exceptions import PaymentGatewayError
from services.activity_payments.models.pricing import (
    ActivityPricingConfig,
    AppliedDiscount,
    PriceQuote,
    VerifiedPaymentIntent,
)

logger = logging.getLogger(__name__)


def build_audit_metadata(
    config: ActivityPricingConfig,
    applied_discount: Optional[AppliedDiscount],
    quote: PriceQuote,
) -> Dict[str, str]:
    """
    Metadatos de auditoría que viajan con el PaymentIntent.

    Al confirmar el pago se leen de Stripe (no del cliente) para validar el monto
    y llenar los campos de descuento de la inscripción.
    """
    return {
        "activityId": str(config.activity_id),
        "activityTitle": config.title,
        "discount_type": applied_discount.type.value if applied_discount else "none",
        "discount_percentage": str(applied_discount.percentage if applied_discount else 0),
        "original_price": str(quote.original_price),
        "final_price": str(quote.final_price),
        "discount_amount": str(quote.discount_amount),
    }


def _metadata_to_dict(metadata) -> Dict[str, str]:
    if metadata is None:
        return {}
    if hasattr(metadata, "to_dict"):
        metadata = metadata.to_dict()
    return {str(key): str(value) for key, value in dict(metadata).items()}


def to_verified_intent(intent) -> VerifiedPaymentIntent:
    """Convertir un PaymentIntent de Stripe al objeto confiable del dominio"""
    customer = getattr(intent, "customer", None)
    if customer is not None and not isinstance(customer, str):
        # customer expandido
        customer = customer.id
    return VerifiedPaymentIntent(
        id=intent.id,
        amount=int(intent.amount),
        currency=str(intent.currency).lower(),
        status=intent.status,
        customer_id=customer,
        client_secret=getattr(intent, "client_secret", None),
        metadata=_metadata_to_dict(getattr(intent, "metadata", None)),
    )


class StripeService:
    """Servicio para manejar pagos con Stripe"""

    def __init__(self, api_key: Optional[str] = None, currency: Optional[str] = None):
        api_key = api_key or settings.STRIPE_SECRET_KEY or os.getenv("STRIPE_SECRET_KEY")
        if not api_key:
            raise ValueError(
                "STRIPE_SECRET_KEY no configurado. "
                "Por favor, configura esta variable en tu archivo .env."
            )
        if not api_key.startswith("sk_live_"):
            logger.info("StripeService inicializado en modo de prueba")

        self.api_key = api_key
        self.currency = (currency or settings.PAYMENT_CURRENCY).lower()

    async def _call(self, func, **params):
        """El SDK de Stripe es síncrono; se ejecuta en el thread pool"""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, api_key=self.api_key, **params))

    async def get_or_create_customer(
        self,
        email: str,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
        activity_id: Optional[int] = None,
    ) -> Optional[str]:
        """
        Buscar el customer por email o crearlo.

        Un error aquí no detiene el pago: se registra y se continúa sin customer.
        """
        try:
            existing = await self._call(stripe.Customer.list, email=email, limit=1)
            if existing.data:
                return existing.data[0].id

            params = {"email": email, "metadata": {"activityId": str(activity_id or "")}}
            if full_name:
                params["name"] = full_name
            if phone:
                params["phone"] = phone
            customer = await self._call(stripe.Customer.create, **params)
            return customer.id
        except Exception as e:
            logger.warning(f"Error creando customer de Stripe para {email}: {e}")
            return None

    async def create_payment_intent(
        self,
        amount_minor_units: int,
        metadata: Dict[str, str],
        customer_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> VerifiedPaymentIntent:
        """
        Crear PaymentIntent con el monto calculado por el servidor

        Args:
            amount_minor_units: monto en centavos
            metadata: metadatos de auditoría (ver build_audit_metadata)
            customer_id: customer de Stripe (opcional)
            description: descripción visible en el dashboard de Stripe
        """
        params = {
            "amount": amount_minor_units,
            "currency": self.currency,
            "metadata": metadata,
            "automatic_payment_methods": {"enabled": True},
        }
        if customer_id:
            params["customer"] = customer_id
        if description:
            params["description"] = description

        try:
            intent = await self._call(stripe.PaymentIntent.create, **params)
        except stripe.StripeError as e:
            logger.error(f"Error creando PaymentIntent en Stripe: {e}", exc_info=True)
            raise PaymentGatewayError(f"Error procesando el pago: {e.user_message or str(e)}")

        logger.info(
            f"PaymentIntent {intent.id} creado: {amount_minor_units} {self.currency} "
            f"(actividad {metadata.get('activityId')}, descuento {metadata.get('discount_type')})"
        )
        return to_verified_intent(intent)

    async def retrieve_payment_intent(self, payment_intent_id: str) -> VerifiedPaymentIntent:
        """Consultar el PaymentIntent directamente en Stripe (nunca se usan datos del cliente)"""
        try:
            intent = await self._call(stripe.PaymentIntent.retrieve, id=payment_intent_id)
        except stripe.StripeError as e:
            logger.error(f"Error consultando PaymentIntent {payment_intent_id}: {e}", exc_info=True)
            raise PaymentGatewayError(f"Error verificando el pago: {e.user_message or str(e)}")
        return to_verified_intent(intent)
