"""Rutas de pago e inscripción a actividades"""
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone
from typing import Dict, List, Optional
import logging

from shared.database.connection import get_db
from shared.auth.dependencies import get_current_admin
from shared.cache.redis_client import cache_get, cache_set
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.activity_payments.exceptions import PaymentFlowError
from services.activity_payments.models.payment import (
    ActivityDiscountsResponse,
    ClientCheckoutRequest,
    CompletePaymentRegistrationRequest,
    CompletePaymentRegistrationResponse,
    CreatePaymentIntentResponse,
    PaymentStatusResponse,
    RegistrationAdminResponse,
)
from services.activity_payments.services.registration_service import PaymentRegistrationService

logger = logging.getLogger(__name__)

router = APIRouter()

DISCOUNTS_CACHE_TTL = 300  # 5 minutos


def get_registration_service() -> PaymentRegistrationService:
    return PaymentRegistrationService()


def _http_error(error: PaymentFlowError) -> HTTPException:
    return HTTPException(status_code=error.status_code, detail=error.message)


def discounts_cache_ttl(result: ActivityDiscountsResponse, now: Optional[datetime] = None) -> int:
    """TTL del cache de descuentos; no sobrevive al cierre de la inscripción temprana"""
    now = now or datetime.now(timezone.utc)
    ttl = DISCOUNTS_CACHE_TTL
    for discount in result.discounts:
        if discount.deadline is not None:
            ttl = min(ttl, int((discount.deadline - now).total_seconds()))
    return ttl


@router.post("/{activity_id}/create-payment-intent", response_model=CreatePaymentIntentResponse)
@limiter.limit(RATE_LIMITS["payment"])
async def create_payment_intent(
    request: Request,  # Necesario para rate limiter
    activity_id: int,
    payload: ClientCheckoutRequest,
    db: AsyncSession = Depends(get_db),
    service: PaymentRegistrationService = Depends(get_registration_service),
):
    """
    Crear PaymentIntent de Stripe para una actividad de pago

    El monto se calcula en el servidor (precio de la actividad, precio flexible acotado
    y descuento validado). El cliente solo elige el descuento y, si aplica, el monto.
    """
    try:
        return await service.create_payment_intent(db, activity_id, payload)
    except PaymentFlowError as e:
        logger.warning(f"create_payment_intent actividad {activity_id}: {e.message}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Exception en create_payment_intent: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error procesando el pago: {str(e)}")


@router.post(
    "/{activity_id}/complete-payment-registration",
    response_model=CompletePaymentRegistrationResponse,
)
@limiter.limit(RATE_LIMITS["payment"])
async def complete_payment_registration(
    request: Request,  # Necesario para rate limiter
    activity_id: int,
    payload: CompletePaymentRegistrationRequest,
    db: AsyncSession = Depends(get_db),
    service: PaymentRegistrationService = Depends(get_registration_service),
):
    """
    Completar la inscripción después de que Stripe confirmó el pago

    El PaymentIntent se vuelve a consultar en Stripe; se valida estado, moneda,
    actividad y monto antes de crear la inscripción. Un PaymentIntent solo
    puede generar una inscripción (409 si ya existe).
    """
    try:
        return await service.complete_registration(db, activity_id, payload)
    except PaymentFlowError as e:
        logger.warning(f"complete_payment_registration actividad {activity_id}: {e.message}")
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Exception en complete_payment_registration: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error completando el registro: {str(e)}")


@router.get(
    "/{activity_id}/payment-status/{payment_intent_id}",
    response_model=PaymentStatusResponse,
)
@limiter.limit(RATE_LIMITS["public"])
async def get_payment_status(
    request: Request,
    activity_id: int,
    payment_intent_id: str,
    db: AsyncSession = Depends(get_db),
    service: PaymentRegistrationService = Depends(get_registration_service),
):
    """Estado del pago en Stripe y si ya existe la inscripción"""
    try:
        return await service.get_payment_status(db, activity_id, payment_intent_id)
    except PaymentFlowError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Exception en get_payment_status: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error consultando el estado del pago")


@router.get("/{activity_id}/discounts", response_model=ActivityDiscountsResponse)
@limiter.limit(RATE_LIMITS["public"])
async def get_activity_discounts(
    request: Request,
    activity_id: int,
    db: AsyncSession = Depends(get_db),
    service: PaymentRegistrationService = Depends(get_registration_service),
):
    """Precio y descuentos vigentes de la actividad (cache de 5 minutos)"""
    cache_key = f"activity:discounts:{activity_id}"
    try:
        cached = await cache_get(cache_key)
        if cached:
            return cached
    except Exception as e:
        logger.warning(f"Cache no disponible para {cache_key}: {e}")

    try:
        result = await service.get_discount_options(db, activity_id)
    except PaymentFlowError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Exception en get_activity_discounts: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error obteniendo descuentos")

    ttl = discounts_cache_ttl(result)
    if ttl > 0:
        try:
            await cache_set(cache_key, result.model_dump(mode="json", by_alias=True), expire=ttl)
        except Exception as e:
            logger.warning(f"No se pudo guardar {cache_key} en cache: {e}")

    return result


@router.get("/{activity_id}/registrations", response_model=List[RegistrationAdminResponse])
@limiter.limit(RATE_LIMITS["admin"])
async def list_activity_registrations(
    request: Request,
    activity_id: int,
    db: AsyncSession = Depends(get_db),
    current_admin: Dict = Depends(get_current_admin),
    service: PaymentRegistrationService = Depends(get_registration_service),
):
    """Inscripciones pagadas con la auditoría de descuentos (solo administradores)"""
    try:
        registrations = await service.list_registrations(db, activity_id)
    except PaymentFlowError as e:
        raise _http_error(e)
    except Exception as e:
        logger.error(f"Exception en list_activity_registrations: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error obteniendo inscripciones")

    logger.info(f"Admin {current_admin.get('user_id')} consultó {len(registrations)} inscripciones de actividad {activity_id}")
    return [RegistrationAdminResponse.model_validate(registration) for registration in registrations]
