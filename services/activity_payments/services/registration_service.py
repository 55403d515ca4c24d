"""Servicio principal de pago e inscripción a actividades"""
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from shared.database.models import Activity, ActivityRegistration, ActivityRegistrationHistory
from services.activity_payments.exceptions import (
    ActivityMismatch,
    AmountInconsistency,
    FreeActivityError,
    InvalidCurrency,
    PaymentNotCompleted,
    RegistrationConflict,
)
from services.activity_payments.models.payment import (
    ActivityDiscountsResponse,
    AppliedDiscountResponse,
    ClientCheckoutRequest,
    CompletePaymentRegistrationRequest,
    CompletePaymentRegistrationResponse,
    CreatePaymentIntentResponse,
    PaymentStatusResponse,
    PriceBreakdown,
    RegistrationSummary,
)
from services.activity_payments.models.pricing import AppliedDiscount, VerifiedPaymentIntent
from services.activity_payments.services.activity_catalog import ActivityCatalog
from services.activity_payments.services.discount_policy import available_discounts, evaluate_discount
from services.activity_payments.services.price_calculator import compute_final_price, parse_amount, to_money
from services.activity_payments.services.stripe_service import StripeService, build_audit_metadata
from services.notifications.services.email_queue_service import EmailQueueService

logger = logging.getLogger(__name__)

AMOUNT_TOLERANCE_MINOR_UNITS = 1
PAYMENT_METHOD_LABEL = "Tarjeta de Crédito/Débito"
SUCCESS_MESSAGE = "Registro completado exitosamente con pago confirmado"


def _discount_response(discount: Optional[AppliedDiscount]) -> Optional[AppliedDiscountResponse]:
    if discount is None:
        return None
    return AppliedDiscountResponse(
        type=discount.type.value,
        label=discount.label,
        percentage=discount.percentage,
        deadline=discount.deadline,
    )


def _format_date(value: Optional[datetime]) -> str:
    """Fecha corta en formato es-MX (d/m/aaaa)"""
    if value is None:
        return "Por confirmar"
    return f"{value.day}/{value.month}/{value.year}"


class PaymentRegistrationService:
    """Checkout con Stripe y conciliación del pago con la inscripción"""

    def __init__(
        self,
        gateway: Optional[StripeService] = None,
        email_queue: Optional[EmailQueueService] = None,
        catalog: Optional[ActivityCatalog] = None,
    ):
        self._gateway = gateway
        self.email_queue = email_queue or EmailQueueService()
        self.catalog = catalog or ActivityCatalog()

    @property
    def gateway(self) -> StripeService:
        """Lazy initialization de StripeService solo cuando se necesita"""
        if self._gateway is None:
            self._gateway = StripeService()
        return self._gateway

    @property
    def currency(self) -> str:
        return self.gateway.currency

    async def create_payment_intent(
        self,
        db: AsyncSession,
        activity_id: int,
        request: ClientCheckoutRequest,
        now: Optional[datetime] = None,
    ) -> CreatePaymentIntentResponse:
        """
        Crear PaymentIntent con precio y descuento calculados por el servidor

        base_amount del cliente se ignora; custom_amount solo aplica (acotado) con precio flexible.
        """
        now = now or datetime.now(timezone.utc)

        activity = await self.catalog.get_activity(db, activity_id)
        config = self.catalog.to_pricing_config(activity)

        if config.is_free:
            raise FreeActivityError()

        applied_discount = evaluate_discount(config, request.selected_discount, now)
        quote = compute_final_price(config, request.custom_amount, applied_discount)

        logger.info(
            f"Checkout actividad {activity_id}: original={quote.original_price} "
            f"descuento={applied_discount.type.value if applied_discount else 'none'} final={quote.final_price}"
        )

        customer_id = None
        customer = request.customer_data
        if customer and customer.email:
            customer_id = await self.gateway.get_or_create_customer(
                email=customer.email,
                full_name=customer.full_name,
                phone=customer.phone,
                activity_id=activity_id,
            )

        intent = await self.gateway.create_payment_intent(
            amount_minor_units=quote.final_amount_minor_units,
            metadata=build_audit_metadata(config, applied_discount, quote),
            customer_id=customer_id,
            description=f"Pago por actividad: {config.title}",
        )

        return CreatePaymentIntentResponse(
            client_secret=intent.client_secret,
            payment_intent_id=intent.id,
            customer_id=customer_id,
            amount=float(quote.final_price),
            currency=intent.currency,
            applied_discount=_discount_response(applied_discount),
            price_breakdown=PriceBreakdown(
                original_price=float(quote.original_price),
                discount_amount=float(quote.discount_amount),
                final_price=float(quote.final_price),
            ),
        )

    def _verify_intent(self, intent: VerifiedPaymentIntent, activity_id: int):
        """Validaciones de integridad del PaymentIntent (en orden, sin escrituras)"""
        if intent.status != "succeeded":
            logger.info(f"PaymentIntent {intent.id} con estado {intent.status}, no se registra")
            raise PaymentNotCompleted()

        if intent.currency.lower() != self.currency:
            logger.warning(
                f"[SEGURIDAD] PaymentIntent {intent.id} con moneda {intent.currency} "
                f"(esperada {self.currency})"
            )
            raise InvalidCurrency()

        if intent.metadata.get("activityId") != str(activity_id):
            logger.warning(
                f"[SEGURIDAD] PaymentIntent {intent.id} pertenece a la actividad "
                f"{intent.metadata.get('activityId')!r}, no a {activity_id}"
            )
            raise ActivityMismatch()

        final_price = intent.metadata.get("final_price")
        if final_price is not None:
            expected = parse_amount(final_price)
            expected_minor = (
                int((expected * 100).to_integral_value(rounding=ROUND_HALF_UP)) if expected is not None else None
            )
            if expected_minor is None or abs(intent.amount - expected_minor) > AMOUNT_TOLERANCE_MINOR_UNITS:
                logger.warning(
                    f"[SEGURIDAD] Monto inconsistente en PaymentIntent {intent.id}: "
                    f"amount={intent.amount} esperado={expected_minor} metadata={final_price!r}"
                )
                raise AmountInconsistency()

    @staticmethod
    def _build_registration(
        activity: Activity,
        intent: VerifiedPaymentIntent,
        request: CompletePaymentRegistrationRequest,
        paid_at: datetime,
    ) -> ActivityRegistration:
        customer = request.customer_data
        metadata = intent.metadata

        discount_percentage = None
        if metadata.get("discount_percentage") is not None:
            percentage = parse_amount(metadata.get("discount_percentage"))
            discount_percentage = int(percentage) if percentage is not None else None

        original_amount = parse_amount(metadata.get("original_price"))
        discount_amount = parse_amount(metadata.get("discount_amount"))

        return ActivityRegistration(
            activity_id=activity.id,
            full_name=customer.full_name,
            email=customer.email,
            phone=customer.phone,
            age=customer.age,
            emergency_contact=customer.emergency_contact,
            emergency_phone=customer.emergency_phone,
            medical_conditions=customer.medical_conditions,
            special_requests=customer.additional_notes,
            status="pending" if activity.requires_approval else "approved",
            payment_status="paid",
            stripe_payment_intent_id=intent.id,
            stripe_customer_id=intent.customer_id,
            paid_amount=to_money(Decimal(intent.amount) / 100),
            payment_date=paid_at,
            applied_discount_type=metadata.get("discount_type"),
            applied_discount_percentage=discount_percentage,
            original_amount=to_money(original_amount) if original_amount is not None else None,
            discount_amount=to_money(discount_amount) if discount_amount is not None else None,
            accepts_terms=True,
            registration_source="web",
        )

    async def _find_registration(self, db: AsyncSession, payment_intent_id: str) -> Optional[ActivityRegistration]:
        result = await db.execute(
            select(ActivityRegistration).where(ActivityRegistration.stripe_payment_intent_id == payment_intent_id)
        )
        return result.scalar_one_or_none()

    async def complete_registration(
        self,
        db: AsyncSession,
        activity_id: int,
        request: CompletePaymentRegistrationRequest,
    ) -> CompletePaymentRegistrationResponse:
        """
        Registrar la inscripción una vez que Stripe confirma el pago

        Los montos y el descuento se leen del PaymentIntent consultado a Stripe;
        base_amount, selected_discount y final_amount del cliente solo se registran en el log.
        """
        logger.info(
            f"Completando inscripción a actividad {activity_id} con PaymentIntent {request.payment_intent_id} "
            f"(cliente reporta descuento={request.selected_discount!r}, final={request.final_amount!r})"
        )

        intent = await self.gateway.retrieve_payment_intent(request.payment_intent_id)
        self._verify_intent(intent, activity_id)

        activity = await self.catalog.get_activity(db, activity_id)

        existing = await self._find_registration(db, intent.id)
        if existing is not None:
            logger.warning(f"PaymentIntent {intent.id} ya tiene la inscripción {existing.id}")
            raise RegistrationConflict()

        paid_at = datetime.now(timezone.utc)
        registration = self._build_registration(activity, intent, request, paid_at)
        registration.history.append(
            ActivityRegistrationHistory(
                change_type="created",
                previous_status=None,
                new_status=registration.status,
                change_reason="Inscripción con pago confirmado en Stripe",
                change_details={
                    "paymentIntentId": intent.id,
                    "paidAmount": str(registration.paid_amount),
                    "discountType": intent.metadata.get("discount_type"),
                },
            )
        )
        db.add(registration)

        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning(f"Inscripción duplicada para PaymentIntent {intent.id} (constraint único)")
            raise RegistrationConflict()

        logger.info(f"Inscripción {registration.id} creada para actividad {activity_id} (PaymentIntent {intent.id})")

        await self._send_confirmation_email(db, activity, registration, intent, paid_at)

        return CompletePaymentRegistrationResponse(
            success=True,
            registration=RegistrationSummary(
                id=registration.id,
                participant_name=registration.full_name,
                status=registration.status,
            ),
            payment_amount=intent.amount / 100,
            currency=intent.currency.upper(),
            message=SUCCESS_MESSAGE,
        )

    async def _send_confirmation_email(
        self,
        db: AsyncSession,
        activity: Activity,
        registration: ActivityRegistration,
        intent: VerifiedPaymentIntent,
        paid_at: datetime,
    ):
        """Encolar la plantilla de confirmación; un error aquí no afecta la inscripción"""
        try:
            variables = {
                "participantName": registration.full_name,
                "activityTitle": activity.title,
                "parkName": activity.park.name if activity.park else settings.DEFAULT_PARK_NAME,
                "activityStartDate": _format_date(activity.start_date),
                "activityStartTime": activity.start_time or "10:00",
                "activityLocation": activity.location or "Por confirmar",
                "paymentAmount": f"{intent.amount / 100:.2f}",
                "stripePaymentId": intent.id,
                "paymentMethod": PAYMENT_METHOD_LABEL,
                "paymentDate": _format_date(paid_at),
            }
            queued = await self.email_queue.enqueue(
                db,
                to=registration.email,
                template_id=settings.PAYMENT_CONFIRMATION_TEMPLATE_ID,
                variables=variables,
                priority="high",
            )
            if not queued:
                logger.error(f"No se encoló el email de confirmación de la inscripción {registration.id}")
        except Exception as e:
            logger.error(f"Error enviando email de confirmación de pago: {e}", exc_info=True)

    async def get_payment_status(
        self,
        db: AsyncSession,
        activity_id: int,
        payment_intent_id: str,
    ) -> PaymentStatusResponse:
        """Estado del pago en Stripe y si ya existe la inscripción"""
        intent = await self.gateway.retrieve_payment_intent(payment_intent_id)
        if intent.metadata.get("activityId") != str(activity_id):
            logger.warning(
                f"[SEGURIDAD] Consulta de PaymentIntent {intent.id} desde la actividad {activity_id}"
            )
            raise ActivityMismatch()

        registration = await self._find_registration(db, intent.id)
        return PaymentStatusResponse(
            payment_status=intent.status,
            registration_exists=registration is not None,
            registration=RegistrationSummary(
                id=registration.id,
                participant_name=registration.full_name,
                status=registration.status,
            ) if registration else None,
        )

    async def get_discount_options(
        self,
        db: AsyncSession,
        activity_id: int,
        now: Optional[datetime] = None,
    ) -> ActivityDiscountsResponse:
        """Resumen de precio y descuentos vigentes de la actividad"""
        now = now or datetime.now(timezone.utc)
        config = await self.catalog.get_pricing_config(db, activity_id)
        discounts = [] if config.is_free else available_discounts(config, now)

        return ActivityDiscountsResponse(
            activity_id=config.activity_id,
            title=config.title,
            is_free=config.is_free,
            is_price_random=config.is_price_random,
            base_price=float(config.base_price),
            min_price=float(config.min_price) if config.is_price_random else None,
            max_price=float(config.max_price) if config.is_price_random else None,
            currency=settings.PAYMENT_CURRENCY.lower(),
            discounts=[_discount_response(discount) for discount in discounts],
        )

    async def list_registrations(self, db: AsyncSession, activity_id: int) -> List[ActivityRegistration]:
        """Inscripciones pagadas de la actividad (más recientes primero)"""
        await self.catalog.get_activity(db, activity_id)
        result = await db.execute(
            select(ActivityRegistration)
            .where(
                ActivityRegistration.activity_id == activity_id,
                ActivityRegistration.payment_status == "paid",
            )
            .order_by(ActivityRegistration.created_at.desc(), ActivityRegistration.id.desc())
        )
        return list(result.scalars().all())
