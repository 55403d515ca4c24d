"""
Configuración global de pytest

- Variables de entorno de prueba (antes de importar la aplicación)
- Base de datos SQLite por prueba
- Pasarela de pago falsa y despachador de emails en memoria
"""
import os
import sys
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import pytest

os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("RATE_LIMIT_STORAGE_URI", "memory://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

# Agregar la raíz del proyecto al path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from shared.database.connection import Base  # noqa: E402
from shared.database.models import Activity, Park  # noqa: E402
from services.activity_payments.exceptions import PaymentGatewayError  # noqa: E402
from services.activity_payments.models.pricing import VerifiedPaymentIntent  # noqa: E402
from services.activity_payments.services.registration_service import PaymentRegistrationService  # noqa: E402
from services.notifications.services.email_queue_service import EmailQueueService  # noqa: E402


# ==================== Dobles de prueba ====================

class FakeGateway:
    """Pasarela en memoria con la misma interfaz que StripeService"""

    def __init__(self, currency: str = "mxn"):
        self.currency = currency
        self.intents: Dict[str, VerifiedPaymentIntent] = {}
        self.created: List[Dict] = []
        self.customers: List[Dict] = []
        self.retrieve_calls: List[str] = []
        self.customer_error = False

    async def get_or_create_customer(self, email, full_name=None, phone=None, activity_id=None) -> Optional[str]:
        if self.customer_error:
            return None
        self.customers.append({"email": email, "full_name": full_name, "activity_id": activity_id})
        return f"cus_{len(self.customers)}"

    async def create_payment_intent(self, amount_minor_units, metadata, customer_id=None, description=None):
        intent_id = f"pi_test_{len(self.created) + 1}"
        self.created.append({
            "amount": amount_minor_units,
            "metadata": dict(metadata),
            "customer_id": customer_id,
            "description": description,
        })
        intent = VerifiedPaymentIntent(
            id=intent_id,
            amount=amount_minor_units,
            currency=self.currency,
            status="requires_payment_method",
            customer_id=customer_id,
            client_secret=f"{intent_id}_secret_abc",
            metadata=metadata,
        )
        self.intents[intent_id] = intent
        return intent

    def add_intent(self, intent_id: str, amount: int, metadata: Dict[str, str],
                   status: str = "succeeded", currency: str = "mxn", customer_id: Optional[str] = "cus_1"):
        self.intents[intent_id] = VerifiedPaymentIntent(
            id=intent_id,
            amount=amount,
            currency=currency,
            status=status,
            customer_id=customer_id,
            metadata=metadata,
        )
        return self.intents[intent_id]

    def mark_succeeded(self, intent_id: str):
        self.intents[intent_id] = self.intents[intent_id].model_copy(update={"status": "succeeded"})

    async def retrieve_payment_intent(self, payment_intent_id: str) -> VerifiedPaymentIntent:
        self.retrieve_calls.append(payment_intent_id)
        if payment_intent_id not in self.intents:
            raise PaymentGatewayError(f"Error verificando el pago: No such payment_intent: '{payment_intent_id}'")
        return self.intents[payment_intent_id]


def paid_metadata(activity_id: int, final_price: str = "160.00", discount_type: str = "students",
                  percentage: str = "20", original_price: str = "200.00", discount_amount: str = "40.00") -> Dict[str, str]:
    return {
        "activityId": str(activity_id),
        "activityTitle": "Yoga en el parque",
        "discount_type": discount_type,
        "discount_percentage": percentage,
        "original_price": original_price,
        "final_price": final_price,
        "discount_amount": discount_amount,
    }


# ==================== Base de datos ====================

@pytest.fixture
async def db_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def park(db_session):
    park = Park(name="Parque Colomos", address="Av. Patria 1")
    db_session.add(park)
    await db_session.commit()
    return park


@pytest.fixture
def make_activity(db_session, park):
    """Crear actividades con valores por defecto de una clase de pago"""
    async def factory(**overrides) -> Activity:
        values = {
            "park_id": park.id,
            "title": "Yoga en el parque",
            "location": "Explanada norte",
            "start_date": datetime(2025, 3, 15, 10, 0, tzinfo=timezone.utc),
            "start_time": "09:30",
            "is_free": False,
            "is_price_random": False,
            "price": Decimal("200.00"),
            "discount_students": 20,
        }
        values.update(overrides)
        activity = Activity(**values)
        db_session.add(activity)
        await db_session.commit()
        return activity

    return factory


@pytest.fixture
async def paid_activity(make_activity):
    return await make_activity()


# ==================== Servicios ====================

@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def dispatched():
    return []


@pytest.fixture
def email_queue(dispatched):
    return EmailQueueService(dispatcher=dispatched.append)


@pytest.fixture
def service(gateway, email_queue):
    return PaymentRegistrationService(gateway=gateway, email_queue=email_queue)


@pytest.fixture
def customer_data() -> Dict:
    return {
        "fullName": "Ana López",
        "email": "ana@example.com",
        "phone": "3312345678",
        "age": "",
        "emergencyContact": "Luis López",
        "emergencyPhone": "3387654321",
        "medicalConditions": "",
        "additionalNotes": "Llevo mi tapete",
    }


@pytest.fixture
def intent_metadata():
    """Metadatos de auditoría como los escribe el checkout"""
    return paid_metadata
