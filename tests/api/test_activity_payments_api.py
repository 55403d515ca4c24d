"""Pruebas de los endpoints de pago e inscripción a actividades"""
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from main import app
from shared.auth.jwt_handler import create_access_token
from shared.database.connection import get_db
from shared.utils.rate_limiter import limiter
from services.activity_payments.routes import payments
from services.activity_payments.routes.payments import get_registration_service


@pytest.fixture
def cache(monkeypatch):
    store = {}

    async def fake_get(key):
        return store.get(key)

    async def fake_set(key, value, expire=3600):
        store[key] = value

    monkeypatch.setattr(payments, "cache_get", fake_get)
    monkeypatch.setattr(payments, "cache_set", fake_set)
    return store


@pytest.fixture
async def client(session_maker, service, cache):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_registration_service] = lambda: service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "1", "email": "admin@parques.mx", "role": "admin"}, timedelta(minutes=5))
    return {"Authorization": f"Bearer {token}"}


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_create_payment_intent(client, gateway, paid_activity, customer_data):
    response = await client.post(
        f"/api/v1/activities/{paid_activity.id}/create-payment-intent",
        json={"customerData": customer_data, "baseAmount": 1, "selectedDiscount": "students"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["clientSecret"] == "pi_test_1_secret_abc"
    assert body["paymentIntentId"] == "pi_test_1"
    assert body["customerId"] == "cus_1"
    assert body["amount"] == 160.0
    assert body["currency"] == "mxn"
    assert body["appliedDiscount"]["label"] == "Estudiantes"
    assert body["priceBreakdown"] == {"originalPrice": 200.0, "discountAmount": 40.0, "finalPrice": 160.0}
    assert gateway.created[0]["amount"] == 16000


@pytest.mark.parametrize("payload, detail", [
    ({"selectedDiscount": "seniors"}, "Descuento no disponible para esta actividad"),
    ({"selectedDiscount": "vip"}, "Descuento no válido"),
])
async def test_create_payment_intent_discount_errors(client, paid_activity, payload, detail):
    response = await client.post(f"/api/v1/activities/{paid_activity.id}/create-payment-intent", json=payload)

    assert response.status_code == 400
    assert response.json() == {"detail": detail}


async def test_create_payment_intent_free_activity(client, make_activity):
    activity = await make_activity(is_free=True, price=None)

    response = await client.post(f"/api/v1/activities/{activity.id}/create-payment-intent", json={})

    assert response.status_code == 400
    assert response.json() == {"detail": "Esta actividad es gratuita"}


async def test_create_payment_intent_unknown_activity(client, park):
    response = await client.post("/api/v1/activities/999/create-payment-intent", json={})

    assert response.status_code == 404
    assert response.json() == {"detail": "Actividad no encontrada"}


async def test_checkout_then_confirmation(client, gateway, paid_activity, customer_data, dispatched):
    checkout = await client.post(
        f"/api/v1/activities/{paid_activity.id}/create-payment-intent",
        json={"customerData": customer_data, "selectedDiscount": "students"},
    )
    intent_id = checkout.json()["paymentIntentId"]

    # El cliente confirma antes de que Stripe reporte el pago
    early = await client.post(
        f"/api/v1/activities/{paid_activity.id}/complete-payment-registration",
        json={"paymentIntentId": intent_id, "customerData": customer_data},
    )
    assert early.status_code == 400
    assert early.json() == {"detail": "El pago no ha sido completado exitosamente"}

    gateway.mark_succeeded(intent_id)
    response = await client.post(
        f"/api/v1/activities/{paid_activity.id}/complete-payment-registration",
        json={
            "paymentIntentId": intent_id,
            "customerData": customer_data,
            "baseAmount": 1,
            "selectedDiscount": "seniors",
            "finalAmount": 1,
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["paymentAmount"] == 160.0
    assert body["currency"] == "MXN"
    assert body["registration"]["participantName"] == "Ana López"
    assert body["registration"]["status"] == "approved"
    assert len(dispatched) == 1

    duplicate = await client.post(
        f"/api/v1/activities/{paid_activity.id}/complete-payment-registration",
        json={"paymentIntentId": intent_id, "customerData": customer_data},
    )
    assert duplicate.status_code == 409
    assert duplicate.json() == {"detail": "Ya existe una inscripción para este pago"}


async def test_confirmation_for_other_activity(client, gateway, paid_activity, make_activity, customer_data,
                                               intent_metadata):
    other = await make_activity(title="Zumba")
    gateway.add_intent("pi_other", 16000, intent_metadata(other.id))

    response = await client.post(
        f"/api/v1/activities/{paid_activity.id}/complete-payment-registration",
        json={"paymentIntentId": "pi_other", "customerData": customer_data},
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "El pago no corresponde a esta actividad"}


async def test_confirmation_gateway_error(client, paid_activity, customer_data):
    response = await client.post(
        f"/api/v1/activities/{paid_activity.id}/complete-payment-registration",
        json={"paymentIntentId": "pi_missing", "customerData": customer_data},
    )

    assert response.status_code == 500
    assert "Error verificando el pago" in response.json()["detail"]


async def test_confirmation_requires_customer_data(client, paid_activity):
    response = await client.post(
        f"/api/v1/activities/{paid_activity.id}/complete-payment-registration",
        json={"paymentIntentId": "pi_1"},
    )
    assert response.status_code == 422


async def test_payment_status(client, gateway, paid_activity, intent_metadata):
    gateway.add_intent("pi_status", 16000, intent_metadata(paid_activity.id))

    response = await client.get(f"/api/v1/activities/{paid_activity.id}/payment-status/pi_status")

    assert response.status_code == 200
    assert response.json() == {"paymentStatus": "succeeded", "registrationExists": False, "registration": None}


async def test_discounts_are_cached(client, cache, paid_activity):
    response = await client.get(f"/api/v1/activities/{paid_activity.id}/discounts")

    assert response.status_code == 200
    body = response.json()
    assert body["basePrice"] == 200.0
    assert [d["type"] for d in body["discounts"]] == ["students"]
    assert cache[f"activity:discounts:{paid_activity.id}"]["title"] == "Yoga en el parque"

    cache[f"activity:discounts:{paid_activity.id}"]["title"] = "Desde cache"
    cached = await client.get(f"/api/v1/activities/{paid_activity.id}/discounts")
    assert cached.json()["title"] == "Desde cache"


async def test_registrations_require_admin(client, paid_activity):
    response = await client.get(f"/api/v1/activities/{paid_activity.id}/registrations")
    assert response.status_code in (401, 403)

    user_token = create_access_token({"sub": "2", "role": "user"})
    response = await client.get(
        f"/api/v1/activities/{paid_activity.id}/registrations",
        headers={"Authorization": f"Bearer {user_token}"},
    )
    assert response.status_code == 403


async def test_registrations_listing(client, gateway, paid_activity, customer_data, intent_metadata, admin_headers):
    gateway.add_intent("pi_list", 16000, intent_metadata(paid_activity.id))
    await client.post(
        f"/api/v1/activities/{paid_activity.id}/complete-payment-registration",
        json={"paymentIntentId": "pi_list", "customerData": customer_data},
    )

    response = await client.get(f"/api/v1/activities/{paid_activity.id}/registrations", headers=admin_headers)

    assert response.status_code == 200
    [registration] = response.json()
    assert registration["stripePaymentIntentId"] == "pi_list"
    assert registration["paidAmount"] == 160.0
    assert registration["appliedDiscountType"] == "students"
    assert registration["appliedDiscountPercentage"] == 20


async def test_payment_endpoints_are_rate_limited(client, paid_activity):
    limiter.reset()
    limiter.enabled = True
    try:
        statuses = []
        for _ in range(11):
            response = await client.post(
                f"/api/v1/activities/{paid_activity.id}/create-payment-intent", json={}
            )
            statuses.append(response.status_code)
    finally:
        limiter.enabled = False
        limiter.reset()

    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429


async def test_discounts_cache_expires_with_early_bird(client, make_activity, monkeypatch):
    expirations = []

    async def recording_set(key, value, expire=3600):
        expirations.append(expire)

    monkeypatch.setattr(payments, "cache_set", recording_set)
    activity = await make_activity(
        discount_early_bird=15,
        discount_early_bird_deadline=datetime.now(timezone.utc) + timedelta(seconds=90),
    )

    response = await client.get(f"/api/v1/activities/{activity.id}/discounts")

    assert "early_bird" in [d["type"] for d in response.json()["discounts"]]
    assert len(expirations) == 1
    assert 0 < expirations[0] <= 90


def test_discounts_cache_ttl_never_outlives_deadline():
    now = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)
    result = payments.ActivityDiscountsResponse(
        activity_id=1, title="Yoga", is_free=False, is_price_random=False, base_price=200.0, currency="mxn",
        discounts=[
            {"type": "students", "label": "Estudiantes", "percentage": 20},
            {"type": "early_bird", "label": "Inscripción temprana", "percentage": 10,
             "deadline": now + timedelta(seconds=40)},
        ],
    )

    assert payments.discounts_cache_ttl(result, now) == 40
    assert payments.discounts_cache_ttl(result, now + timedelta(minutes=1)) <= 0
    result.discounts = result.discounts[:1]
    assert payments.discounts_cache_ttl(result, now) == payments.DISCOUNTS_CACHE_TTL


async def test_rate_limit_ignores_spoofed_forwarded_for(client, paid_activity):
    limiter.reset()
    limiter.enabled = True
    try:
        statuses = []
        for i in range(11):
            response = await client.post(
                f"/api/v1/activities/{paid_activity.id}/create-payment-intent",
                json={},
                headers={"X-Forwarded-For": f"203.0.113.{i}"},
            )
            statuses.append(response.status_code)
    finally:
        limiter.enabled = False
        limiter.reset()

    assert statuses[10] == 429
