"""Pruebas de la evaluación de descuentos"""
from datetime import datetime, timedelta, timezone

import pytest

from services.activity_payments.exceptions import DiscountExpired, DiscountNotAvailable, InvalidDiscount
from services.activity_payments.models.pricing import ActivityPricingConfig, DiscountType
from services.activity_payments.services.discount_policy import available_discounts, evaluate_discount

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_config(**overrides) -> ActivityPricingConfig:
    values = {"activity_id": 7, "title": "Taller de composta", "base_price": "150.00"}
    values.update(overrides)
    return ActivityPricingConfig(**values)


@pytest.mark.parametrize("code, field, label", [
    ("seniors", "discount_seniors", "Adultos mayores (65+)"),
    ("students", "discount_students", "Estudiantes"),
    ("families", "discount_families", "Familias (3+ hijos)"),
    ("disability", "discount_disability", "Personas con discapacidad"),
])
def test_segment_discount_uses_activity_percentage(code, field, label):
    config = make_config(**{field: 15})

    discount = evaluate_discount(config, code, NOW)

    assert discount.type == DiscountType(code)
    assert discount.label == label
    assert discount.percentage == 15
    assert discount.deadline is None


@pytest.mark.parametrize("code", [None, "", "none"])
def test_no_selection_means_no_discount(code):
    assert evaluate_discount(make_config(discount_students=20), code, NOW) is None


def test_segment_not_offered():
    with pytest.raises(DiscountNotAvailable) as exc:
        evaluate_discount(make_config(discount_seniors=0), "seniors", NOW)
    assert exc.value.status_code == 400
    assert exc.value.message == "Descuento no disponible para esta actividad"


def test_unknown_code_is_rejected():
    with pytest.raises(InvalidDiscount) as exc:
        evaluate_discount(make_config(discount_students=20), "vip", NOW)
    assert exc.value.message == "Descuento no válido"


def test_early_bird_before_deadline():
    deadline = NOW + timedelta(days=3)
    config = make_config(discount_early_bird=10, discount_early_bird_deadline=deadline)

    discount = evaluate_discount(config, "early_bird", NOW)

    assert discount.type == DiscountType.EARLY_BIRD
    assert discount.label == "Inscripción temprana"
    assert discount.percentage == 10
    assert discount.deadline == deadline


def test_early_bird_on_deadline_still_applies():
    config = make_config(discount_early_bird=10, discount_early_bird_deadline=NOW)
    assert evaluate_discount(config, "early_bird", NOW).percentage == 10


def test_early_bird_after_deadline_expired():
    config = make_config(discount_early_bird=10, discount_early_bird_deadline=NOW - timedelta(seconds=1))

    with pytest.raises(DiscountExpired) as exc:
        evaluate_discount(config, "early_bird", NOW)
    assert exc.value.message == "El descuento por inscripción temprana ha expirado"


def test_early_bird_without_deadline_not_available():
    with pytest.raises(DiscountNotAvailable):
        evaluate_discount(make_config(discount_early_bird=10), "early_bird", NOW)


def test_early_bird_without_percentage_not_available():
    config = make_config(discount_early_bird=0, discount_early_bird_deadline=NOW + timedelta(days=1))
    with pytest.raises(DiscountNotAvailable):
        evaluate_discount(config, "early_bird", NOW)


def test_naive_deadline_is_read_as_utc():
    config = make_config(discount_early_bird=10, discount_early_bird_deadline=datetime(2025, 3, 1, 11, 0))

    assert config.discount_early_bird_deadline.tzinfo == timezone.utc
    with pytest.raises(DiscountExpired):
        evaluate_discount(config, "early_bird", NOW)


def test_available_discounts_lists_only_current_offers():
    config = make_config(
        discount_seniors=30,
        discount_students=20,
        discount_early_bird=10,
        discount_early_bird_deadline=NOW - timedelta(days=1),
    )

    discounts = available_discounts(config, NOW)

    assert [d.type for d in discounts] == [DiscountType.SENIORS, DiscountType.STUDENTS]
