"""Pruebas de las plantillas de email"""
import pytest

from services.notifications.services.templates import PAYMENT_CONFIRMATION_ACTIVITY, TEMPLATES, render_template


def test_payment_confirmation_template():
    rendered = render_template(PAYMENT_CONFIRMATION_ACTIVITY, {
        "participantName": "Ana López",
        "activityTitle": "Yoga",
        "parkName": "Parque Colomos",
        "activityStartDate": "15/3/2025",
        "activityStartTime": "09:30",
        "activityLocation": "Explanada norte",
        "paymentAmount": "160.00",
        "stripePaymentId": "pi_ok",
        "paymentMethod": "Tarjeta de Crédito/Débito",
        "paymentDate": "1/3/2025",
    })

    assert TEMPLATES[13].name == "Confirmación de Pago - Actividad"
    assert rendered.subject == "Confirmación de Pago - Yoga"
    assert "$160.00 MXN" in rendered.html
    assert "Referencia: pi_ok" in rendered.text
    assert "{{" not in rendered.html


def test_html_values_are_escaped():
    rendered = render_template(PAYMENT_CONFIRMATION_ACTIVITY, {"participantName": "<b>Ana</b>"})

    assert "&lt;b&gt;Ana&lt;/b&gt;" in rendered.html
    assert "<b>Ana</b>" in rendered.text


def test_missing_variables_render_empty():
    rendered = render_template(PAYMENT_CONFIRMATION_ACTIVITY, {})
    assert "{{" not in rendered.text


def test_unknown_template():
    with pytest.raises(ValueError):
        render_template(404, {})
