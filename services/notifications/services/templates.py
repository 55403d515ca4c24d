"""Plantillas de email con variables {{nombre}}"""
import html
import re
from typing import Dict, NamedTuple

PAYMENT_CONFIRMATION_ACTIVITY = 13

_VARIABLE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


class EmailTemplate(NamedTuple):
    name: str
    subject: str
    html: str
    text: str


class RenderedEmail(NamedTuple):
    subject: str
    html: str
    text: str


TEMPLATES: Dict[int, EmailTemplate] = {
    PAYMENT_CONFIRMATION_ACTIVITY: EmailTemplate(
        name="Confirmación de Pago - Actividad",
        subject="Confirmación de Pago - {{activityTitle}}",
        html="""
<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background-color: #00a587; color: white; padding: 20px; border-radius: 8px 8px 0 0; text-align: center;">
        <h1 style="margin: 0;">¡Pago confirmado!</h1>
    </div>
    <div style="background-color: #f9fafb; padding: 30px; border-radius: 0 0 8px 8px;">
        <p>Hola <strong>{{participantName}}</strong>,</p>
        <p>Tu inscripción a <strong>{{activityTitle}}</strong> en <strong>{{parkName}}</strong> quedó registrada con pago confirmado.</p>

        <div style="background-color: white; padding: 20px; border-radius: 8px; margin: 20px 0;">
            <h3 style="margin-top: 0; color: #00a587;">Detalles de la actividad</h3>
            <p><strong>Fecha:</strong> {{activityStartDate}}</p>
            <p><strong>Hora:</strong> {{activityStartTime}}</p>
            <p><strong>Lugar:</strong> {{activityLocation}}</p>
        </div>

        <div style="background-color: white; padding: 20px; border-radius: 8px; margin: 20px 0;">
            <h3 style="margin-top: 0; color: #00a587;">Detalles del pago</h3>
            <p><strong>Monto:</strong> ${{paymentAmount}} MXN</p>
            <p><strong>Método de pago:</strong> {{paymentMethod}}</p>
            <p><strong>Fecha de pago:</strong> {{paymentDate}}</p>
            <p style="font-size: 12px; color: #6b7280;">Referencia: {{stripePaymentId}}</p>
        </div>

        <p style="color: #6b7280; font-size: 14px;">Conserva este correo como comprobante de tu pago.</p>
    </div>
</body>
</html>
""",
        text="""Hola {{participantName}},

Tu inscripción a {{activityTitle}} en {{parkName}} quedó registrada con pago confirmado.

Fecha: {{activityStartDate}}
Hora: {{activityStartTime}}
Lugar: {{activityLocation}}

Monto: ${{paymentAmount}} MXN
Método de pago: {{paymentMethod}}
Fecha de pago: {{paymentDate}}
Referencia: {{stripePaymentId}}
""",
    ),
}


def _substitute(template: str, variables: Dict[str, str], escape: bool) -> str:
    def replace(match):
        value = variables.get(match.group(1))
        if value is None:
            # Variables sin valor se dejan vacías
            return ""
        value = str(value)
        return html.escape(value) if escape else value

    return _VARIABLE.sub(replace, template)


def render_template(template_id: int, variables: Dict[str, str]) -> RenderedEmail:
    """
    Renderizar una plantilla

    Raises:
        ValueError: si la plantilla no existe
    """
    template = TEMPLATES.get(template_id)
    if template is None:
        raise ValueError(f"Plantilla de email {template_id} no encontrada")

    return RenderedEmail(
        subject=_substitute(template.subject, variables, escape=False),
        html=_substitute(template.html, variables, escape=True),
        text=_substitute(template.text, variables, escape=False),
    )
