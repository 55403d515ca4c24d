"""Servicio de envío de emails usando Resend"""
import asyncio
import logging
from typing import List, Optional, Union

import resend

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Servicio para enviar emails usando Resend (desarrollo y producción)"""

    def __init__(self, api_key: Optional[str] = None, from_email: Optional[str] = None):
        self.resend_api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.from_email = from_email or settings.RESEND_FROM_EMAIL

        if not self.resend_api_key:
            logger.warning("RESEND_API_KEY no configurado. Los emails no se enviarán.")
            self.resend_configured = False
        else:
            resend.api_key = self.resend_api_key
            self.resend_configured = True
            logger.info(f"EmailService (Resend) inicializado con from: {self.from_email}")

    async def send_email(
        self,
        to_email: Union[str, List[str]],
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> bool:
        """
        Enviar email usando Resend

        Args:
            to_email: Email destino (string o lista de strings)
            subject: Asunto del email
            html_content: Contenido HTML del email
            text_content: Contenido de texto plano (opcional)

        Returns:
            True si se envió correctamente, False en caso contrario
        """
        if not self.resend_configured:
            logger.warning(f"Resend no configurado. Email simulado a {to_email}: {subject}")
            return True

        to_emails = [to_email] if isinstance(to_email, str) else to_email

        params = {
            "from": self.from_email,
            "to": to_emails,
            "subject": subject,
            "html": html_content,
        }
        if text_content:
            params["text"] = text_content

        # Resend SDK es síncrono, se ejecuta en el thread pool
        def send_email_sync():
            try:
                return resend.Emails.send(params)
            except Exception as e:
                logger.error(f"Error en Resend SDK: {e}")
                return {"error": str(e)}

        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, send_email_sync)
        except Exception as e:
            logger.error(f"Error enviando email a {to_emails}: {e}", exc_info=True)
            return False

        if result.get("error"):
            logger.error(f"Error enviando email a {to_emails}: {result.get('error')}")
            return False

        logger.info(f"Email enviado exitosamente a {to_emails}: {subject} (ID: {result.get('id', 'N/A')})")
        return True
