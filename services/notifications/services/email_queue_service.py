"""Cola de emails (outbox) con entrega vía Celery"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from shared.database.models import EmailQueue
from services.notifications.services.email_service import EmailService
from services.notifications.services.templates import render_template

logger = logging.getLogger(__name__)

PRIORITIES = ("low", "normal", "high", "urgent")


def _dispatch_with_celery(entry_id: int):
    from services.notifications.tasks.email_tasks import send_queued_email_task
    send_queued_email_task.delay(entry_id)


class EmailQueueService:
    """
    Encola emails en la tabla email_queue y los entrega en background.

    El registro en la tabla es la fuente de verdad: si el broker no está disponible
    la tarea periódica flush_email_queue vuelve a despachar los pendientes.
    Cada entrega reclama el registro (pending -> sending) antes de enviar, y los
    envíos abandonados se liberan con release_stale.
    """

    def __init__(self, dispatcher: Optional[Callable[[int], None]] = None):
        self.dispatcher = dispatcher or _dispatch_with_celery

    async def enqueue(
        self,
        db: AsyncSession,
        to: str,
        template_id: int,
        variables: Dict[str, str],
        priority: str = "normal",
    ) -> bool:
        """
        Renderizar la plantilla y guardar el email en la cola.

        Nunca lanza excepciones: los errores se registran y se retorna False.
        """
        if priority not in PRIORITIES:
            priority = "normal"

        try:
            rendered = render_template(template_id, variables)
            entry = EmailQueue(
                to=to,
                subject=rendered.subject,
                html_content=rendered.html,
                text_content=rendered.text,
                template_id=template_id,
                priority=priority,
                status="pending",
                metadata_={"templateVariables": variables},
            )
            db.add(entry)
            await db.commit()
        except Exception as e:
            logger.error(f"Error encolando email (plantilla {template_id}) para {to}: {e}", exc_info=True)
            try:
                await db.rollback()
            except Exception:
                logger.warning("No se pudo hacer rollback después de fallar el encolado", exc_info=True)
            return False

        logger.info(f"Email {entry.id} encolado para {to} (plantilla {template_id}, prioridad {priority})")

        try:
            self.dispatcher(entry.id)
        except Exception as e:
            # El email queda pendiente en la tabla; flush_email_queue lo reintenta
            logger.warning(f"No se pudo despachar el email {entry.id} al worker: {e}")

        return True

    async def _claim(self, db: AsyncSession, entry_id: int) -> bool:
        """Pasar el email de 'pending' a 'sending' en un solo UPDATE; solo un worker lo gana"""
        stmt = (
            update(EmailQueue)
            .where(
                EmailQueue.id == entry_id,
                EmailQueue.status == "pending",
                EmailQueue.attempts < EmailQueue.max_attempts,
            )
            .values(
                status="sending",
                attempts=EmailQueue.attempts + 1,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        claimed = (await db.execute(stmt)).rowcount == 1
        await db.commit()
        return claimed

    async def _load(self, db: AsyncSession, entry_id: int) -> Optional[EmailQueue]:
        result = await db.execute(
            select(EmailQueue)
            .where(EmailQueue.id == entry_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def deliver(self, db: AsyncSession, entry_id: int, email_service: EmailService) -> Optional[str]:
        """
        Enviar un email de la cola y actualizar su estado

        Returns:
            Estado final del registro (sent, pending, failed), el estado actual si otro
            worker ya lo tomó, o None si no existe
        """
        claimed = await self._claim(db, entry_id)
        entry = await self._load(db, entry_id)
        if entry is None:
            logger.warning(f"Email {entry_id} no existe en la cola")
            return None
        if not claimed:
            return entry.status

        success = await email_service.send_email(
            to_email=entry.to,
            subject=entry.subject,
            html_content=entry.html_content,
            text_content=entry.text_content,
        )

        if success:
            entry.status = "sent"
            entry.sent_at = datetime.now(timezone.utc)
            entry.error_message = None
        elif entry.attempts >= entry.max_attempts:
            entry.status = "failed"
            entry.error_message = f"Envío fallido después de {entry.attempts} intentos"
            logger.error(f"Email {entry_id} marcado como fallido ({entry.attempts} intentos)")
        else:
            entry.status = "pending"
            entry.error_message = f"Intento {entry.attempts} fallido"
        await db.commit()

        return entry.status

    async def release_stale(self, db: AsyncSession, timeout_seconds: Optional[int] = None) -> int:
        """
        Liberar emails que quedaron en 'sending' más tiempo del permitido.

        Ocurre cuando el worker muere a mitad del envío: los que aún tienen intentos
        vuelven a 'pending' y el resto se marca 'failed'.
        """
        if timeout_seconds is None:
            timeout_seconds = settings.EMAIL_SENDING_TIMEOUT_SECONDS
        now = datetime.now(timezone.utc)
        stale_before = now - timedelta(seconds=timeout_seconds)
        stale = (EmailQueue.status == "sending", EmailQueue.updated_at < stale_before)

        retried = (await db.execute(
            update(EmailQueue)
            .where(*stale, EmailQueue.attempts < EmailQueue.max_attempts)
            .values(status="pending", error_message="Envío interrumpido", updated_at=now)
            .execution_options(synchronize_session=False)
        )).rowcount
        failed = (await db.execute(
            update(EmailQueue)
            .where(*stale, EmailQueue.attempts >= EmailQueue.max_attempts)
            .values(status="failed", error_message="Envío interrumpido sin intentos disponibles", updated_at=now)
            .execution_options(synchronize_session=False)
        )).rowcount
        await db.commit()

        if retried or failed:
            logger.warning(
                f"Emails atascados en 'sending': {retried} devueltos a pendiente, "
                f"{failed} marcados como fallidos"
            )
        return retried + failed

    async def pending_ids(self, db: AsyncSession, limit: int = 100) -> List[int]:
        """Emails pendientes que aún tienen intentos disponibles"""
        stmt = (
            select(EmailQueue.id)
            .where(EmailQueue.status == "pending", EmailQueue.attempts < EmailQueue.max_attempts)
            .order_by(EmailQueue.created_at, EmailQueue.id)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())


email_queue_service = EmailQueueService()
