"""Tareas asíncronas de entrega de la cola de emails"""
from contextlib import asynccontextmanager
import asyncio
import logging
import os

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from shared.cache.celery_app import celery_app
from shared.database.connection import to_async_url

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper para ejecutar coroutines en contexto síncrono de Celery"""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@asynccontextmanager
async def task_session():
    """Sesión propia de la tarea; cada run_async usa un event loop nuevo"""
    database_url = to_async_url(os.getenv("DATABASE_URL", settings.DATABASE_URL))
    engine_kwargs = {"pool_size": 2, "max_overflow": 2} if database_url.startswith("postgresql") else {}
    engine = create_async_engine(database_url, **engine_kwargs)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with session_maker() as db:
            yield db
    finally:
        await engine.dispose()


@celery_app.task(name="send_queued_email", bind=True)
def send_queued_email_task(self, entry_id: int):
    """
    Entregar un email de la cola

    Los reintentos los controla la tabla (attempts/max_attempts) y flush_email_queue
    """
    from services.notifications.services.email_queue_service import email_queue_service
    from services.notifications.services.email_service import EmailService

    logger.info(f"[CELERY] Enviando email {entry_id} de la cola")

    async def deliver():
        async with task_session() as db:
            return await email_queue_service.deliver(db, entry_id, EmailService())

    status = run_async(deliver())
    logger.info(f"[CELERY] Email {entry_id}: {status}")
    return {"entry_id": entry_id, "status": status}


@celery_app.task(name="flush_email_queue")
def flush_email_queue_task(limit: int = 100):
    """Liberar envíos abandonados y volver a despachar los pendientes (tarea periódica)"""
    from services.notifications.services.email_queue_service import email_queue_service

    async def pending():
        async with task_session() as db:
            released = await email_queue_service.release_stale(db)
            return released, await email_queue_service.pending_ids(db, limit=limit)

    released, entry_ids = run_async(pending())
    for entry_id in entry_ids:
        send_queued_email_task.delay(entry_id)

    if entry_ids:
        logger.info(f"[CELERY] {len(entry_ids)} emails pendientes despachados")
    return {"dispatched": len(entry_ids), "released": released}
