"""
Configuración de Celery para tareas asíncronas
Entrega de la cola de emails (outbox) y tareas periódicas
"""
from celery import Celery
from kombu import Queue, Exchange
import os
import logging

logger = logging.getLogger(__name__)

# Configuración de Redis
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_MAX_CONNECTIONS = int(os.getenv("CELERY_REDIS_MAX_CONNECTIONS", "20"))
EMAIL_QUEUE_FLUSH_SECONDS = int(os.getenv("EMAIL_QUEUE_FLUSH_SECONDS", "60"))

# Crear aplicación Celery
celery_app = Celery(
    "parques",
    broker=REDIS_URL,
    backend=REDIS_URL,
    include=[
        "services.notifications.tasks.email_tasks",
    ]
)

default_exchange = Exchange("default", type="direct")
priority_exchange = Exchange("priority", type="direct")

celery_app.conf.task_queues = (
    # Confirmaciones de pago
    Queue("high_priority", priority_exchange, routing_key="high"),
    Queue("default", default_exchange, routing_key="default"),
    # Tareas periódicas de mantenimiento
    Queue("low_priority", default_exchange, routing_key="low"),
)

celery_app.conf.task_routes = {
    "send_queued_email": {"queue": "high_priority"},
    "flush_email_queue": {"queue": "low_priority"},
}

celery_app.conf.beat_schedule = {
    "flush-email-queue": {
        "task": "flush_email_queue",
        "schedule": float(EMAIL_QUEUE_FLUSH_SECONDS),
    },
}

celery_app.conf.update(
    # Serialización
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    task_track_started=True,

    # Límites de tiempo
    task_time_limit=5 * 60,
    task_soft_time_limit=4 * 60,

    worker_prefetch_multiplier=1,

    # Pool de conexiones a Redis
    broker_pool_limit=REDIS_MAX_CONNECTIONS,
    redis_max_connections=REDIS_MAX_CONNECTIONS,

    broker_connection_retry_on_startup=True,
    broker_connection_max_retries=10,

    # ACK late: confirmar tarea solo cuando termina
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    result_expires=3600,

    worker_max_tasks_per_child=1000,

    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",

    # Protección contra flooding del proveedor de email
    task_annotations={
        "send_queued_email": {"rate_limit": "30/m"},
    },
)

logger.info(
    "Celery configurado - Broker: %s, Pool limit: %d",
    REDIS_URL.split("@")[-1] if "@" in REDIS_URL else REDIS_URL,
    REDIS_MAX_CONNECTIONS,
)
