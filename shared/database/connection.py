"""Conexión a la base de datos PostgreSQL"""
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
import os
from typing import AsyncGenerator
import logging
import asyncio

from app.core.config import settings

logger = logging.getLogger(__name__)

# Base para modelos SQLAlchemy
Base = declarative_base()

# Engine y session factory
engine = None
async_session_maker = None


def to_async_url(database_url: str) -> str:
    """Convertir DATABASE_URL al driver async correspondiente"""
    # Limpiar parámetros de la URL (SSL y similares se configuran en connect_args)
    if database_url.startswith("postgresql") and "?" in database_url:
        database_url = database_url.split("?")[0]

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("postgresql+psycopg://"):
        database_url = database_url.replace("postgresql+psycopg://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("sqlite://"):
        database_url = database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


async def init_db(database_url: str = None):
    """Inicializar conexión a la base de datos"""
    global engine, async_session_maker

    if engine is not None:
        logger.warning("Database engine already initialized, skipping...")
        return

    database_url = to_async_url(database_url or os.getenv("DATABASE_URL", settings.DATABASE_URL))

    logger.info(f"Initializing database connection to: {database_url.split('@')[1] if '@' in database_url else database_url}")

    engine_kwargs = {}
    if database_url.startswith("postgresql"):
        # Configuración del pool solo aplica a PostgreSQL
        engine_kwargs = {
            "pool_pre_ping": True,  # Verificar conexiones antes de usar
            "pool_recycle": 300,
            "pool_timeout": 30,
            "pool_use_lifo": True,
            "pool_size": int(os.getenv("DATABASE_POOL_SIZE", "5")),
            "max_overflow": int(os.getenv("DATABASE_MAX_OVERFLOW", "10")),
        }
        logger.info(f"Pool config: size={engine_kwargs['pool_size']}, overflow={engine_kwargs['max_overflow']}")

    engine = create_async_engine(
        database_url,
        echo=os.getenv("APP_DEBUG", "False").lower() == "true",
        **engine_kwargs
    )

    async_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

    logger.info("Database engine initialized successfully")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency para obtener sesión de base de datos con retry para errores transitorios.

    Maneja errores de DNS y conexión transitorios con retry exponencial.
    """
    if async_session_maker is None:
        logger.error("Database not initialized! Call init_db() first.")
        raise RuntimeError("Database not initialized. Please check application startup.")

    max_retries = 3
    retry_delay = 0.5  # Segundos iniciales
    last_exception = None

    for attempt in range(max_retries):
        session = async_session_maker()
        try:
            # Forzar la conexión aquí para que los errores transitorios ocurran antes del yield
            await session.connection()
        except OSError as e:
            # Captura errores de DNS y socket (socket.gaierror es subclase de OSError)
            await session.close()
            last_exception = e
            if attempt < max_retries - 1:
                delay = retry_delay * (2 ** attempt)  # Exponential backoff
                logger.warning(
                    f"Database connection error (attempt {attempt + 1}/{max_retries}): {type(e).__name__}: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"Database connection failed after {max_retries} attempts: {e}")
            continue

        try:
            yield session
        finally:
            await session.close()
        return

    raise last_exception or RuntimeError("Database connection failed")


async def close_db():
    """Cerrar conexiones a la base de datos"""
    global engine, async_session_maker
    if engine:
        logger.info("Closing database connections...")
        await engine.dispose()
        engine = None
        async_session_maker = None
        logger.info("Database connections closed")
