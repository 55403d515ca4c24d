"""
Rate limiting usando slowapi + Redis

Los endpoints de pago son los más sensibles: cada intento crea objetos en Stripe
"""
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request, Response
from starlette.responses import JSONResponse
import hashlib
import os
import logging

logger = logging.getLogger(__name__)

# Storage del rate limiting: Redis por defecto para compartir límites entre instancias
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", REDIS_URL)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
# Número de proxies propios delante de la API; 0 = no confiar en X-Forwarded-For/X-Real-IP
TRUSTED_PROXY_HOPS = int(os.getenv("TRUSTED_PROXY_HOPS", "0"))


def get_real_client_ip(request: Request) -> str:
    """
    Obtener IP real del cliente considerando proxies/load balancers.

    Los headers de proxy solo se aceptan con TRUSTED_PROXY_HOPS > 0; cada proxy propio
    agrega una IP al final de X-Forwarded-For, así que el cliente es la entrada número
    TRUSTED_PROXY_HOPS contando desde el final. Lo que está antes lo controla el cliente.
    """
    if TRUSTED_PROXY_HOPS <= 0:
        return get_remote_address(request)

    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        hops = [ip.strip() for ip in forwarded_for.split(",") if ip.strip()]
        if hops:
            return hops[-min(TRUSTED_PROXY_HOPS, len(hops))]

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


def get_user_identifier(request: Request) -> str:
    """
    Generar identificador único para rate limiting.
    Combina IP + hash del token si está autenticado.
    """
    ip = get_real_client_ip(request)

    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        # Usar hash del token para no exponer el token completo
        token_hash = hashlib.md5(auth_header.encode()).hexdigest()[:8]
        return f"{ip}:{token_hash}"

    return ip


try:
    limiter = Limiter(
        key_func=get_user_identifier,
        storage_uri=RATE_LIMIT_STORAGE_URI,
        strategy="fixed-window",
        enabled=RATE_LIMIT_ENABLED,
        headers_enabled=False,  # Deshabilitado para compatibilidad con response_model de FastAPI
    )
    logger.info(
        f"Rate limiter inicializado: {RATE_LIMIT_STORAGE_URI.split('@')[-1] if '@' in RATE_LIMIT_STORAGE_URI else RATE_LIMIT_STORAGE_URI}"
    )
except Exception as e:
    # Fallback a memoria si el storage no está disponible
    logger.warning(f"Storage no disponible para rate limiting, usando memoria local: {e}")
    limiter = Limiter(
        key_func=get_user_identifier,
        strategy="fixed-window",
        enabled=RATE_LIMIT_ENABLED,
        headers_enabled=False,
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Handler personalizado para rate limit exceeded"""
    retry_after = exc.detail.split(" ")[-1] if exc.detail else "60"

    logger.warning(
        f"Rate limit exceeded - IP: {get_real_client_ip(request)}, "
        f"Path: {request.url.path}, "
        f"Retry-After: {retry_after}"
    )

    return JSONResponse(
        status_code=429,
        content={
            "error": "rate_limit_exceeded",
            "detail": "Demasiadas solicitudes. Por favor espera antes de intentar nuevamente.",
            "retry_after_seconds": int(retry_after) if retry_after.isdigit() else 60,
        },
        headers={"Retry-After": str(retry_after)}
    )


# ============ RATE LIMITS PRE-DEFINIDOS ============

RATE_LIMITS = {
    # Pagos: restrictivo, cada intento crea un PaymentIntent en Stripe
    "payment": "10/minute",

    # Consultas públicas (descuentos, estado de pago)
    "public": "60/minute",

    # Panel de administración
    "admin": "120/minute",

    "default": "30/minute",
}
