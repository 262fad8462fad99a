"""
Module routes/health.py
Rôle:
- Endpoint de santé (service OK + backend de stockage + connexions WS).
"""
from fastapi import APIRouter

from jetoni.config.settings import settings
from jetoni.services.ws_manager import WS

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health():
    """Renvoie un OK minimal avec le nom de service configuré."""
    return {
        "ok": True,
        "service": settings.APP_NAME,
        "store": "redis" if settings.REDIS_URL else "memory",
        "ws": WS.stats(),
    }
