"""
Application FastAPI : point d'entrée
====================================

Rôle
----
- Instancie l'app FastAPI, configure le CORS pour le front,
- Monte les routeurs (REST + WebSocket),
- Démarre le balayage périodique des sessions abandonnées (APScheduler) dans le lifespan.

Notes
-----
- Les importations des routeurs sont explicites pour éviter les surprises d'auto-discovery.
- Garder `settings.ALLOWED_ORIGINS` en phase avec les URLs du front.
- ⚠️ Le middleware CORS doit être ajouté AVANT les include_router.
- `StoreError` (stockage indisponible) est la seule erreur qui remonte en 500.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timedelta

import anyio
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jetoni.config.settings import settings
from jetoni.deps.manager import get_manager
from jetoni.routes.admin import router as admin_router
from jetoni.routes.game import router as game_router
from jetoni.routes.health import router as health_router
from jetoni.routes.stats import router as stats_router
from jetoni.routes.websocket import router as ws_router
from jetoni.services.errors import StoreError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


async def sweep_job() -> None:
    """Job périodique : balayage exécuté dans un worker thread (I/O stockage bloquante)."""
    try:
        removed = await anyio.to_thread.run_sync(get_manager().sweep_stale_sessions)
    except StoreError:
        logger.exception("Stale session sweep failed")
        return
    logger.debug("Stale session sweep done", extra={"removed": len(removed)})


@asynccontextmanager
async def lifespan(app):
    scheduler = AsyncIOScheduler()
    if settings.SWEEP_ENABLED:
        scheduler.add_job(
            sweep_job,
            "interval",
            seconds=settings.SWEEP_INTERVAL_SECONDS,
            next_run_time=datetime.now() + timedelta(seconds=settings.SWEEP_INITIAL_DELAY_SECONDS),
            id="sweep_stale_sessions",
            max_instances=1,
            coalesce=True,
        )
        scheduler.start()
    logger.info(
        "Server started",
        extra={"store": "redis" if settings.REDIS_URL else "memory", "sweep": settings.SWEEP_ENABLED},
    )
    try:
        yield
    finally:
        if scheduler.running:
            scheduler.shutdown(wait=False)
        logger.info("Stop Server")


# --- App FastAPI principale ---
app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,  # ← whitelist des frontends autorisés
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],                     # ← dont Authorization (routes admin)
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("Store failure", exc_info=exc, extra={"path": request.url.path})
    return JSONResponse(status_code=500, content={"detail": "store_unavailable"})


# ===========================
# Montage des routers
# ===========================
app.include_router(game_router)
app.include_router(stats_router)
app.include_router(admin_router)
app.include_router(health_router)
app.include_router(ws_router)  # WebSocket endpoint (/ws/game/{id})


# --- Racine utile pour "ping" simple (sans /health) ---
@app.get("/")
async def root():
    return {"ok": True, "service": "jetoni-backend"}
