"""
Module routes/admin.py
Rôle:
- Endpoints de maintenance : balayage manuel des sessions obsolètes et purge des
  sessions à hôte provisoire.
- Protégés route par route par `admin_required` (Bearer `ADMIN_TOKEN`), pour ne pas
  bloquer les préflights OPTIONS.
"""
import logging

from fastapi import APIRouter, Depends

from jetoni.deps.auth import admin_required
from jetoni.deps.manager import get_manager
from jetoni.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/sweep", dependencies=[Depends(admin_required)])
def sweep(manager: SessionManager = Depends(get_manager)):
    removed = manager.sweep_stale_sessions()
    return {"ok": True, "removed": removed}


@router.post("/cleanup", dependencies=[Depends(admin_required)])
def cleanup(manager: SessionManager = Depends(get_manager)):
    removed = manager.purge_placeholder_sessions()
    logger.info("Admin cleanup", extra={"removed": len(removed)})
    return {"ok": True, "removed": removed}
