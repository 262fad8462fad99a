"""
Module routes/stats.py
- Statistiques joueur persistantes (sans TTL), hors cycle de vie des sessions.
"""
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from jetoni.deps.manager import get_manager
from jetoni.models.player import PlayerStats
from jetoni.services.errors import SessionError
from jetoni.services.session_manager import SessionManager
from jetoni.services.stats_service import get_player_stats, record_player_stats

router = APIRouter(prefix="/api", tags=["stats"])


class RecordStatsIn(BaseModel):
    user_id: str
    won: bool
    survival_time: float = 0.0


@router.post("/stats", response_model=PlayerStats)
def post_stats(body: RecordStatsIn, manager: SessionManager = Depends(get_manager)):
    try:
        return record_player_stats(manager.repository, body.user_id, body.won, body.survival_time)
    except SessionError as exc:
        raise HTTPException(status_code=400, detail=exc.code) from exc


@router.get("/stats/{user_id}", response_model=PlayerStats)
def get_stats(user_id: str, manager: SessionManager = Depends(get_manager)):
    return get_player_stats(manager.repository, user_id)
