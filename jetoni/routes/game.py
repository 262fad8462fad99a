"""
Module routes/game.py
Rôle:
- Endpoints publics du cycle de vie d'une partie (création, arrivée, état, fin...).

Intégrations:
- SessionManager via la dépendance `get_manager` (remplaçable en tests).
- Les erreurs métier (`SessionError`) deviennent `HTTPException(detail=<code>)` :
  400 par défaut, 404 pour une session introuvable sur la lecture et la fin de partie.
- Le heartbeat ne renvoie jamais d'erreur à l'appelant : un échec est seulement journalisé.

Notes:
- Endpoints synchrones (`def`) : FastAPI les exécute dans le threadpool, ce qui permet aux
  notifications WebSocket d'utiliser le pont anyio.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from jetoni.deps.manager import get_manager
from jetoni.models.game import GameResults, SessionListing
from jetoni.services.errors import SessionError, StoreError
from jetoni.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["game"])


# -----------------------------
# Schémas I/O
# -----------------------------
class CreateGameIn(BaseModel):
    config: Dict[str, Any]
    username: Optional[str] = None


class CreateGameOut(BaseModel):
    session_id: str
    owner_id: str


class JoinGameIn(BaseModel):
    session_id: str
    username: str


class PlayerIn(BaseModel):
    player_id: str


class HeartbeatIn(BaseModel):
    player_id: Optional[str] = None


class UpdateStateIn(BaseModel):
    player_id: str
    state: Dict[str, Any]


class GamesOut(BaseModel):
    sessions: List[SessionListing]


def _raise(exc: SessionError, *, not_found_status: int = 400) -> None:
    status = not_found_status if exc.status_code == 404 else 400
    raise HTTPException(status_code=status, detail=exc.code) from exc


# -----------------------------
# Cycle de vie
# -----------------------------
@router.post("/game/create", response_model=CreateGameOut)
def create_game(body: CreateGameIn, manager: SessionManager = Depends(get_manager)):
    try:
        session_id, owner_id = manager.create_session(body.config, body.username)
    except SessionError as exc:
        _raise(exc)
    return CreateGameOut(session_id=session_id, owner_id=owner_id)


@router.post("/game/join")
def join_game(body: JoinGameIn, manager: SessionManager = Depends(get_manager)):
    try:
        player_id, session = manager.join_session(body.session_id, body.username)
    except SessionError as exc:
        _raise(exc)
    return {"player_id": player_id, "session": session.model_dump(mode="json")}


@router.get("/game/{session_id}")
def get_game(session_id: str, manager: SessionManager = Depends(get_manager)):
    try:
        session = manager.get_session(session_id)
    except SessionError as exc:
        _raise(exc, not_found_status=404)
    return {"session": session.model_dump(mode="json")}


@router.post("/game/{session_id}/update")
def update_state(session_id: str, body: UpdateStateIn, manager: SessionManager = Depends(get_manager)):
    try:
        manager.update_player_state(session_id, body.player_id, body.state)
    except SessionError as exc:
        _raise(exc)
    return {"ok": True}


@router.post("/game/{session_id}/start")
def start_game(session_id: str, manager: SessionManager = Depends(get_manager)):
    try:
        session = manager.start_session(session_id)
    except SessionError as exc:
        _raise(exc)
    return {"ok": True, "session": session.model_dump(mode="json")}


@router.post("/game/{session_id}/end")
def end_game(session_id: str, manager: SessionManager = Depends(get_manager)):
    try:
        results: GameResults = manager.end_session(session_id)
    except SessionError as exc:
        _raise(exc, not_found_status=404)
    return {"results": results.model_dump(mode="json")}


@router.get("/games", response_model=GamesOut)
def list_games(manager: SessionManager = Depends(get_manager)):
    return GamesOut(sessions=manager.list_joinable_sessions())


@router.delete("/game/{session_id}")
def delete_game(session_id: str, manager: SessionManager = Depends(get_manager)):
    try:
        manager.delete_session(session_id)
    except SessionError as exc:
        _raise(exc)
    return {"ok": True}


# -----------------------------
# Vivacité & joueurs
# -----------------------------
@router.post("/game/{session_id}/heartbeat")
def heartbeat(session_id: str, body: Optional[HeartbeatIn] = None, manager: SessionManager = Depends(get_manager)):
    player_id = body.player_id if body else None
    try:
        manager.record_heartbeat(session_id, player_id)
    except (SessionError, StoreError):
        logger.warning("Heartbeat not recorded", exc_info=True, extra={"session_id": session_id})
    return {"ok": True}


@router.post("/game/{session_id}/leave")
def leave_game(session_id: str, body: PlayerIn, manager: SessionManager = Depends(get_manager)):
    try:
        manager.leave_session(session_id, body.player_id)
    except SessionError as exc:
        _raise(exc)
    return {"ok": True}


@router.post("/game/{session_id}/replace-player")
def replace_player(session_id: str, body: PlayerIn, manager: SessionManager = Depends(get_manager)):
    try:
        session = manager.replace_with_ai(session_id, body.player_id)
    except SessionError as exc:
        _raise(exc)
    return {"ok": True, "session_deleted": session is None}


@router.post("/game/{session_id}/add-ai")
def add_ai(session_id: str, manager: SessionManager = Depends(get_manager)):
    try:
        session = manager.add_ai_fillers(session_id)
    except SessionError as exc:
        _raise(exc)
    return {"ok": True, "session": session.model_dump(mode="json")}
