# jetoni/services/ws_manager.py
"""
Service: ws_manager.py
- Canaux WebSocket par session : session_id -> sockets ET socket -> session_id.
- Abonnement idempotent (déplacement de socket si la session change).
- Snapshots immuables pour éviter "set changed size during iteration".
- Implémente `Notifier` : le gestionnaire de sessions (code synchrone) publie ses
  événements via le pont `_run_async`; tout échec est journalisé puis ignoré.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Dict, Set

import anyio
import orjson as json
from starlette.websockets import WebSocket, WebSocketState

from jetoni.services.notifier import Notifier

logger = logging.getLogger(__name__)


@dataclass
class WSManager(Notifier):
    _lock: RLock = field(default_factory=RLock, init=False, repr=False)
    # session_id -> set(WebSocket)
    clients_by_session: Dict[str, Set[WebSocket]] = field(default_factory=dict)
    # reverse map: socket -> session_id
    ws_to_session: Dict[WebSocket, str] = field(default_factory=dict)

    async def connect(self, ws: WebSocket, session_id: str) -> None:
        """Accepte la connexion WS et l'abonne au canal de la session."""
        await ws.accept()
        self.subscribe(ws, session_id)

    def subscribe(self, ws: WebSocket, session_id: str) -> None:
        with self._lock:
            self._unlink(ws)
            self.clients_by_session.setdefault(session_id, set()).add(ws)
            self.ws_to_session[ws] = session_id

    def _unlink(self, ws: WebSocket) -> None:
        with self._lock:
            prev = self.ws_to_session.pop(ws, None)
            if prev:
                bucket = self.clients_by_session.get(prev)
                if bucket is not None:
                    bucket.discard(ws)
                    if not bucket:
                        self.clients_by_session.pop(prev, None)

    async def disconnect(self, ws: WebSocket) -> None:
        """Ferme proprement la connexion et nettoie les registres."""
        self._unlink(ws)
        if ws.client_state == WebSocketState.DISCONNECTED or ws.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await ws.close()
        except RuntimeError:
            logger.debug("WS already closed", exc_info=True)

    async def _send_json_one(self, ws: WebSocket, payload: Any) -> bool:
        """Envoie à un WS; renvoie True si succès, sinon False (et retire le WS mort)."""
        try:
            await ws.send_text(json.dumps(payload).decode("utf-8"))
            return True
        except Exception:
            self._unlink(ws)
            return False

    async def send_json(self, ws: WebSocket, payload: Any) -> bool:
        return await self._send_json_one(ws, payload)

    def _snapshot_session(self, session_id: str) -> list[WebSocket]:
        with self._lock:
            return list(self.clients_by_session.get(session_id, set()))

    async def broadcast(self, session_id: str, payload: Any) -> int:
        conns = self._snapshot_session(session_id)
        success = 0
        for ws in conns:
            if await self._send_json_one(ws, payload):
                success += 1
        logger.debug("WS broadcast", extra={"session_id": session_id, "sent": success, "total": len(conns)})
        return success

    async def broadcast_type(self, session_id: str, event_type: str, payload: Any) -> int:
        return await self.broadcast(session_id, {"type": event_type, "session_id": session_id, "payload": payload})

    def stats(self) -> dict:
        with self._lock:
            sessions = {sid: len(conns) for sid, conns in self.clients_by_session.items()}
            return {"sessions": sessions, "connections_total": sum(sessions.values())}

    async def close_session(self, session_id: str) -> int:
        conns = self._snapshot_session(session_id)
        for ws in conns:
            await self.disconnect(ws)
        return len(conns)

    # ---------- Notifier ----------
    def notify(self, session_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        if not self._snapshot_session(session_id):
            return
        try:
            _run_async(self.broadcast_type(session_id, event_type, payload))
        except Exception:
            logger.warning(
                "WS notify failed",
                exc_info=True,
                extra={"session_id": session_id, "event_type": event_type},
            )


WS = WSManager()

# Tâches planifiées sans attente : référence forte jusqu'à leur fin
_PENDING_TASKS: Set[asyncio.Task] = set()


def _on_task_done(task: asyncio.Task) -> None:
    _PENDING_TASKS.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("Background WS task failed", exc_info=exc)


def _run_async(coro):
    """
    Exécute une coroutine depuis un contexte potentiellement synchrone.
    - Essaie anyio.from_thread.run si on est dans un worker anyio (run_in_threadpool).
    - Sinon, planifie sur la loop courante si elle tourne, ou en crée une.
    """

    async def _runner():
        return await coro

    try:
        return anyio.from_thread.run(_runner)
    except RuntimeError:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            task = loop.create_task(_runner())
            _PENDING_TASKS.add(task)
            task.add_done_callback(_on_task_done)
            return None
        return asyncio.run(_runner())
