"""
Dépendance `get_manager`
- Construit paresseusement le `SessionManager` du process (stockage choisi par
  `settings.REDIS_URL`, notifications via le gestionnaire WebSocket).
- Les tests la remplacent par `app.dependency_overrides[get_manager]`.
"""
from __future__ import annotations

from threading import Lock
from typing import Optional

from jetoni.config.settings import settings
from jetoni.services.kv_store import build_store
from jetoni.services.session_manager import SessionManager
from jetoni.services.session_store import SessionRepository
from jetoni.services.ws_manager import WS

_lock = Lock()
_manager: Optional[SessionManager] = None


def build_manager() -> SessionManager:
    repository = SessionRepository(
        build_store(settings.REDIS_URL),
        session_ttl=settings.SESSION_TTL_SECONDS,
        index_ttl=settings.ACTIVE_INDEX_TTL_SECONDS,
        key_prefix=settings.KEY_PREFIX,
    )
    return SessionManager(repository, notifier=WS, config=settings)


def get_manager() -> SessionManager:
    global _manager
    if _manager is None:
        with _lock:
            if _manager is None:
                _manager = build_manager()
    return _manager
