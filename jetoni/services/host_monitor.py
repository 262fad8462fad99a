"""
Service: host_monitor.py
Rôle:
- Protocole de vivacité de l'hôte (propriétaire de la session).

Côté hôte (`HeartbeatEmitter`):
- Envoie un heartbeat à intervalle court; un échec est journalisé, jamais propagé.

Côté participant (`HostMonitor`):
- Compare `now - last_owner_heartbeat_at` au délai `HOST_TIMEOUT_SECONDS`.
- Il faut plusieurs échecs *consécutifs* (défaut 3) pour déclarer l'hôte parti :
  un contrôle raté isolé (coupure réseau) ne détruit pas la partie.
- Un 404 ("session introuvable") est un départ immédiat et sans ambiguïté.

Côté serveur:
- `host_is_alive` est réutilisé par le balayage des sessions obsolètes.
"""
from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional

from jetoni.config.settings import settings
from jetoni.services.errors import NotFound
from jetoni.services.game_client import GameAPIClient

logger = logging.getLogger(__name__)


def host_is_alive(last_heartbeat_at: Optional[float], now: float, timeout: float) -> bool:
    """True si un heartbeat a été reçu il y a moins de `timeout` secondes."""
    if last_heartbeat_at is None:
        return False
    return (now - last_heartbeat_at) < timeout


def _is_not_found(exc: Exception) -> bool:
    if isinstance(exc, NotFound):
        return True
    return getattr(exc, "status_code", None) == 404


class _PeriodicWorker(ABC):
    """Exécute `_tick()` toutes les `interval` secondes dans un thread démon."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @abstractmethod
    def _tick(self) -> bool:
        """Renvoie True pour arrêter la boucle."""

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            if self._tick():
                break

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name=type(self).__name__, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 1.0)
        self._thread = None

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())


class HeartbeatEmitter(_PeriodicWorker):
    """Heartbeat périodique de l'hôte. Ne lève jamais."""

    def __init__(
        self,
        send: Callable[[str, Optional[str]], Any],
        session_id: str,
        owner_id: Optional[str] = None,
        *,
        interval: float = settings.HEARTBEAT_INTERVAL_SECONDS,
    ) -> None:
        super().__init__(interval)
        self._send = send
        self.session_id = session_id
        self.owner_id = owner_id

    @classmethod
    def for_api(
        cls,
        client: GameAPIClient,
        session_id: str,
        owner_id: Optional[str] = None,
        *,
        interval: float = settings.HEARTBEAT_INTERVAL_SECONDS,
    ) -> "HeartbeatEmitter":
        """Heartbeat de l'hôte vers `POST /api/game/{id}/heartbeat`."""
        return cls(client.send_heartbeat, session_id, owner_id, interval=interval)

    def beat(self) -> bool:
        try:
            self._send(self.session_id, self.owner_id)
            return True
        except Exception:
            logger.warning("Heartbeat failed", exc_info=True, extra={"session_id": self.session_id})
            return False

    def _tick(self) -> bool:
        self.beat()
        return False


class HostMonitor(_PeriodicWorker):
    """
    Surveillance de l'hôte par un participant.

    Args:
        fetch_snapshot: renvoie le snapshot de session (mapping avec
            `last_owner_heartbeat_at`), lève une erreur portant `status_code=404`
            (ou `NotFound`) si la session n'existe plus.
        on_host_gone: rappel invoqué une seule fois quand l'hôte est déclaré parti.
    """

    def __init__(
        self,
        fetch_snapshot: Callable[[str], Mapping[str, Any]],
        session_id: str,
        on_host_gone: Callable[[str], None],
        *,
        timeout: float = settings.HOST_TIMEOUT_SECONDS,
        max_failures: int = settings.HOST_MAX_CONSECUTIVE_FAILURES,
        interval: float = settings.HEARTBEAT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(interval)
        self._fetch = fetch_snapshot
        self.session_id = session_id
        self._on_host_gone = on_host_gone
        self.timeout = timeout
        self.max_failures = max_failures
        self._clock = clock
        self.consecutive_failures = 0
        self.host_gone = False

    @classmethod
    def for_api(
        cls,
        client: GameAPIClient,
        session_id: str,
        on_host_gone: Callable[[str], None],
        **kwargs: Any,
    ) -> "HostMonitor":
        """Surveillance via `GET /api/game/{id}` (un 404 lève `GameAPIError(status_code=404)`)."""
        return cls(client.get_game, session_id, on_host_gone, **kwargs)

    def _declare_gone(self, reason: str) -> None:
        if self.host_gone:
            return
        self.host_gone = True
        logger.warning("Host declared gone", extra={"session_id": self.session_id, "reason": reason})
        self._stop.set()
        self._on_host_gone(self.session_id)

    def _record_failure(self, reason: str) -> None:
        self.consecutive_failures += 1
        logger.info(
            "Host check failed",
            extra={
                "session_id": self.session_id,
                "reason": reason,
                "failures": self.consecutive_failures,
                "max_failures": self.max_failures,
            },
        )
        if self.consecutive_failures >= self.max_failures:
            self._declare_gone(reason)

    def check(self) -> bool:
        """Un contrôle. Renvoie True si l'hôte est (désormais) considéré parti."""
        if self.host_gone:
            return True
        try:
            snapshot = self._fetch(self.session_id)
        except Exception as exc:
            if _is_not_found(exc):
                self._declare_gone("session_not_found")
                return True
            self._record_failure("fetch_error")
            return self.host_gone

        last = snapshot.get("last_owner_heartbeat_at")
        if last is None:
            self._record_failure("no_heartbeat")
        elif not host_is_alive(float(last), self._clock(), self.timeout):
            self._record_failure("heartbeat_timeout")
        else:
            self.consecutive_failures = 0
        return self.host_gone

    def _tick(self) -> bool:
        return self.check()
