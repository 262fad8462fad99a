"""
Service: game_client.py
- Client HTTP côté participant/hôte pour l'API de parties (`/api/game/...`).
- Utilisé par `HostMonitor` (lecture de snapshot) et `HeartbeatEmitter` (heartbeat).
- Les retries avec backoff exponentiel vivent ici, à la frontière réseau, pas dans le cœur.
"""
import json
import logging
from typing import Any, Dict, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT: Tuple[float, float] = (3.0, 5.0)  # connect, read


class GameAPIError(RuntimeError):
    """Échec d'appel à l'API de parties; `status_code` vaut None pour une erreur réseau."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GameAPIClient:
    """
    Client HTTP minimal.
    - Configure retries avec backoff exponentiel (429/5xx).
    - Traduit les statuts d'erreur en `GameAPIError(status_code=...)`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        session: Optional[requests.Session] = None,
        timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or self._build_session()
        self.timeout = timeout

    @staticmethod
    def _build_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=3,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset({"GET", "POST", "DELETE"}),
            respect_retry_after_header=True,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Game API request failed", extra={"url": url, "method": method})
            raise GameAPIError("game api request failed") from exc

        if response.status_code >= 400:
            raise GameAPIError(f"game api returned {response.status_code}", status_code=response.status_code)
        try:
            return response.json()
        except json.JSONDecodeError as exc:
            raise GameAPIError("invalid json payload", status_code=response.status_code) from exc

    def get_game(self, session_id: str) -> Dict[str, Any]:
        """Snapshot de session (dict). Lève GameAPIError(404) si la session n'existe plus."""
        data = self._request("GET", f"/api/game/{session_id}")
        return data.get("session") or {}

    def send_heartbeat(self, session_id: str, player_id: Optional[str] = None) -> None:
        self._request("POST", f"/api/game/{session_id}/heartbeat", {"player_id": player_id})

    def delete_game(self, session_id: str) -> None:
        self._request("DELETE", f"/api/game/{session_id}")
