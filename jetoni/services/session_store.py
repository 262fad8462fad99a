"""
Session store
=============

Persistance des sessions au-dessus d'un `KeyValueStore` :
- un blob JSON (orjson) par session sous `game:<session_id>`, TTL glissant
  (renouvelé à chaque écriture),
- un index trié `games:active` (score = date de création) pour lister les parties
  sans scan complet,
- `owner:<username>` → session détenue par cet hôte (nettoyage au redémarrage d'un hôte),
- `stats:<user_id>` : statistiques joueur, sans TTL, hors cycle de vie des sessions.

Un blob absent ou illisible est traité comme "session disparue" (None), jamais comme
une erreur : l'index peut brièvement référencer une session expirée.
"""
from __future__ import annotations

import logging
from typing import List, Optional

import orjson as json
from pydantic import ValidationError

from jetoni.models.game import GameSession
from jetoni.models.player import PlayerStats
from jetoni.services.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

ACTIVE_INDEX = "games:active"


class SessionRepository:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        session_ttl: int,
        index_ttl: int,
        key_prefix: str = "",
    ) -> None:
        self.store = store
        self.session_ttl = session_ttl
        self.index_ttl = index_ttl
        self.key_prefix = key_prefix

    # -----------------------------
    # Clés
    # -----------------------------
    def _key(self, raw: str) -> str:
        return f"{self.key_prefix}{raw}"

    def _game_key(self, session_id: str) -> str:
        return self._key(f"game:{session_id}")

    def _owner_key(self, username: str) -> str:
        return self._key(f"owner:{username}")

    def _stats_key(self, user_id: str) -> str:
        return self._key(f"stats:{user_id}")

    @property
    def _index_key(self) -> str:
        return self._key(ACTIVE_INDEX)

    # -----------------------------
    # Sessions
    # -----------------------------
    def save_session(self, session: GameSession) -> None:
        payload = json.dumps(session.model_dump(mode="json"))
        self.store.put(self._game_key(session.session_id), payload, self.session_ttl)

    def load_session(self, session_id: str) -> Optional[GameSession]:
        """Charge une session (None si absente, expirée ou corrompue)."""
        raw = self.store.get(self._game_key(session_id))
        if raw is None:
            return None
        try:
            return GameSession.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.error("Unreadable session blob", exc_info=True, extra={"session_id": session_id})
            return None

    def delete_session(self, session_id: str) -> None:
        """Supprime le blob et l'entrée d'index (l'un peut déjà manquer)."""
        self.store.delete(self._game_key(session_id))
        self.store.remove_from_index(self._index_key, session_id)

    # -----------------------------
    # Index des parties actives
    # -----------------------------
    def add_active(self, session_id: str, score: float) -> None:
        self.store.add_to_index(self._index_key, session_id, score)
        self.store.set_index_ttl(self._index_key, self.index_ttl)

    def remove_active(self, session_id: str) -> None:
        self.store.remove_from_index(self._index_key, session_id)

    def active_ids(self) -> List[str]:
        return self.store.range_index(self._index_key)

    # -----------------------------
    # Session détenue par un hôte
    # -----------------------------
    def owned_session_id(self, username: str) -> Optional[str]:
        raw = self.store.get(self._owner_key(username))
        return raw.decode("utf-8") if raw else None

    def set_owned_session(self, username: str, session_id: str) -> None:
        self.store.put(self._owner_key(username), session_id.encode("utf-8"), self.session_ttl)

    def clear_owned_session(self, username: str, session_id: str) -> None:
        """Efface le lien hôte → session seulement s'il pointe encore vers `session_id`."""
        if self.owned_session_id(username) == session_id:
            self.store.delete(self._owner_key(username))

    # -----------------------------
    # Statistiques joueur (sans TTL)
    # -----------------------------
    def load_stats(self, user_id: str) -> Optional[PlayerStats]:
        raw = self.store.get(self._stats_key(user_id))
        if raw is None:
            return None
        try:
            return PlayerStats.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError):
            logger.error("Unreadable stats blob", exc_info=True, extra={"user_id": user_id})
            return None

    def save_stats(self, stats: PlayerStats) -> None:
        self.store.put(self._stats_key(stats.user_id), json.dumps(stats.model_dump(mode="json")), None)
