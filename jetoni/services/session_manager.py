"""
Service: session_manager.py
Rôle:
- Cycle de vie autoritaire des sessions : création, arrivée/départ de joueurs,
  remplissage IA, mises à jour d'état validées, fin de partie, balayage des sessions
  abandonnées.
- Orchestration des briques pures : `state_validator`, `roles_engine`, `game_results`.

Machine d'états:
    Lobby --(capacité atteinte | démarrage explicite | 1re mise à jour acceptée)--> Playing
    Playing --(end_session)--> Ended
    Lobby --(balayage | départ de l'hôte en lobby)--> supprimée
    Aucun retour depuis Ended.

Concurrence:
- Aucun état partagé en mémoire : chaque appel fait lecture → modification → écriture du
  blob de session. Pas de verrou : deux mises à jour concurrentes sur la même session
  sont en "dernier écrit gagne" au niveau du blob (cohérence à terme, limitation connue).
- Le balayage ne supprime que des sessions déjà confirmées obsolètes ou absentes.

Erreurs:
- Les erreurs métier (`SessionError`) sont levées vers l'appelant; `StoreError` remonte telle quelle.
"""
from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union
from uuid import uuid4

from pydantic import ValidationError

from jetoni.config.settings import Settings, settings as default_settings
from jetoni.models.game import GameConfig, GameResults, GameSession, SessionListing, SessionStatus
from jetoni.models.player import Player, PlayerStateUpdate, Vector3
from jetoni.services.errors import (
    AlreadyStarted,
    Expired,
    Full,
    InvalidConfig,
    InvalidState,
    NotFound,
    PlayerNotFound,
    WrongStatus,
)
from jetoni.services.game_results import compute_results
from jetoni.services.host_monitor import host_is_alive
from jetoni.services.notifier import Notifier, safe_notify
from jetoni.services.roles_engine import assign_chasers
from jetoni.services.session_store import SessionRepository
from jetoni.services.state_validator import StateLimits, validate_update

logger = logging.getLogger(__name__)

DEFAULT_HOST_NAME = "Host"
AI_PREFIX = "AI_"

# (event_type, payload) en attente de publication
PendingEvents = List[Tuple[str, Dict[str, Any]]]


# -----------------------------
# Identifiants
# -----------------------------
def new_session_id(now: float) -> str:
    """`game_<epoch_ms>_<suffixe>` : la date de création se relit depuis l'identifiant."""
    return f"game_{int(now * 1000)}_{uuid4().hex[:8]}"


def new_player_id(now: float) -> str:
    return f"player_{int(now * 1000)}_{uuid4().hex[:8]}"


def created_at_from_session_id(session_id: str) -> Optional[float]:
    parts = session_id.split("_")
    if len(parts) < 3 or parts[0] != "game":
        return None
    try:
        return int(parts[1]) / 1000.0
    except ValueError:
        return None


class SessionManager:
    def __init__(
        self,
        repository: SessionRepository,
        *,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        notifier: Optional[Notifier] = None,
        config: Settings = default_settings,
    ) -> None:
        self.repository = repository
        self.rng = rng or random.Random()
        self.clock = clock
        self.notifier = notifier or Notifier()
        self.config = config
        self.limits = StateLimits(
            world_bound=config.WORLD_BOUND,
            max_speed=config.MAX_SPEED,
            max_fuel=config.MAX_FUEL,
            max_cooldown=config.MAX_ABILITY_COOLDOWN,
        )

    # -----------------------------
    # Helpers internes
    # -----------------------------
    def _load(self, session_id: str) -> GameSession:
        session = self.repository.load_session(session_id)
        if session is None:
            raise NotFound(f"session {session_id} not found")
        return session

    def _save(self, session: GameSession) -> None:
        self.repository.save_session(session)

    def _notify(self, session: GameSession, event_type: str, **payload: Any) -> None:
        safe_notify(self.notifier, session.session_id, event_type, payload)

    def _flush(self, session: GameSession, events: PendingEvents) -> None:
        """Publie les événements mis en attente, une fois la session écrite."""
        for event_type, payload in events:
            safe_notify(self.notifier, session.session_id, event_type, payload)
        events.clear()

    def validate_config(self, raw: Union[GameConfig, Mapping[str, Any], None]) -> GameConfig:
        if raw is None:
            raise InvalidConfig("game configuration is required")
        try:
            config = raw if isinstance(raw, GameConfig) else GameConfig.model_validate(raw)
        except ValidationError as exc:
            raise InvalidConfig("malformed game configuration") from exc

        if not (self.config.MIN_TOTAL_PLAYERS <= config.total_players <= self.config.MAX_TOTAL_PLAYERS):
            raise InvalidConfig(
                f"total players must be between {self.config.MIN_TOTAL_PLAYERS} and {self.config.MAX_TOTAL_PLAYERS}"
            )
        if config.total_players not in self.config.ALLOWED_PLAYER_COUNTS:
            raise InvalidConfig(f"total players must be one of {self.config.ALLOWED_PLAYER_COUNTS}")
        if config.round_duration not in self.config.ALLOWED_ROUND_DURATIONS:
            raise InvalidConfig(f"round duration must be one of {self.config.ALLOWED_ROUND_DURATIONS}")
        if config.rounds not in self.config.ALLOWED_ROUND_COUNTS:
            raise InvalidConfig(f"rounds must be one of {self.config.ALLOWED_ROUND_COUNTS}")
        return config

    def is_placeholder_name(self, username: Optional[str]) -> bool:
        """Nom d'hôte provisoire (username pas encore résolu côté client)."""
        name = (username or "").strip()
        if not name or name in self.config.PLACEHOLDER_HOST_NAMES:
            return True
        return any(name.startswith(prefix) for prefix in self.config.PLACEHOLDER_HOST_PREFIXES)

    def _session_age(self, session: GameSession, now: float) -> float:
        return now - session.created_at

    def _assign_roles(self, session: GameSession, events: PendingEvents) -> GameSession:
        players = assign_chasers(session.players, self.rng)
        session = session.with_players(players).model_copy(update={"roles_assigned": True})
        events.append(("roles_assigned", {"chaser_ids": list(session.chaser_ids())}))
        return session

    def _begin_play(self, session: GameSession, now: float, events: PendingEvents) -> GameSession:
        """
        Passage Lobby → Playing.
        Garantit une (et une seule) attribution des rôles avant que `playing` soit visible,
        fige `initial_chaser_ids` et ne pose `started_at` que s'il est vide.
        Les événements sont ajoutés à `events` : l'appelant les publie après `_save`.
        """
        if not session.roles_assigned:
            session = self._assign_roles(session, events)
        update: dict = {"status": SessionStatus.PLAYING}
        if session.initial_chaser_ids is None:
            update["initial_chaser_ids"] = session.chaser_ids()
        if session.started_at is None:
            update["started_at"] = now
        session = session.model_copy(update=update)
        logger.info(
            "Session started",
            extra={"session_id": session.session_id, "players": len(session.players)},
        )
        events.append(("session_started", {"initial_chaser_ids": list(session.initial_chaser_ids or ())}))
        return session

    # -----------------------------
    # Création / lecture / suppression
    # -----------------------------
    def create_session(
        self,
        config: Union[GameConfig, Mapping[str, Any], None],
        owner_username: Optional[str] = None,
    ) -> Tuple[str, str]:
        """Crée une session en lobby et renvoie (session_id, owner_id)."""
        game_config = self.validate_config(config)
        username = (owner_username or "").strip() or DEFAULT_HOST_NAME
        now = self.clock()

        # Un hôte qui relance une partie abandonne la précédente
        if not self.is_placeholder_name(username):
            previous = self.repository.owned_session_id(username)
            if previous:
                logger.info(
                    "Deleting previous session of host",
                    extra={"session_id": previous, "username": username},
                )
                self.repository.delete_session(previous)

        session_id = new_session_id(now)
        owner = Player(
            player_id=new_player_id(now),
            username=username,
            position=Vector3(x=0.0, y=2.0, z=0.0),
        )
        session = GameSession(
            session_id=session_id,
            owner_id=owner.player_id,
            config=game_config,
            players=(owner,),
            created_at=now,
        )
        self._save(session)
        self.repository.add_active(session_id, now)
        if not self.is_placeholder_name(username):
            self.repository.set_owned_session(username, session_id)

        logger.info("Session created", extra={"session_id": session_id, "username": username})
        self._notify(session, "session_created", owner_id=owner.player_id)
        return session_id, owner.player_id

    def get_session(self, session_id: str) -> GameSession:
        return self._load(session_id)

    def delete_session(self, session_id: str) -> None:
        """Suppression explicite (sortie de l'hôte)."""
        session = self.repository.load_session(session_id)
        self.repository.delete_session(session_id)
        if session is None:
            raise NotFound(f"session {session_id} not found")
        owner = session.owner
        if owner is not None:
            self.repository.clear_owned_session(owner.username, session_id)
        logger.info("Session deleted", extra={"session_id": session_id})
        self._notify(session, "session_deleted")

    # -----------------------------
    # Joueurs
    # -----------------------------
    def join_session(self, session_id: str, username: str) -> Tuple[str, GameSession]:
        session = self._load(session_id)
        now = self.clock()

        if self._session_age(session, now) > self.config.SESSION_MAX_AGE_SECONDS:
            raise Expired(f"session {session_id} is too old to join")

        existing = session.find_by_username(username)
        if existing is not None:
            return existing.player_id, session

        if session.status != SessionStatus.LOBBY:
            raise AlreadyStarted(f"session {session_id} has already started")
        if session.is_full:
            raise Full(f"session {session_id} is full")

        player = Player(player_id=new_player_id(now), username=username)
        session = session.appended(player)
        events: PendingEvents = [("player_joined", {"player_id": player.player_id, "username": username})]

        if session.is_full:
            session = self._begin_play(session, now, events)

        self._save(session)
        self._flush(session, events)
        logger.info(
            "Player joined",
            extra={"session_id": session_id, "player_id": player.player_id, "players": len(session.players)},
        )
        return player.player_id, session

    def add_ai_fillers(self, session_id: str) -> GameSession:
        """
        Complète les places libres avec des IA.
        - En lobby : attribution des rôles sur la liste complète puis démarrage.
        - En cours de partie (démarrage implicite avant d'être pleine) : les IA arrivent
          runners, les rôles et `initial_chaser_ids` déjà figés ne bougent pas.
        """
        session = self._load(session_id)
        if session.status == SessionStatus.ENDED:
            raise WrongStatus("cannot add AI players once the session has ended")
        if session.is_full and session.roles_assigned:
            return session

        now = self.clock()
        events: PendingEvents = []
        ai_count = sum(1 for p in session.players if p.is_ai)
        for i in range(session.open_slots):
            bot = Player(
                player_id=new_player_id(now),
                username=f"{AI_PREFIX}{ai_count + i + 1}",
                is_ai=True,
            )
            session = session.appended(bot)
            events.append(("player_joined", {"player_id": bot.player_id, "username": bot.username}))

        if session.status == SessionStatus.LOBBY:
            session = self._assign_roles(session, events)
            session = self._begin_play(session, now, events)

        self._save(session)
        self._flush(session, events)
        logger.info(
            "AI fillers added",
            extra={"session_id": session_id, "players": len(session.players), "status": session.status.value},
        )
        return session

    def leave_session(self, session_id: str, player_id: str) -> GameSession:
        session = self._load(session_id)
        if session.status != SessionStatus.LOBBY:
            raise WrongStatus("players can only leave while in lobby")
        if player_id == session.owner_id:
            raise WrongStatus("the host cannot leave, delete the session instead")
        if session.find_player(player_id) is None:
            raise PlayerNotFound(f"player {player_id} not in session")

        session = session.without_player(player_id)
        self._save(session)
        self._notify(session, "player_left", player_id=player_id)
        return session

    def replace_with_ai(self, session_id: str, player_id: str) -> Optional[GameSession]:
        """
        Joueur déconnecté → IA à sa place (position et stats conservées).
        Hôte déconnecté en lobby → la session est supprimée (renvoie None).
        """
        session = self._load(session_id)
        if player_id == session.owner_id and session.status == SessionStatus.LOBBY:
            logger.info("Host left lobby, closing session", extra={"session_id": session_id})
            self.delete_session(session_id)
            return None

        player = session.find_player(player_id)
        if player is None:
            raise PlayerNotFound(f"player {player_id} not in session")
        if player.is_ai:
            return session

        replaced = player.model_copy(update={"username": f"{AI_PREFIX}{player.username}", "is_ai": True})
        session = session.with_player(replaced)
        self._save(session)
        self._notify(session, "player_replaced", player_id=player_id)
        return session

    # -----------------------------
    # Partie
    # -----------------------------
    def start_session(self, session_id: str) -> GameSession:
        session = self._load(session_id)
        if session.status == SessionStatus.PLAYING:
            return session
        if session.status == SessionStatus.ENDED:
            raise WrongStatus("session has already ended")
        events: PendingEvents = []
        session = self._begin_play(session, self.clock(), events)
        self._save(session)
        self._flush(session, events)
        return session

    def update_player_state(
        self,
        session_id: str,
        player_id: str,
        partial: Union[PlayerStateUpdate, Mapping[str, Any]],
    ) -> GameSession:
        """
        Fusionne une mise à jour partielle validée dans l'enregistrement du joueur.
        Rejet global (`InvalidState`) si un champ est invalide : aucune écriture partielle.
        """
        session = self._load(session_id)
        now = self.clock()

        if session.status == SessionStatus.ENDED:
            ended_at = session.ended_at or now
            if now - ended_at > self.config.ENDED_GRACE_SECONDS:
                raise WrongStatus("session has ended")
        elif session.status not in (SessionStatus.LOBBY, SessionStatus.PLAYING):
            raise WrongStatus(f"cannot update while {session.status.value}")

        player = session.find_player(player_id)
        if player is None:
            raise PlayerNotFound(f"player {player_id} not in session")

        try:
            update = partial if isinstance(partial, PlayerStateUpdate) else PlayerStateUpdate.model_validate(partial)
        except ValidationError as exc:
            raise InvalidState("malformed player state") from exc
        clean = validate_update(update, self.limits)

        session = session.with_player(player.model_copy(update=clean))
        events: PendingEvents = []
        if session.status == SessionStatus.LOBBY:
            session = self._begin_play(session, now, events)

        self._save(session)
        self._flush(session, events)
        logger.debug("Player state updated", extra={"session_id": session_id, "player_id": player_id})
        return session

    def end_session(self, session_id: str) -> GameResults:
        """
        Termine la partie et calcule les résultats depuis `initial_chaser_ids`.
        Idempotent : `ended_at` n'est posé qu'une fois, un second appel recalcule à l'identique.
        """
        session = self._load(session_id)
        if session.status != SessionStatus.ENDED or session.ended_at is None:
            session = session.model_copy(
                update={"status": SessionStatus.ENDED, "ended_at": session.ended_at or self.clock()}
            )

        results = compute_results(session)
        self._save(session)
        self.repository.remove_active(session_id)

        logger.info(
            "Session ended",
            extra={"session_id": session_id, "team_winner": results.team_winner},
        )
        self._notify(session, "session_ended", team_winner=results.team_winner)
        return results

    # -----------------------------
    # Listing
    # -----------------------------
    def list_joinable_sessions(self) -> List[SessionListing]:
        now = self.clock()
        listings: List[SessionListing] = []
        for session_id in self.repository.active_ids():
            session = self.repository.load_session(session_id)
            if session is None:
                continue
            if session.status != SessionStatus.LOBBY or session.is_full:
                continue
            if self._session_age(session, now) > self.config.SESSION_MAX_AGE_SECONDS:
                continue
            owner = session.owner
            host_username = owner.username if owner else ""
            if self.is_placeholder_name(host_username):
                logger.debug(
                    "Skipping session with placeholder host",
                    extra={"session_id": session_id, "username": host_username},
                )
                continue
            listings.append(
                SessionListing(
                    session_id=session.session_id,
                    host_username=host_username,
                    current_players=len(session.players),
                    total_players=session.config.total_players,
                    round_duration=session.config.round_duration,
                    rounds=session.config.rounds,
                    status=session.status,
                )
            )
        return listings

    # -----------------------------
    # Vivacité de l'hôte
    # -----------------------------
    def record_heartbeat(self, session_id: str, player_id: Optional[str] = None) -> bool:
        """
        Horodate le heartbeat de l'hôte. Un heartbeat de participant (player_id ≠ hôte)
        est accepté mais n'a aucun effet. Renvoie True si l'horodatage a été posé.
        """
        session = self._load(session_id)
        if player_id and player_id != session.owner_id:
            return False
        session = session.model_copy(update={"last_owner_heartbeat_at": self.clock()})
        self._save(session)
        return True

    def is_host_alive(self, session_id: str) -> bool:
        session = self.repository.load_session(session_id)
        if session is None:
            return False
        return host_is_alive(session.last_owner_heartbeat_at, self.clock(), self.config.HOST_TIMEOUT_SECONDS)

    def _is_stale(self, session: GameSession, now: float) -> bool:
        threshold = self.config.STALE_SESSION_SECONDS
        if session.last_owner_heartbeat_at is not None:
            return now - session.last_owner_heartbeat_at > threshold
        created = created_at_from_session_id(session.session_id)
        if created is None:
            created = session.created_at
        return now - created > threshold

    def sweep_stale_sessions(self) -> List[str]:
        """
        Balaye l'index des parties actives et supprime :
        - les entrées dont le blob a déjà disparu,
        - les sessions dont le heartbeat hôte (ou, à défaut, la création) dépasse le seuil.
        """
        now = self.clock()
        removed: List[str] = []
        for session_id in self.repository.active_ids():
            session = self.repository.load_session(session_id)
            if session is None:
                self.repository.remove_active(session_id)
                removed.append(session_id)
                continue
            if self._is_stale(session, now):
                self.repository.delete_session(session_id)
                owner = session.owner
                if owner is not None:
                    self.repository.clear_owned_session(owner.username, session_id)
                self._notify(session, "session_deleted", reason="stale")
                removed.append(session_id)

        if removed:
            logger.warning("Stale sessions removed", extra={"count": len(removed), "session_ids": removed})
        return removed

    def purge_placeholder_sessions(self) -> List[str]:
        """Nettoyage admin : sessions listées dont l'hôte porte un nom provisoire."""
        removed: List[str] = []
        for session_id in self.repository.active_ids():
            session = self.repository.load_session(session_id)
            if session is None:
                self.repository.remove_active(session_id)
                removed.append(session_id)
                continue
            owner = session.owner
            if self.is_placeholder_name(owner.username if owner else None):
                self.repository.delete_session(session_id)
                removed.append(session_id)
        if removed:
            logger.info("Placeholder sessions purged", extra={"count": len(removed)})
        return removed
