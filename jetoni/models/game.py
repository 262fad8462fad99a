"""
Models / game.py
Rôle:
- Définir la session de jeu (lobby → partie → fin) et les résultats de fin de partie.
- `GameSession` est immuable : les helpers `with_player`, `with_players`, `appended`,
  `without_player` renvoient une nouvelle instance. C'est l'unique chemin de mutation,
  ce qui garantit la sémantique de fusion partielle à un seul endroit.

Invariants portés par le modèle:
- len(players) <= config.total_players (vérifié par le gestionnaire avant `appended`).
- initial_chaser_ids est figé une seule fois (passage Lobby → Playing).
"""
from enum import Enum
from typing import List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from jetoni.models.player import Player


class SessionStatus(str, Enum):
    LOBBY = "lobby"
    PLAYING = "playing"
    ENDED = "ended"


class GameConfig(BaseModel):
    """Paramètres d'une partie, figés à la création."""
    model_config = ConfigDict(frozen=True)

    total_players: int
    round_duration: int
    rounds: int


class GameSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    session_id: str
    owner_id: str
    status: SessionStatus = SessionStatus.LOBBY
    config: GameConfig
    players: Tuple[Player, ...] = ()
    created_at: float
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    last_owner_heartbeat_at: Optional[float] = None
    initial_chaser_ids: Optional[Tuple[str, ...]] = None
    roles_assigned: bool = False

    # -----------------------------
    # Lecture
    # -----------------------------
    def find_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.player_id == player_id:
                return player
        return None

    def find_by_username(self, username: str) -> Optional[Player]:
        for player in self.players:
            if player.username == username:
                return player
        return None

    @property
    def owner(self) -> Optional[Player]:
        return self.find_player(self.owner_id)

    @property
    def is_full(self) -> bool:
        return len(self.players) >= self.config.total_players

    @property
    def open_slots(self) -> int:
        return max(0, self.config.total_players - len(self.players))

    def chaser_ids(self) -> Tuple[str, ...]:
        return tuple(p.player_id for p in self.players if p.is_chaser)

    # -----------------------------
    # Builders (nouvelle instance)
    # -----------------------------
    def with_player(self, player: Player) -> "GameSession":
        """Remplace le joueur de même player_id (ordre conservé)."""
        players = tuple(player if p.player_id == player.player_id else p for p in self.players)
        return self.model_copy(update={"players": players})

    def with_players(self, players) -> "GameSession":
        return self.model_copy(update={"players": tuple(players)})

    def appended(self, player: Player) -> "GameSession":
        return self.model_copy(update={"players": self.players + (player,)})

    def without_player(self, player_id: str) -> "GameSession":
        players = tuple(p for p in self.players if p.player_id != player_id)
        return self.model_copy(update={"players": players})


class SessionListing(BaseModel):
    """Entrée de la liste des parties rejoignables."""
    session_id: str
    host_username: str
    current_players: int
    total_players: int
    round_duration: int
    rounds: int
    status: SessionStatus


class PlayerResult(BaseModel):
    player_id: str
    username: str
    survived_time: float
    was_tagged: bool
    is_ai: bool
    tag_count: int
    was_initial_chaser: bool


class GameResults(BaseModel):
    team_winner: Literal["runners", "oni"]
    players: List[PlayerResult]
