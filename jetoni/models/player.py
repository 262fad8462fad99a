"""
Models / player.py
Rôle:
- Définir l'enregistrement d'un joueur dans une session (humain ou IA).
- Les modèles sont *gelés* (frozen) : toute mise à jour passe par `model_copy(update=...)`
  via les helpers du gestionnaire de session, jamais par mutation directe.

Champs:
- player_id: identifiant unique généré côté serveur.
- username: nom d'affichage (AI_x pour les IA de remplissage).
- is_chaser: rôle ONI courant (peut dériver en cours de partie).
- position / velocity / rotation: télémétrie validée et bornée par `state_validator`.
- fuel, ability_cooldown: jauges bornées.
- survived_time, was_tagged, tag_count: statistiques de fin de partie.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class Vector3(BaseModel):
    """Vecteur 3D (position ou vitesse). Les trois composantes sont obligatoires."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float


class Rotation(BaseModel):
    """Orientation caméra/joueur en radians."""
    model_config = ConfigDict(frozen=True)

    yaw: float
    pitch: float


def _origin() -> Vector3:
    return Vector3(x=0.0, y=0.0, z=0.0)


def _level() -> Rotation:
    return Rotation(yaw=0.0, pitch=0.0)


class Player(BaseModel):
    """Joueur d'une session (humain ou IA)."""
    model_config = ConfigDict(frozen=True)

    player_id: str
    username: str
    is_ai: bool = False
    is_chaser: bool = False
    position: Vector3 = Field(default_factory=_origin)
    velocity: Vector3 = Field(default_factory=_origin)
    rotation: Rotation = Field(default_factory=_level)
    fuel: float = 100.0
    is_on_surface: bool = True
    is_dashing: bool = False
    is_propelling: bool = False
    survived_time: float = 0.0
    was_tagged: bool = False
    tag_count: int = 0
    ability_cooldown: float = 0.0


class PlayerStateUpdate(BaseModel):
    """
    Mise à jour partielle envoyée par un client.
    Les champs absents (None) conservent leur valeur précédente (fusion, pas remplacement).
    """
    position: Optional[Vector3] = None
    velocity: Optional[Vector3] = None
    rotation: Optional[Rotation] = None
    fuel: Optional[float] = None
    is_chaser: Optional[bool] = None
    is_on_surface: Optional[bool] = None
    is_dashing: Optional[bool] = None
    is_propelling: Optional[bool] = None
    survived_time: Optional[float] = None
    was_tagged: Optional[bool] = None
    tag_count: Optional[int] = None
    ability_cooldown: Optional[float] = None


class PlayerStats(BaseModel):
    """Statistiques cumulées d'un utilisateur (persistées sans TTL)."""
    user_id: str
    games_played: int = 0
    wins: int = 0
    losses: int = 0
    total_survival_time: float = 0.0
    longest_survival: float = 0.0
