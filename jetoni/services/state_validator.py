"""
Service: state_validator.py
Rôle:
- Valider et borner la télémétrie joueur avant toute persistance ou diffusion.
- Fonctions pures, sans effet de bord.

Politique:
- NaN / ±Infinity sur n'importe quel champ numérique → rejet dur (`InvalidState`),
  la mise à jour entière est refusée.
- Valeurs finies mais hors bornes → bornage (clamp), jamais de rejet :
  - position : cube monde ±WORLD_BOUND par axe,
  - vitesse : norme plafonnée à MAX_SPEED par mise à l'échelle uniforme (direction conservée),
  - yaw dans (-π, π], pitch dans (-π/2, π/2),
  - fuel dans [0, MAX_FUEL], cooldown dans [0, MAX_ABILITY_COOLDOWN],
  - survived_time >= 0, tag_count >= 0.
- Le bornage est idempotent : clamp(clamp(x)) == clamp(x).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict

from jetoni.config.settings import settings
from jetoni.models.player import PlayerStateUpdate, Rotation, Vector3
from jetoni.services.errors import InvalidState

# Plus grande valeur strictement inférieure à π/2 (intervalle ouvert)
PITCH_LIMIT = math.nextafter(math.pi / 2, 0.0)


@dataclass(frozen=True)
class StateLimits:
    world_bound: float = settings.WORLD_BOUND
    max_speed: float = settings.MAX_SPEED
    max_fuel: float = settings.MAX_FUEL
    max_cooldown: float = settings.MAX_ABILITY_COOLDOWN


DEFAULT_LIMITS = StateLimits()


# -----------------------------
# Contrôles de finitude
# -----------------------------
def is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _require_finite(name: str, value: Any) -> None:
    if not is_finite_number(value):
        raise InvalidState(f"invalid_{name}")


def is_valid_vector(vector: Vector3) -> bool:
    return all(is_finite_number(c) for c in (vector.x, vector.y, vector.z))


def is_valid_rotation(rotation: Rotation) -> bool:
    return is_finite_number(rotation.yaw) and is_finite_number(rotation.pitch)


# -----------------------------
# Bornage
# -----------------------------
def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_position(position: Vector3, bound: float = DEFAULT_LIMITS.world_bound) -> Vector3:
    return Vector3(
        x=clamp(position.x, -bound, bound),
        y=clamp(position.y, -bound, bound),
        z=clamp(position.z, -bound, bound),
    )


def clamp_velocity(velocity: Vector3, max_speed: float = DEFAULT_LIMITS.max_speed) -> Vector3:
    """Plafonne la norme; la direction est conservée."""
    speed = math.hypot(velocity.x, velocity.y, velocity.z)
    if speed <= max_speed:
        return velocity

    scale = max_speed / speed
    scaled = Vector3(x=velocity.x * scale, y=velocity.y * scale, z=velocity.z * scale)
    # l'arrondi flottant peut laisser la norme à max_speed + epsilon
    while math.hypot(scaled.x, scaled.y, scaled.z) > max_speed:
        scale = math.nextafter(scale, 0.0)
        scaled = Vector3(x=velocity.x * scale, y=velocity.y * scale, z=velocity.z * scale)
    return scaled


def clamp_yaw(yaw: float) -> float:
    value = clamp(yaw, -math.pi, math.pi)
    # -π et π désignent le même cap; l'intervalle retenu est (-π, π]
    return math.pi if value == -math.pi else value


def clamp_rotation(rotation: Rotation) -> Rotation:
    return Rotation(
        yaw=clamp_yaw(rotation.yaw),
        pitch=clamp(rotation.pitch, -PITCH_LIMIT, PITCH_LIMIT),
    )


def clamp_fuel(fuel: float, max_fuel: float = DEFAULT_LIMITS.max_fuel) -> float:
    return clamp(fuel, 0.0, max_fuel)


def clamp_cooldown(cooldown: float, max_cooldown: float = DEFAULT_LIMITS.max_cooldown) -> float:
    return clamp(cooldown, 0.0, max_cooldown)


# -----------------------------
# Validation d'une mise à jour partielle
# -----------------------------
def validate_update(update: PlayerStateUpdate, limits: StateLimits = DEFAULT_LIMITS) -> Dict[str, Any]:
    """
    Valide puis borne tous les champs présents d'une mise à jour.

    Returns:
        dict des seuls champs présents, prêts pour `Player.model_copy(update=...)`.

    Raises:
        InvalidState: au moins un champ numérique est NaN/Infinity. Rien n'est appliqué.
    """
    # 1) rejet dur : tout est vérifié avant le moindre bornage
    if update.position is not None and not is_valid_vector(update.position):
        raise InvalidState("invalid_position")
    if update.velocity is not None and not is_valid_vector(update.velocity):
        raise InvalidState("invalid_velocity")
    if update.rotation is not None and not is_valid_rotation(update.rotation):
        raise InvalidState("invalid_rotation")
    for name in ("fuel", "survived_time", "tag_count", "ability_cooldown"):
        value = getattr(update, name)
        if value is not None:
            _require_finite(name, value)

    # 2) bornage
    clean: Dict[str, Any] = {}
    if update.position is not None:
        clean["position"] = clamp_position(update.position, limits.world_bound)
    if update.velocity is not None:
        clean["velocity"] = clamp_velocity(update.velocity, limits.max_speed)
    if update.rotation is not None:
        clean["rotation"] = clamp_rotation(update.rotation)
    if update.fuel is not None:
        clean["fuel"] = clamp_fuel(update.fuel, limits.max_fuel)
    if update.ability_cooldown is not None:
        clean["ability_cooldown"] = clamp_cooldown(update.ability_cooldown, limits.max_cooldown)
    if update.survived_time is not None:
        clean["survived_time"] = max(0.0, float(update.survived_time))
    if update.tag_count is not None:
        clean["tag_count"] = max(0, int(update.tag_count))

    for flag in ("is_chaser", "is_on_surface", "is_dashing", "is_propelling", "was_tagged"):
        value = getattr(update, flag)
        if value is not None:
            clean[flag] = bool(value)

    return clean
