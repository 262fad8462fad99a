# jetoni/services/roles_engine.py
"""
Attribution des rôles ONI (chasseur) / runner.

Règles:
- 1 ONI pour 3 joueurs, arrondi inférieur, minimum 1.
- 0 ou 1 humain : tirage uniforme sur l'ensemble des joueurs (humains et IA confondus).
- 2 humains ou plus : au moins 1 humain ONI ET au moins 1 humain runner.
  On tire clamp(requis, 1, humains-1) humains, le reste des ONI vient exclusivement des IA.
- Tous les joueurs sont d'abord remis runner (ré-exécution idempotente).

Le RNG est injecté : même graine + même liste → même résultat.
"""
from __future__ import annotations

import logging
import random
from typing import List, Sequence, Set, Tuple

from jetoni.models.player import Player

logger = logging.getLogger(__name__)


def required_chaser_count(player_count: int) -> int:
    return max(1, player_count // 3)


def _pick(candidates: Sequence[Player], count: int, rng: random.Random) -> List[str]:
    count = max(0, min(count, len(candidates)))
    return [p.player_id for p in rng.sample(list(candidates), count)]


def select_chasers(players: Sequence[Player], rng: random.Random) -> Set[str]:
    """Renvoie les player_ids désignés ONI (sans modifier les joueurs)."""
    if not players:
        return set()

    required = required_chaser_count(len(players))
    humans = [p for p in players if not p.is_ai]

    if len(humans) < 2:
        return set(_pick(players, required, rng))

    human_quota = max(1, min(required, len(humans) - 1))
    chosen = _pick(humans, human_quota, rng)
    if len(chosen) < required:
        bots = [p for p in players if p.is_ai]
        chosen.extend(_pick(bots, required - len(chosen), rng))
    return set(chosen)


def assign_chasers(players: Sequence[Player], rng: random.Random) -> Tuple[Player, ...]:
    """Renvoie une nouvelle liste de joueurs avec `is_chaser` positionné."""
    chasers = select_chasers(players, rng)
    assigned = tuple(p.model_copy(update={"is_chaser": p.player_id in chasers}) for p in players)

    human_chasers = sum(1 for p in assigned if not p.is_ai and p.is_chaser)
    human_runners = sum(1 for p in assigned if not p.is_ai and not p.is_chaser)
    logger.info(
        "Chasers assigned",
        extra={
            "players_total": len(assigned),
            "chasers_total": len(chasers),
            "human_chasers": human_chasers,
            "human_runners": human_runners,
        },
    )
    return assigned
