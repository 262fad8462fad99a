"""
Service: stats_service.py
- Statistiques cumulées par utilisateur (parties jouées, victoires, survie).
- Stockées sans TTL, hors du cycle de vie des sessions.
"""
from __future__ import annotations

import logging

from jetoni.models.player import PlayerStats
from jetoni.services.errors import InvalidState
from jetoni.services.session_store import SessionRepository
from jetoni.services.state_validator import is_finite_number

logger = logging.getLogger(__name__)


def get_player_stats(repository: SessionRepository, user_id: str) -> PlayerStats:
    """Stats de l'utilisateur, ou des stats vierges s'il n'a jamais joué."""
    return repository.load_stats(user_id) or PlayerStats(user_id=user_id)


def record_player_stats(
    repository: SessionRepository,
    user_id: str,
    won: bool,
    survival_time: float,
) -> PlayerStats:
    if not user_id:
        raise InvalidState("user_id is required")
    if not is_finite_number(survival_time) or survival_time < 0:
        raise InvalidState("invalid_survival_time")

    current = get_player_stats(repository, user_id)
    updated = current.model_copy(
        update={
            "games_played": current.games_played + 1,
            "wins": current.wins + (1 if won else 0),
            "losses": current.losses + (0 if won else 1),
            "total_survival_time": current.total_survival_time + survival_time,
            "longest_survival": max(current.longest_survival, survival_time),
        }
    )
    repository.save_stats(updated)
    logger.info("Player stats recorded", extra={"user_id": user_id, "won": won})
    return updated
