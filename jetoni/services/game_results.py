"""
Service: game_results.py
Rôle:
- Calcul pur des résultats de fin de partie à partir d'une session stockée.

Attribution des équipes:
- On se base sur `initial_chaser_ids` (ONI au lancement), pas sur les drapeaux `is_chaser`
  courants qui dérivent en cours de partie.
- Victoire "runners" s'il existe au moins un joueur ni ONI initial ni jamais touché,
  sinon victoire "oni".

Classement:
- runners : uniquement les survivants (jamais touchés, non ONI initiaux), par temps de
  survie décroissant. Leur temps de survie est la durée de jeu (ended_at - started_at)
  quand la partie a réellement démarré.
- oni : uniquement les ONI initiaux, par nombre de touches décroissant puis temps de
  survie croissant.

Même session stockée → mêmes résultats (ended_at n'est posé qu'une fois).
"""
from __future__ import annotations

from typing import FrozenSet

from jetoni.models.game import GameResults, GameSession, PlayerResult
from jetoni.models.player import Player


def _play_duration(session: GameSession) -> float | None:
    if session.started_at is None or session.ended_at is None:
        return None
    return max(0.0, session.ended_at - session.started_at)


def _is_survivor(player: Player, initial: FrozenSet[str]) -> bool:
    return player.player_id not in initial and not player.was_tagged


def _row(player: Player, initial: FrozenSet[str], survived_time: float) -> PlayerResult:
    return PlayerResult(
        player_id=player.player_id,
        username=player.username,
        survived_time=survived_time,
        was_tagged=player.was_tagged,
        is_ai=player.is_ai,
        tag_count=player.tag_count,
        was_initial_chaser=player.player_id in initial,
    )


def compute_results(session: GameSession) -> GameResults:
    initial = frozenset(session.initial_chaser_ids or ())
    duration = _play_duration(session)

    survivors = [p for p in session.players if _is_survivor(p, initial)]
    if survivors:
        rows = [
            _row(p, initial, duration if duration is not None else p.survived_time)
            for p in survivors
        ]
        rows.sort(key=lambda r: -r.survived_time)
        return GameResults(team_winner="runners", players=rows)

    rows = [_row(p, initial, p.survived_time) for p in session.players if p.player_id in initial]
    rows.sort(key=lambda r: (-r.tag_count, r.survived_time))
    return GameResults(team_winner="oni", players=rows)
