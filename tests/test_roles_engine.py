import random

import pytest

from jetoni.models.player import Player
from jetoni.services.roles_engine import assign_chasers, required_chaser_count, select_chasers


def _players(humans: int, bots: int):
    players = [Player(player_id=f"h{i}", username=f"human{i}") for i in range(humans)]
    players += [Player(player_id=f"a{i}", username=f"AI_{i}", is_ai=True) for i in range(bots)]
    return players


@pytest.mark.parametrize("n,expected", [(1, 1), (2, 1), (3, 1), (4, 1), (6, 2), (8, 2), (10, 3), (15, 5), (20, 6)])
def test_required_chaser_count(n, expected):
    assert required_chaser_count(n) == expected


@pytest.mark.parametrize("humans,bots", [(2, 2), (2, 4), (3, 0), (4, 0), (5, 15), (6, 0), (10, 10), (20, 0)])
def test_multi_human_sessions_keep_one_human_on_each_side(humans, bots):
    players = _players(humans, bots)
    for seed in range(25):
        assigned = assign_chasers(players, random.Random(seed))
        human_chasers = [p for p in assigned if not p.is_ai and p.is_chaser]
        human_runners = [p for p in assigned if not p.is_ai and not p.is_chaser]
        assert human_chasers, f"seed={seed}"
        assert human_runners, f"seed={seed}"
        assert sum(p.is_chaser for p in assigned) == required_chaser_count(len(players))


def test_extra_chasers_come_from_bots_only():
    # 2 humains + 4 IA : 2 ONI requis, un seul humain peut l'être
    players = _players(2, 4)
    for seed in range(25):
        chosen = select_chasers(players, random.Random(seed))
        assert len(chosen) == 2
        assert sum(1 for pid in chosen if pid.startswith("h")) == 1


def test_single_human_draws_from_whole_pool():
    players = _players(1, 5)
    picked = set()
    for seed in range(60):
        picked |= select_chasers(players, random.Random(seed))
    # le tirage couvre humain et IA
    assert "h0" in picked
    assert any(pid.startswith("a") for pid in picked)


def test_all_bots_still_get_a_chaser():
    assigned = assign_chasers(_players(0, 4), random.Random(3))
    assert sum(p.is_chaser for p in assigned) == 1


def test_same_seed_same_result():
    players = _players(3, 5)
    first = select_chasers(players, random.Random(42))
    second = select_chasers(players, random.Random(42))
    assert first == second


def test_rerun_resets_previous_chasers():
    players = [p.model_copy(update={"is_chaser": True}) for p in _players(2, 2)]
    assigned = assign_chasers(players, random.Random(0))
    assert sum(p.is_chaser for p in assigned) == 1
    assert [p.player_id for p in assigned] == [p.player_id for p in players]


def test_empty_player_list():
    assert select_chasers([], random.Random(0)) == set()
    assert assign_chasers([], random.Random(0)) == ()
