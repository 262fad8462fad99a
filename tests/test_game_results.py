from jetoni.models.game import GameConfig, GameSession, SessionStatus
from jetoni.models.player import Player
from jetoni.services.game_results import compute_results

CONFIG = GameConfig(total_players=4, round_duration=180, rounds=1)


def _session(players, initial, started_at=1000.0, ended_at=1120.0):
    return GameSession(
        session_id="game_1000000_abcdef12",
        owner_id=players[0].player_id,
        status=SessionStatus.ENDED,
        config=CONFIG,
        players=tuple(players),
        created_at=990.0,
        started_at=started_at,
        ended_at=ended_at,
        initial_chaser_ids=initial,
    )


def test_runners_win_when_someone_survived():
    players = [
        Player(player_id="oni", username="oni", is_chaser=True, tag_count=1),
        Player(player_id="tagged", username="tagged", was_tagged=True, is_chaser=True, survived_time=40),
        Player(player_id="free", username="free", survived_time=12),
    ]
    results = compute_results(_session(players, ("oni",)))

    assert results.team_winner == "runners"
    assert [r.player_id for r in results.players] == ["free"]
    # la survie d'un runner non touché est la durée de jeu
    assert results.players[0].survived_time == 120.0
    assert results.players[0].was_initial_chaser is False


def test_oni_win_ranks_initial_chasers_only():
    players = [
        Player(player_id="o1", username="o1", tag_count=1, survived_time=50),
        Player(player_id="o2", username="o2", tag_count=3, survived_time=90),
        Player(player_id="o3", username="o3", tag_count=3, survived_time=30),
        Player(player_id="r1", username="r1", was_tagged=True, is_chaser=True, tag_count=9),
    ]
    results = compute_results(_session(players, ("o1", "o2", "o3")))

    assert results.team_winner == "oni"
    assert [r.player_id for r in results.players] == ["o3", "o2", "o1"]
    assert all(r.was_initial_chaser for r in results.players)


def test_current_chaser_flag_does_not_change_teams():
    # l'ONI initial a été touché et redevenu runner : il reste dans l'équipe ONI
    players = [
        Player(player_id="o1", username="o1", is_chaser=False, was_tagged=True),
        Player(player_id="r1", username="r1", is_chaser=True, was_tagged=True),
    ]
    results = compute_results(_session(players, ("o1",)))
    assert results.team_winner == "oni"
    assert [r.player_id for r in results.players] == ["o1"]


def test_never_started_session_keeps_recorded_survival():
    players = [
        Player(player_id="a", username="a", survived_time=5),
        Player(player_id="b", username="b", survived_time=25),
    ]
    results = compute_results(_session(players, None, started_at=None))
    assert results.team_winner == "runners"
    assert [r.player_id for r in results.players] == ["b", "a"]
    assert results.players[0].survived_time == 25


def test_results_are_deterministic():
    players = [
        Player(player_id="o1", username="o1", tag_count=2),
        Player(player_id="r1", username="r1"),
    ]
    session = _session(players, ("o1",))
    assert compute_results(session) == compute_results(session)
