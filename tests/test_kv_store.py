from unittest.mock import Mock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from jetoni.models.game import GameConfig, GameSession
from jetoni.models.player import Player, PlayerStats
from jetoni.services.errors import StoreError
from jetoni.services.kv_store import MemoryStore, RedisStore, build_store


# -----------------------------
# MemoryStore
# -----------------------------
def test_memory_store_ttl_expiry(store, clock):
    store.put("k", b"v", 10)
    assert store.get("k") == b"v"
    clock.advance(10)
    assert store.get("k") is None


def test_memory_store_without_ttl_never_expires(store, clock):
    store.put("k", b"v", None)
    clock.advance(10**9)
    assert store.get("k") == b"v"


def test_rewrite_renews_ttl(store, clock):
    store.put("k", b"v1", 10)
    clock.advance(8)
    store.put("k", b"v2", 10)
    clock.advance(8)
    assert store.get("k") == b"v2"


def test_index_ordered_by_score(store):
    store.add_to_index("idx", "b", 2.0)
    store.add_to_index("idx", "a", 1.0)
    store.add_to_index("idx", "c", 3.0)
    store.remove_from_index("idx", "c")
    store.remove_from_index("idx", "missing")
    assert store.range_index("idx") == ["a", "b"]


def test_index_ttl(store, clock):
    store.add_to_index("idx", "a", 1.0)
    store.set_index_ttl("idx", 5)
    clock.advance(5)
    assert store.range_index("idx") == []


def test_expired_keys_are_purged_without_being_read(store, clock):
    store.put("old", b"v", 10)
    store.put("keep", b"v", None)
    clock.advance(61)
    store.put("new", b"v", 10)
    assert "old" not in store._values
    assert set(store._values) == {"keep", "new"}


def test_purge_expired_drops_keys_and_indexes(store, clock):
    store.put("a", b"v", 5)
    store.put("b", b"v", 50)
    store.add_to_index("idx", "a", 1.0)
    store.set_index_ttl("idx", 5)
    clock.advance(5)
    assert store.purge_expired() == 1
    assert list(store._values) == ["b"]
    assert store._indexes == {}


def test_build_store_defaults_to_memory():
    assert isinstance(build_store(""), MemoryStore)


# -----------------------------
# SessionRepository
# -----------------------------
def _session(session_id="game_1_deadbeef"):
    owner = Player(player_id="p1", username="alice")
    return GameSession(
        session_id=session_id,
        owner_id="p1",
        config=GameConfig(total_players=4, round_duration=180, rounds=1),
        players=(owner,),
        created_at=1.0,
    )


def test_repository_round_trip_and_delete(repository):
    session = _session()
    repository.save_session(session)
    repository.add_active(session.session_id, 1.0)

    assert repository.load_session(session.session_id) == session
    assert repository.active_ids() == [session.session_id]

    repository.delete_session(session.session_id)
    assert repository.load_session(session.session_id) is None
    assert repository.active_ids() == []


def test_corrupt_blob_is_treated_as_missing(repository, store):
    store.put("game:broken", b"{not json", 60)
    assert repository.load_session("broken") is None

    store.put("game:partial", b'{"session_id": "partial"}', 60)
    assert repository.load_session("partial") is None


def test_session_blob_expires_with_ttl(repository, clock):
    session = _session()
    repository.save_session(session)
    clock.advance(3600)
    assert repository.load_session(session.session_id) is None


def test_owner_link_is_cleared_only_for_its_session(repository):
    repository.set_owned_session("alice", "game_a")
    repository.clear_owned_session("alice", "game_b")
    assert repository.owned_session_id("alice") == "game_a"
    repository.clear_owned_session("alice", "game_a")
    assert repository.owned_session_id("alice") is None


def test_stats_have_no_ttl(repository, clock):
    repository.save_stats(PlayerStats(user_id="u1", games_played=2))
    clock.advance(10**8)
    assert repository.load_stats("u1").games_played == 2


def test_key_prefix(store):
    from jetoni.services.session_store import SessionRepository

    repo = SessionRepository(store, session_ttl=60, index_ttl=60, key_prefix="jetoni:")
    repo.save_session(_session())
    assert store.get("jetoni:game:game_1_deadbeef") is not None


# -----------------------------
# RedisStore (client simulé)
# -----------------------------
def test_redis_store_maps_operations():
    client = Mock()
    client.zrange.return_value = [b"game_1", b"game_2"]
    redis_store = RedisStore(client)

    redis_store.put("k", b"v", 30)
    redis_store.add_to_index("idx", "game_1", 1.5)
    redis_store.remove_from_index("idx", "game_3")
    redis_store.set_index_ttl("idx", 60)

    client.set.assert_called_once_with("k", b"v", ex=30)
    client.zadd.assert_called_once_with("idx", {"game_1": 1.5})
    client.zrem.assert_called_once_with("idx", "game_3")
    client.expire.assert_called_once_with("idx", 60)
    assert redis_store.range_index("idx") == ["game_1", "game_2"]


def test_redis_errors_become_store_errors():
    client = Mock()
    client.get.side_effect = RedisConnectionError("down")
    with pytest.raises(StoreError):
        RedisStore(client).get("k")
