from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from jetoni.services.errors import NotFound
from jetoni.services.game_client import GameAPIClient, GameAPIError
from jetoni.services.host_monitor import HeartbeatEmitter, HostMonitor, _PeriodicWorker, host_is_alive


def _now():
    return 1000.0


def test_host_is_alive():
    assert host_is_alive(None, 100.0, 30.0) is False
    assert host_is_alive(80.0, 100.0, 30.0) is True
    assert host_is_alive(70.0, 100.0, 30.0) is False


def _monitor(fetch, clock, gone):
    return HostMonitor(fetch, "game_1_abc", gone.append, timeout=30.0, max_failures=3, clock=clock)


def test_single_missed_check_does_not_declare_host_gone():
    clock = _now
    snapshots = iter([
        {"last_owner_heartbeat_at": 900.0},
        {"last_owner_heartbeat_at": 995.0},
        {"last_owner_heartbeat_at": 900.0},
    ])
    gone = []
    monitor = _monitor(lambda sid: next(snapshots), clock, gone)

    assert monitor.check() is False
    assert monitor.consecutive_failures == 1
    assert monitor.check() is False
    assert monitor.consecutive_failures == 0
    assert monitor.check() is False
    assert gone == []


def test_consecutive_failures_declare_host_gone_once():
    clock = _now
    gone = []
    monitor = _monitor(lambda sid: {"last_owner_heartbeat_at": None}, clock, gone)

    assert monitor.check() is False
    assert monitor.check() is False
    assert monitor.check() is True
    assert monitor.check() is True
    assert gone == ["game_1_abc"]


def test_network_errors_count_as_failures():
    gone = []
    fetch = Mock(side_effect=GameAPIError("timeout"))
    monitor = _monitor(fetch, _now, gone)

    monitor.check()
    monitor.check()
    assert gone == []
    monitor.check()
    assert gone == ["game_1_abc"]


def test_not_found_is_immediate():
    gone = []
    monitor = _monitor(Mock(side_effect=GameAPIError("gone", status_code=404)), _now, gone)
    assert monitor.check() is True
    assert gone == ["game_1_abc"]

    gone2 = []
    monitor2 = _monitor(Mock(side_effect=NotFound()), _now, gone2)
    assert monitor2.check() is True
    assert gone2 == ["game_1_abc"]


def test_heartbeat_emitter_swallows_failures():
    calls = []

    def send(session_id, owner_id):
        calls.append((session_id, owner_id))
        raise GameAPIError("boom", status_code=503)

    emitter = HeartbeatEmitter(send, "game_1_abc", "p1", interval=5.0)
    assert emitter.beat() is False
    assert calls == [("game_1_abc", "p1")]


def test_heartbeat_emitter_with_client_stub():
    client = SimpleNamespace(send_heartbeat=Mock(return_value=None))
    emitter = HeartbeatEmitter(client.send_heartbeat, "game_1_abc", "p1")
    assert emitter.beat() is True
    client.send_heartbeat.assert_called_once_with("game_1_abc", "p1")


def test_worker_start_stop():
    emitter = HeartbeatEmitter(Mock(), "game_1_abc", interval=0.01)
    emitter.start()
    assert emitter.running
    emitter.stop()
    assert not emitter.running


def _http_session(status_code, payload):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    session = Mock()
    session.request.return_value = response
    return session


def test_monitor_over_http_client_sees_fresh_heartbeat():
    http = _http_session(200, {"session": {"last_owner_heartbeat_at": 990.0}})
    client = GameAPIClient("http://api", session=http)
    gone = []

    monitor = HostMonitor.for_api(client, "game_1_abc", gone.append, clock=_now)

    assert monitor.check() is False
    assert monitor.consecutive_failures == 0
    assert http.request.call_args.args == ("GET", "http://api/api/game/game_1_abc")


def test_monitor_over_http_client_treats_404_as_gone():
    client = GameAPIClient("http://api", session=_http_session(404, {"detail": "not_found"}))
    gone = []

    monitor = HostMonitor.for_api(client, "game_1_abc", gone.append, clock=_now)

    assert monitor.check() is True
    assert gone == ["game_1_abc"]


def test_emitter_over_http_client_posts_owner_heartbeat():
    http = _http_session(200, {"ok": True})
    client = GameAPIClient("http://api", session=http)

    emitter = HeartbeatEmitter.for_api(client, "game_1_abc", "p1", interval=1.0)

    assert emitter.beat() is True
    assert http.request.call_args.args == ("POST", "http://api/api/game/game_1_abc/heartbeat")
    assert http.request.call_args.kwargs["json"] == {"player_id": "p1"}


def test_periodic_worker_requires_tick():
    with pytest.raises(TypeError):
        _PeriodicWorker(1.0)
