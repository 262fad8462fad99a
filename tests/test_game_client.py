from unittest.mock import Mock

import pytest
import requests

from jetoni.services.game_client import GameAPIClient, GameAPIError


def _response(status_code=200, payload=None):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    return response


def test_get_game_returns_snapshot():
    session = Mock()
    session.request.return_value = _response(200, {"session": {"session_id": "game_1_a"}})
    client = GameAPIClient("http://localhost:8000/", session=session)

    assert client.get_game("game_1_a") == {"session_id": "game_1_a"}
    session.request.assert_called_once_with(
        "GET", "http://localhost:8000/api/game/game_1_a", json=None, timeout=client.timeout
    )


def test_send_heartbeat_posts_player_id():
    session = Mock()
    session.request.return_value = _response(200, {"ok": True})
    client = GameAPIClient("http://api", session=session)

    client.send_heartbeat("game_1_a", "p1")
    session.request.assert_called_once_with(
        "POST", "http://api/api/game/game_1_a/heartbeat", json={"player_id": "p1"}, timeout=client.timeout
    )


def test_http_errors_carry_status_code():
    session = Mock()
    session.request.return_value = _response(404, {"detail": "not_found"})
    client = GameAPIClient("http://api", session=session)

    with pytest.raises(GameAPIError) as exc:
        client.get_game("game_1_a")
    assert exc.value.status_code == 404


def test_network_errors_have_no_status():
    session = Mock()
    session.request.side_effect = requests.ConnectionError("refused")
    client = GameAPIClient("http://api", session=session)

    with pytest.raises(GameAPIError) as exc:
        client.delete_game("game_1_a")
    assert exc.value.status_code is None


def test_default_session_mounts_retry_adapter():
    client = GameAPIClient("http://api")
    adapter = client.session.get_adapter("http://api")
    assert adapter.max_retries.total == 3
    assert 503 in adapter.max_retries.status_forcelist
