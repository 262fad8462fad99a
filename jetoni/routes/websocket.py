# jetoni/routes/websocket.py
"""
WebSocket endpoint.

- /ws/game/{session_id} : abonnement au canal consultatif d'une session
  (événements session_created, player_joined, roles_assigned, session_ended...).
- Ping/pong applicatif; tout autre message reçoit un ACK générique.
- Le canal est best-effort : l'état autoritaire se lit toujours via `GET /api/game/{id}`.
"""
from __future__ import annotations

import orjson as json
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from jetoni.services.ws_manager import WS

router = APIRouter()


@router.websocket("/ws/game/{session_id}")
async def game_channel(ws: WebSocket, session_id: str):
    await WS.connect(ws, session_id)
    await WS.send_json(ws, {"type": "subscribed", "session_id": session_id})
    try:
        while True:
            raw = await ws.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                # Message non JSON -> ignore
                continue
            if not isinstance(msg, dict):
                continue

            if msg.get("type") == "ping":
                await WS.send_json(ws, {"type": "pong"})
            else:
                await WS.send_json(ws, {"type": "ack", "received": msg})
    except WebSocketDisconnect:
        pass
    finally:
        await WS.disconnect(ws)
