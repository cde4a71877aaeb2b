"""
Real-time WebSocket endpoint.

- WS /ws: Per-user stream of ``notification`` and ``event.status_updated``
  messages. Authenticate with ``?token=<jwt>`` or an ``Authorization: Bearer``
  header; bad tokens are closed with 4001 before the socket is accepted.

Clients may send ``{"type": "ping"}`` and get ``{"type": "pong"}`` back.
Anything else is ignored; the stream is server-to-client.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.core.auth import AuthError, authenticate_websocket
from app.core.realtime import manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def realtime_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
):
    # Authenticate
    try:
        auth = authenticate_websocket(websocket, token)
    except AuthError as exc:
        logger.info("Rejected WebSocket connection: %s", exc)
        await websocket.close(code=4001, reason="authentication_failed")
        return

    conn_info = await manager.connect(websocket, auth.user_id, auth.tenant_id)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(frame, dict) and frame.get("type") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(conn_info)
