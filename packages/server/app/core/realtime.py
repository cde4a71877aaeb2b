"""
Per-user real-time channel over WebSocket.

Features:
- One logical room per user id; any number of sessions per user
- Tenant rooms for status updates that every connected studio user sees
- Redis Pub/Sub relay so a worker process can reach sockets held by the web process
- Dead connection cleanup on send

Delivery is best effort by contract: no queueing, no replay, no retry.
Persisted notifications are the source of truth; pushes only save clients
a poll. Callers get a ``BestEffort`` report back and must not retry on it.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from fastapi import WebSocket
from pydantic import BaseModel

from app.core.redis import get_redis, redis_key

logger = logging.getLogger(__name__)

USER_ROOM = "user"
TENANT_ROOM = "tenant"


@dataclass(frozen=True)
class BestEffort:
    """Outcome of a fire-and-forget push. ``delivered`` counts sessions (local) or relays (redis)."""

    delivered: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _encode(message: BaseModel | dict[str, Any]) -> str:
    if isinstance(message, BaseModel):
        return message.model_dump_json()
    return json.dumps(message, default=str)


class ConnectionInfo:
    """Tracks a single WebSocket session."""

    __slots__ = ("websocket", "user_id", "tenant_id")

    def __init__(self, websocket: WebSocket, user_id: UUID, tenant_id: UUID):
        self.websocket = websocket
        self.user_id = user_id
        self.tenant_id = tenant_id


class ConnectionManager:
    """In-memory registry of the sessions connected to this process."""

    def __init__(self) -> None:
        # user_id_str -> list[ConnectionInfo]
        self._connections: dict[str, list[ConnectionInfo]] = {}

    @property
    def connections(self) -> dict[str, list[ConnectionInfo]]:
        return self._connections

    def session_count(self, user_id: UUID | str | None = None) -> int:
        if user_id is not None:
            return len(self._connections.get(str(user_id), []))
        return sum(len(conns) for conns in self._connections.values())

    async def connect(self, websocket: WebSocket, user_id: UUID, tenant_id: UUID) -> ConnectionInfo:
        """Accept an already-authenticated WebSocket and join the user's room."""
        await websocket.accept()
        info = ConnectionInfo(websocket, user_id, tenant_id)
        self._connections.setdefault(str(user_id), []).append(info)
        logger.info(
            "WebSocket connected: user=%s tenant=%s sessions=%d",
            user_id,
            tenant_id,
            self.session_count(user_id),
        )
        return info

    def disconnect(self, info: ConnectionInfo) -> None:
        user_str = str(info.user_id)
        conns = self._connections.get(user_str)
        if not conns:
            return
        try:
            conns.remove(info)
        except ValueError:
            pass
        if not conns:
            del self._connections[user_str]
        logger.info("WebSocket disconnected: user=%s", user_str)

    async def _send(self, targets: list[ConnectionInfo], text: str) -> int:
        delivered = 0
        dead: list[ConnectionInfo] = []
        for conn_info in targets:
            try:
                await conn_info.websocket.send_text(text)
                delivered += 1
            except Exception:
                dead.append(conn_info)
        for conn_info in dead:
            self.disconnect(conn_info)
        return delivered

    async def send_to_user(self, user_id: UUID | str, message: BaseModel | dict[str, Any]) -> int:
        """Send to every session of one user. Returns the number of sessions reached."""
        targets = list(self._connections.get(str(user_id), []))
        if not targets:
            return 0
        return await self._send(targets, _encode(message))

    async def send_to_tenant(self, tenant_id: UUID | str, message: BaseModel | dict[str, Any]) -> int:
        """Send to every session belonging to a tenant."""
        tenant_str = str(tenant_id)
        targets = [
            c
            for conns in self._connections.values()
            for c in conns
            if str(c.tenant_id) == tenant_str
        ]
        if not targets:
            return 0
        return await self._send(targets, _encode(message))


class RealtimeChannel:
    """Publishing side of the real-time channel."""

    async def publish(self, user_id: UUID, message: BaseModel | dict[str, Any]) -> BestEffort:
        raise NotImplementedError

    async def broadcast(self, tenant_id: UUID, message: BaseModel | dict[str, Any]) -> BestEffort:
        raise NotImplementedError


class LocalRealtimeChannel(RealtimeChannel):
    """Delivers straight to sessions held by this process."""

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager

    async def publish(self, user_id: UUID, message: BaseModel | dict[str, Any]) -> BestEffort:
        try:
            delivered = await self.manager.send_to_user(user_id, message)
        except Exception as exc:
            logger.info("Real-time push to user %s failed: %s", user_id, exc)
            return BestEffort(0, error=str(exc))
        if not delivered:
            logger.debug("No active sessions for user %s, push dropped", user_id)
        return BestEffort(delivered)

    async def broadcast(self, tenant_id: UUID, message: BaseModel | dict[str, Any]) -> BestEffort:
        try:
            delivered = await self.manager.send_to_tenant(tenant_id, message)
        except Exception as exc:
            logger.info("Real-time broadcast to tenant %s failed: %s", tenant_id, exc)
            return BestEffort(0, error=str(exc))
        if not delivered:
            logger.debug("No active sessions for tenant %s, broadcast dropped", tenant_id)
        return BestEffort(delivered)


class RedisRealtimeChannel(RealtimeChannel):
    """Publishes to Redis; every web process relays to its own sessions."""

    async def _publish(self, room: str, target: UUID, message: BaseModel | dict[str, Any]) -> BestEffort:
        try:
            redis = await get_redis()
            receivers = await redis.publish(redis_key("rt", room, target), _encode(message))
        except Exception as exc:
            logger.info("Real-time publish to %s %s failed: %s", room, target, exc)
            return BestEffort(0, error=str(exc))
        if not receivers:
            logger.debug("No relays listening for %s %s, push dropped", room, target)
        return BestEffort(int(receivers))

    async def publish(self, user_id: UUID, message: BaseModel | dict[str, Any]) -> BestEffort:
        return await self._publish(USER_ROOM, user_id, message)

    async def broadcast(self, tenant_id: UUID, message: BaseModel | dict[str, Any]) -> BestEffort:
        return await self._publish(TENANT_ROOM, tenant_id, message)


class RedisRelay:
    """Forwards Redis real-time messages to the sessions in a ConnectionManager."""

    def __init__(self, manager: ConnectionManager) -> None:
        self.manager = manager
        self._task: asyncio.Task | None = None

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._listen())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def dispatch(self, channel: str, data: str) -> int:
        """Route one relayed message by its channel name (``<ns>:rt:<room>:<id>``)."""
        room, target = channel.rsplit(":", 2)[-2:]
        message = json.loads(data)
        if room == USER_ROOM:
            return await self.manager.send_to_user(target, message)
        if room == TENANT_ROOM:
            return await self.manager.send_to_tenant(target, message)
        logger.warning("Ignoring real-time message on unknown room %s", channel)
        return 0

    async def _listen(self) -> None:
        redis = await get_redis()
        pubsub = redis.pubsub()
        pattern = redis_key("rt", "*")
        await pubsub.psubscribe(pattern)

        try:
            async for message in pubsub.listen():
                if message["type"] != "pmessage":
                    continue
                try:
                    await self.dispatch(message["channel"], message["data"])
                except Exception:
                    logger.exception("Failed to relay real-time message on %s", message["channel"])
        except asyncio.CancelledError:
            logger.info("Redis real-time relay cancelled")
        finally:
            await pubsub.punsubscribe(pattern)
            await pubsub.aclose()


def build_realtime_channel(backend: str, manager: ConnectionManager) -> RealtimeChannel:
    if backend == "redis":
        return RedisRealtimeChannel()
    return LocalRealtimeChannel(manager)


# Singleton
manager = ConnectionManager()
