"""
Broadcast backbones behind ConnectionGateway.emit_to_room.

Room membership is process-local, so a deployment with more than one instance must
use RedisBroadcaster: every instance publishes to one Redis channel and delivers what
it receives to its own local sessions. InProcessBroadcaster is the single-instance path.
"""
import asyncio
import json
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

LocalDeliver = Callable[[str, str, Dict[str, Any]], Awaitable[int]]


class RoomBroadcaster(ABC):

    def __init__(self):
        self._deliver: Optional[LocalDeliver] = None

    def bind(self, deliver: LocalDeliver) -> None:
        """Attach the gateway's local delivery function (replaces any previous one)."""
        self._deliver = deliver

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    @abstractmethod
    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        ...

    async def deliver_local(self, room: str, event: str, payload: Dict[str, Any]) -> int:
        if self._deliver is None:
            logger.warning(f"⚠️ Broadcaster not bound to a gateway, dropping {event} for {room}")
            return 0
        return await self._deliver(room, event, payload)


class InProcessBroadcaster(RoomBroadcaster):

    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        await self.deliver_local(room, event, payload)


class RedisBroadcaster(RoomBroadcaster):
    """
    Fans room events out through a Redis pub/sub channel.

    Local sessions receive events only through the subscription, including events
    published by this instance, so nothing is delivered twice. If publishing fails the
    event is delivered to local sessions directly and the failure is logged.
    """

    def __init__(self, client, channel: str):
        super().__init__()
        self.client = client
        self.channel = channel
        self.instance_id = uuid.uuid4().hex
        self._pubsub = None
        self._listener: Optional[asyncio.Task] = None
        self.stats = {"published": 0, "received": 0, "publish_failures": 0}

    async def start(self) -> None:
        if self._listener is not None:
            return
        self._pubsub = self.client.pubsub()
        await self._pubsub.subscribe(self.channel)
        self._listener = asyncio.create_task(self._listen(), name="room-broadcast-listener")
        logger.info(f"✅ Redis broadcaster subscribed to '{self.channel}' (instance {self.instance_id[:8]})")

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(self.channel)
            await self._pubsub.aclose()
            self._pubsub = None
        logger.info("🛑 Redis broadcaster stopped")

    async def publish(self, room: str, event: str, payload: Dict[str, Any]) -> None:
        envelope = json.dumps(
            {"origin": self.instance_id, "room": room, "event": event, "payload": payload},
            default=str,
            ensure_ascii=False
        )
        try:
            await self.client.publish(self.channel, envelope)
            self.stats["published"] += 1
        except Exception as e:
            self.stats["publish_failures"] += 1
            logger.warning(f"⚠️ Redis publish failed for room {room} ({event}): {e}; delivering locally only")
            await self.deliver_local(room, event, payload)

    async def _listen(self) -> None:
        logger.info("👂 Listening for room broadcasts...")
        while True:
            try:
                async for message in self._pubsub.listen():
                    if message.get("type") != "message":
                        continue
                    await self._handle_message(message.get("data"))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"❌ Room broadcast listener error: {e}", exc_info=True)
                await asyncio.sleep(1)

    async def _handle_message(self, data) -> None:
        try:
            envelope = json.loads(data)
            room = envelope["room"]
            event = envelope["event"]
            payload = envelope.get("payload") or {}
        except (TypeError, ValueError, KeyError) as e:
            logger.warning(f"⚠️ Dropping malformed broadcast envelope: {e}")
            return
        self.stats["received"] += 1
        await self.deliver_local(room, event, payload)
