"""
Live connection gateway: per-connection sessions, rooms and room broadcasts.

Each transport connection becomes one ConnectionSession. An authenticated session is
joined to its private room ``user:<id>`` on connect; conversation rooms ``question:<id>``
are joined and left on client request. The room table is owned by this class only.
Other components call emit_to_room and never touch membership directly.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from fastapi.encoders import jsonable_encoder

from config.realtime_settings import get_realtime_settings
from services.identity_service import Identity, identity_resolver
from services.room_broadcaster import RoomBroadcaster, InProcessBroadcaster, RedisBroadcaster
from utils.errors import Unauthenticated

logger = logging.getLogger(__name__)

AUTH_CLOSE_CODE = 4401

USER_ROOM_PREFIX = "user:"
QUESTION_ROOM_PREFIX = "question:"

RoomAuthorizer = Callable[[Optional[Identity], int], bool]
FrameHandler = Callable[["ConnectionSession", Any], Awaitable[None]]


def user_room(user_id: int) -> str:
    return f"{USER_ROOM_PREFIX}{user_id}"


def question_room(question_id: int) -> str:
    return f"{QUESTION_ROOM_PREFIX}{question_id}"


class SessionState(str, Enum):
    CONNECTING = "CONNECTING"
    AUTHENTICATING = "AUTHENTICATING"
    JOINED = "JOINED"
    ACTIVE = "ACTIVE"
    ANONYMOUS = "ANONYMOUS"
    CLOSED = "CLOSED"


@dataclass(eq=False)
class ConnectionSession:
    transport: Any
    connection_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    identity: Optional[Identity] = None
    rooms: Set[str] = field(default_factory=set)
    state: SessionState = SessionState.CONNECTING
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def user_id(self) -> Optional[int]:
        return self.identity.user_id if self.identity else None

    @property
    def is_open(self) -> bool:
        return self.state != SessionState.CLOSED


class ConnectionGateway:
    """
    Transports only need ``async send_json(data)`` and ``async close(code=..., reason=...)``,
    which is what a Starlette WebSocket provides.
    """

    def __init__(
        self,
        broadcaster: Optional[RoomBroadcaster] = None,
        require_auth: bool = True,
        room_authorizer: Optional[RoomAuthorizer] = None,
        resolver=identity_resolver
    ):
        self.broadcaster = broadcaster or InProcessBroadcaster()
        self.broadcaster.bind(self._deliver_local)
        self.require_auth = require_auth
        self.room_authorizer = room_authorizer
        self.resolver = resolver
        self._sessions: Dict[str, ConnectionSession] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()
        self._handlers: Dict[str, FrameHandler] = {}
        self._register_default_handlers()

    async def start(self):
        await self.broadcaster.start()

    async def stop(self):
        await self.broadcaster.stop()

    # ===== Client event registry =====

    def on(self, event: str, handler: FrameHandler) -> None:
        """Register the handler for a client event. A later registration replaces the earlier one."""
        if event in self._handlers:
            logger.debug(f"Replacing handler for client event '{event}'")
        self._handlers[event] = handler

    def off(self, event: str) -> None:
        self._handlers.pop(event, None)

    def _register_default_handlers(self):
        self.on("join-question", self._on_join_question)
        self.on("leave-question", self._on_leave_question)
        self.on("ping", self._on_ping)

    # ===== Lifecycle =====

    async def connect(self, transport, credential: Optional[str]) -> Optional[ConnectionSession]:
        """
        Authenticate a freshly accepted transport.

        Returns the session, or None when the connection was refused and closed.
        """
        session = ConnectionSession(transport=transport)
        session.state = SessionState.AUTHENTICATING

        try:
            session.identity = self.resolver.resolve(credential)
        except Unauthenticated as e:
            await self._send(session, "auth_error", {"message": e.detail, "reason": e.reason})
            if self.require_auth:
                logger.info(f"Connection {session.connection_id[:8]} refused: {e.reason}")
                session.state = SessionState.CLOSED
                await self._close_transport(session, AUTH_CLOSE_CODE, "Authentication required")
                return None
            session.state = SessionState.ANONYMOUS

        async with self._lock:
            self._sessions[session.connection_id] = session
            if session.identity is not None:
                self._add_to_room(session, user_room(session.identity.user_id))
                session.state = SessionState.JOINED

        await self._send(session, "connected", {
            "connectionId": session.connection_id,
            "userId": session.user_id,
        })
        if session.identity is not None:
            session.state = SessionState.ACTIVE
            logger.info(
                f"✅ User {session.user_id} connected ({session.connection_id[:8]}). "
                f"Total sessions: {len(self._sessions)}"
            )
        else:
            logger.info(f"Anonymous session {session.connection_id[:8]} connected")
        return session

    async def disconnect(self, session: ConnectionSession) -> None:
        """Transport is gone: drop the session from every room it joined."""
        async with self._lock:
            for room in list(session.rooms):
                self._remove_from_room(session, room)
            self._sessions.pop(session.connection_id, None)
            session.state = SessionState.CLOSED
        logger.info(f"Session {session.connection_id[:8]} (user {session.user_id}) disconnected")

    # ===== Rooms =====

    async def join_room(self, session: ConnectionSession, room: str) -> bool:
        if not session.is_open:
            return False
        if not await self._may_join(session, room):
            logger.warning(f"⚠️ Session {session.connection_id[:8]} (user {session.user_id}) denied room {room}")
            await self._send(session, "error", {"message": f"Not allowed to join {room}"})
            return False

        async with self._lock:
            if session.connection_id not in self._sessions:
                return False
            self._add_to_room(session, room)
        await self._send(session, "joined", {"room": room})
        return True

    async def leave_room(self, session: ConnectionSession, room: str) -> None:
        # The private user room lives as long as the session
        if session.user_id is not None and room == user_room(session.user_id):
            return
        async with self._lock:
            self._remove_from_room(session, room)
        await self._send(session, "left", {"room": room})

    def _add_to_room(self, session: ConnectionSession, room: str):
        self._rooms.setdefault(room, set()).add(session.connection_id)
        session.rooms.add(room)

    def _remove_from_room(self, session: ConnectionSession, room: str):
        members = self._rooms.get(room)
        if members is not None:
            members.discard(session.connection_id)
            if not members:
                del self._rooms[room]
        session.rooms.discard(room)

    async def _may_join(self, session: ConnectionSession, room: str) -> bool:
        if room.startswith(USER_ROOM_PREFIX):
            return session.user_id is not None and room == user_room(session.user_id)

        if room.startswith(QUESTION_ROOM_PREFIX):
            try:
                question_id = int(room[len(QUESTION_ROOM_PREFIX):])
            except ValueError:
                return False
            if self.room_authorizer is None:
                return session.identity is not None
            try:
                return await asyncio.to_thread(self.room_authorizer, session.identity, question_id)
            except Exception as e:
                logger.error(f"❌ Room authorization failed for {room}: {e}", exc_info=True)
                return False

        return False

    # ===== Broadcast =====

    async def emit_to_room(self, room: str, event: str, payload: Any) -> None:
        """
        Fan an event out to every session in the room, across instances when the
        broadcaster is shared. Failures are logged, never raised.
        """
        try:
            await self.broadcaster.publish(room, event, jsonable_encoder(payload))
        except Exception as e:
            logger.warning(f"⚠️ Broadcast of {event} to {room} failed: {e}")

    async def _deliver_local(self, room: str, event: str, payload: Dict[str, Any]) -> int:
        async with self._lock:
            targets = [
                self._sessions[sid]
                for sid in self._rooms.get(room, ())
                if sid in self._sessions
            ]
        if not targets:
            return 0

        results = await asyncio.gather(
            *(self._send(session, event, payload) for session in targets),
            return_exceptions=True
        )
        delivered = sum(1 for result in results if result is True)
        if delivered < len(targets):
            logger.warning(f"⚠️ {event} reached {delivered}/{len(targets)} sessions in {room}")
        return delivered

    async def _send(self, session: ConnectionSession, event: str, data: Any) -> bool:
        if session.state == SessionState.CLOSED:
            return False
        try:
            async with session.send_lock:
                await session.transport.send_json({"event": event, "data": data})
            return True
        except Exception as e:
            logger.warning(f"⚠️ Send of {event} to session {session.connection_id[:8]} failed: {e}")
            return False

    async def _close_transport(self, session: ConnectionSession, code: int, reason: str):
        try:
            await session.transport.close(code=code, reason=reason)
        except Exception as e:
            logger.debug(f"Transport close failed for {session.connection_id[:8]}: {e}")

    # ===== Client frames =====

    async def handle_client_frame(self, session: ConnectionSession, frame: Any) -> None:
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self._send(session, "error", {"message": "Frames must be objects with an 'event' field"})
            return

        event = frame["event"]
        handler = self._handlers.get(event)
        if handler is None:
            await self._send(session, "error", {"message": f"Unknown event '{event}'"})
            return
        await handler(session, frame.get("data"))

    async def _on_join_question(self, session: ConnectionSession, data: Any):
        question_id = _question_id_from(data)
        if question_id is None:
            await self._send(session, "error", {"message": "join-question expects a question id"})
            return
        await self.join_room(session, question_room(question_id))

    async def _on_leave_question(self, session: ConnectionSession, data: Any):
        question_id = _question_id_from(data)
        if question_id is None:
            await self._send(session, "error", {"message": "leave-question expects a question id"})
            return
        await self.leave_room(session, question_room(question_id))

    async def _on_ping(self, session: ConnectionSession, data: Any):
        await self._send(session, "pong", data)

    # ===== Introspection =====

    def room_members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    def session_count(self) -> int:
        return len(self._sessions)

    def room_count(self) -> int:
        return len(self._rooms)


def _question_id_from(data: Any) -> Optional[int]:
    if isinstance(data, dict):
        data = data.get("questionId", data.get("question_id"))
    if isinstance(data, bool):
        return None
    try:
        return int(data)
    except (TypeError, ValueError):
        return None


_gateway: Optional[ConnectionGateway] = None


def build_gateway() -> ConnectionGateway:
    from services.question_service import can_join_question_room

    settings = get_realtime_settings()
    if settings.realtime_backbone == "redis":
        from config.setting_redis import get_redis_settings
        from utils.redis_client import RedisClient

        broadcaster = RedisBroadcaster(
            RedisClient.get_instance(),
            get_redis_settings().REDIS_BROADCAST_CHANNEL
        )
    else:
        broadcaster = InProcessBroadcaster()

    return ConnectionGateway(
        broadcaster=broadcaster,
        require_auth=settings.realtime_require_auth,
        room_authorizer=can_join_question_room
    )


def get_gateway() -> ConnectionGateway:
    """Process-wide gateway (Singleton). Also used as a FastAPI dependency."""
    global _gateway
    if _gateway is None:
        _gateway = build_gateway()
    return _gateway


def set_gateway(gateway: Optional[ConnectionGateway]) -> None:
    global _gateway
    _gateway = gateway
