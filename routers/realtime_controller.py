# routers/realtime_controller.py
import asyncio
import json
import logging
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from config.realtime_settings import get_realtime_settings
from services.connection_gateway import ConnectionGateway, get_gateway
from services.identity_service import credential_from_sources

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket, gateway: ConnectionGateway = Depends(get_gateway)):
    """
    Live event stream. Frames are JSON objects {"event": ..., "data": ...}.
    Credential: Authorization header, ?token= or the auth cookie.
    """
    heartbeat = get_realtime_settings().realtime_heartbeat_seconds

    await websocket.accept()
    credential = credential_from_sources(websocket.headers, websocket.query_params, websocket.cookies)
    session = await gateway.connect(websocket, credential)
    if session is None:
        return

    try:
        while True:
            try:
                message = await asyncio.wait_for(websocket.receive(), timeout=heartbeat)
            except asyncio.TimeoutError:
                await websocket.send_json({"event": "heartbeat", "data": None})
                continue

            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None and message.get("bytes") is not None:
                raw = message["bytes"].decode("utf-8", errors="replace")
            try:
                frame = json.loads(raw)
            except (TypeError, ValueError):
                await websocket.send_json({"event": "error", "data": {"message": "Frames must be JSON"}})
                continue

            await gateway.handle_client_frame(session, frame)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error(f"❌ Realtime connection error for session {session.connection_id[:8]}: {e}", exc_info=True)
    finally:
        await gateway.disconnect(session)
