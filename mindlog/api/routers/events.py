import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from mindlog.core.config import settings
from mindlog.core.exceptions import UnauthorizedError
from mindlog.core.security import verify_session_token
from mindlog.schemas.user import SessionIdentity
from mindlog.services.notifier import LogNotifier, get_notifier

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Events"])

JOIN_EVENT = "join"


def _may_join(room: str, identity: Optional[SessionIdentity]) -> bool:
    """Rooms are open to anyone unless sockets are bound to their session."""
    if not settings.WS_BIND_TO_SESSION:
        return True
    return identity is not None and str(identity.uid) == room


@router.websocket("/ws")
async def events_socket(
    websocket: WebSocket,
    uid: Optional[str] = Query(default=None),
    token: Optional[str] = Query(default=None),
    notifier: LogNotifier = Depends(get_notifier),
):
    """
    Real-time channel for log notifications.

    - **uid**: join this user's room on connect
    - **token**: session token; joins the caller's own room and is
      required when WS_BIND_TO_SESSION is on

    Client messages: `{"event": "join", "data": "<user id>"}`.
    Server pushes: `{"event": "log:new", "data": <Log>}`.
    """
    identity = None
    if token:
        try:
            identity = verify_session_token(token)
        except UnauthorizedError:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    if settings.WS_BIND_TO_SESSION and identity is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    rooms = []
    if identity is not None:
        rooms.append(str(identity.uid))
    if uid and _may_join(uid, identity):
        rooms.append(uid)

    await notifier.connect(websocket, rooms)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))

            # Binary frames carry no "text" key and are answered like bad JSON
            raw = frame.get("text")
            try:
                message = json.loads(raw) if raw is not None else None
            except json.JSONDecodeError:
                message = None
            if message is None:
                await websocket.send_json({"event": "error", "data": {"detail": "Invalid JSON"}})
                continue

            if not isinstance(message, dict) or message.get("event") != JOIN_EVENT:
                continue

            room = message.get("data")
            ok = isinstance(room, (str, int)) and str(room) != "" and _may_join(str(room), identity)
            if ok:
                notifier.join(websocket, str(room))
            await websocket.send_json({"event": JOIN_EVENT, "data": {"ok": ok}})
    except WebSocketDisconnect:
        pass
    finally:
        notifier.disconnect(websocket)
