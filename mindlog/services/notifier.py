# services/notifier.py
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, Set

from fastapi import WebSocket
from fastapi.requests import HTTPConnection

logger = logging.getLogger(__name__)

NEW_LOG_EVENT = "log:new"

# Seconds a single socket may take to accept a frame before it is dropped
SEND_TIMEOUT = 2.0


class LogNotifier:
    """
    Registry of live WebSocket connections grouped into per-user rooms.

    A room is named by a user id. Delivery is best-effort: sockets that are
    not in the room get nothing, and nothing is queued for later.
    """

    def __init__(self, send_timeout: float = SEND_TIMEOUT):
        self.send_timeout = send_timeout
        self._rooms: Dict[str, Set[WebSocket]] = defaultdict(set)

    # =====================================================================
    # MEMBERSHIP
    # =====================================================================

    async def connect(self, websocket: WebSocket, rooms: Iterable[str] = ()) -> None:
        """Join the given rooms, then accept the handshake."""
        for room in rooms:
            self.join(websocket, room)
        await websocket.accept()

    def join(self, websocket: WebSocket, room: str) -> None:
        room = str(room)
        self._rooms[room].add(websocket)
        logger.debug("Socket joined room %s (%d members)", room, len(self._rooms[room]))

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove the socket from every room it joined."""
        for room in list(self._rooms):
            members = self._rooms[room]
            members.discard(websocket)
            if not members:
                del self._rooms[room]

    def room_size(self, room: str) -> int:
        members = self._rooms.get(str(room))
        return len(members) if members else 0

    # =====================================================================
    # FAN-OUT
    # =====================================================================

    async def emit(self, room: str, event: str, payload: Any) -> int:
        """Send an event to every socket in a room. Returns the delivered count."""
        members = list(self._rooms.get(str(room), ()))
        delivered = 0
        for websocket in members:
            try:
                await asyncio.wait_for(
                    websocket.send_json({"event": event, "data": payload}),
                    timeout=self.send_timeout,
                )
                delivered += 1
            except Exception as e:
                # A dead socket must not break delivery to the rest of the room
                logger.warning("Dropping socket in room %s: %r", room, e)
                self.disconnect(websocket)
        logger.debug("Emitted %s to room %s (%d/%d)", event, room, delivered, len(members))
        return delivered

    async def emit_new_log(self, user_id: Any, payload: Dict[str, Any]) -> int:
        return await self.emit(str(user_id), NEW_LOG_EVENT, payload)


# =====================================================================
# DEPENDENCY
# =====================================================================

def get_notifier(connection: HTTPConnection) -> LogNotifier:
    """The app-scoped notifier created at startup."""
    return connection.app.state.notifier
