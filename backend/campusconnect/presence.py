"""Live-connection presence and event delivery.

``PresenceRegistry`` is the room model: one room per user id holding every
socket session currently registered for that user (a chat tab and a
notifications tab land in the same room). ``Notifier`` is the port the
engines publish through; ``SocketIONotifier`` delivers over python-socketio.
"""
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, Optional, Protocol, Set

logger = logging.getLogger(__name__)

RECEIVE_MESSAGE = "receive_message"
MESSAGE_EDITED = "message_edited"
FRIEND_REQUEST_RECEIVED = "friend_request_received"


class PresenceRegistry:
    """user id -> live sids; every sid is bound to exactly one user id."""

    def __init__(self):
        self._rooms: Dict[str, Set[str]] = defaultdict(set)
        self._owners: Dict[str, str] = {}

    def join(self, user_id: str, sid: str) -> bool:
        """Put ``sid`` in ``user_id``'s room.

        Returns ``False``, leaving membership untouched, when ``sid`` is
        already bound to another user.
        """
        owner = self._owners.get(sid)
        if owner is not None and owner != user_id:
            return False
        self._owners[sid] = user_id
        self._rooms[user_id].add(sid)
        return True

    def owner(self, sid: str) -> Optional[str]:
        return self._owners.get(sid)

    def leave(self, sid: str) -> Optional[str]:
        """Drop ``sid``; return the user id it was bound to."""
        user_id = self._owners.pop(sid, None)
        if user_id is None:
            return None
        room = self._rooms.get(user_id)
        if room is not None:
            room.discard(sid)
            if not room:
                del self._rooms[user_id]
        return user_id

    def connections(self, user_id: str) -> Set[str]:
        return set(self._rooms.get(user_id, ()))

    def is_online(self, user_id: str) -> bool:
        return bool(self._rooms.get(user_id))


class Notifier(Protocol):
    async def publish(self, targets: Iterable[str], event: str, payload: Any) -> None:
        ...


class SocketIONotifier:
    """Best-effort fan-out to the live sessions of the target users.

    Users without a live session are skipped, nothing is queued. Each
    session gets the event once.
    """

    def __init__(self, sio, registry: PresenceRegistry):
        self.sio = sio
        self.registry = registry

    async def publish(self, targets: Iterable[str], event: str, payload: Any) -> None:
        sids: Set[str] = set()
        for user_id in set(targets):
            live = self.registry.connections(user_id)
            if not live:
                logger.debug("Dropping %s for %s: no live connection", event, user_id)
            sids |= live

        for sid in sorted(sids):
            try:
                await self.sio.emit(event, payload, to=sid)
            except Exception:
                logger.warning("Failed to deliver %s to %s", event, sid, exc_info=True)
