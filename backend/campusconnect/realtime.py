"""socket.io events, routed to the same operations as the HTTP surface."""
import logging

from . import auth as _auth_module
from .context import AppContext
from .errors import CampusConnectError, InvalidInput, Unauthorized
from .ids import parse_id

logger = logging.getLogger(__name__)


def _failure(exc: CampusConnectError) -> dict:
    return {"ok": False, **exc.to_dict()}


class RealtimeGateway:
    def __init__(self, context: AppContext):
        self.context = context

    def register(self, sio) -> None:
        sio.on("connect", self.connect)
        sio.on("disconnect", self.disconnect)
        sio.on("join_notifications", self.join_notifications)
        sio.on("join_chat", self.join_chat)
        sio.on("send_message", self.send_message)
        sio.on("send_friend_request", self.send_friend_request)

    async def connect(self, sid, environ, auth_data=None):
        token = auth_data.get("token") if isinstance(auth_data, dict) else None
        if not token:
            # anonymous until join_chat / join_notifications
            return True
        settings = self.context.settings
        user_id = _auth_module.decode_access_token(token, settings.secret_key, settings.algorithm)
        if not user_id:
            return False
        self.context.presence.join(user_id, sid)
        logger.info("Connection %s authenticated as %s", sid, user_id)
        return True

    async def disconnect(self, sid, *args):
        presence = self.context.presence
        user_id = presence.leave(sid)
        if user_id is None:
            logger.info("Connection %s closed (anonymous)", sid)
        else:
            logger.info(
                "Connection %s closed (%s, still online: %s)", sid, user_id, presence.is_online(user_id)
            )

    def _join(self, sid, user_id, room_kind: str) -> dict:
        try:
            user_id = parse_id(user_id, "userId")
        except InvalidInput as exc:
            return _failure(exc)
        if not self.context.presence.join(user_id, sid):
            logger.warning(
                "Connection %s bound to %s tried to join %s's %s room",
                sid, self.context.presence.owner(sid), user_id, room_kind,
            )
            return _failure(Unauthorized("Connection already belongs to another user"))
        logger.info("User %s joined its %s room from %s", user_id, room_kind, sid)
        return {"ok": True, "userId": user_id}

    async def join_notifications(self, sid, user_id=None):
        return self._join(sid, user_id, "notifications")

    async def join_chat(self, sid, user_id=None):
        return self._join(sid, user_id, "chat")

    async def send_message(self, sid, data=None):
        data = data if isinstance(data, dict) else {}
        with self.context.session_factory() as db:
            try:
                payload = await self.context.messaging(db).send_message(
                    data.get("senderId"), data.get("receiverId"), data.get("content")
                )
            except CampusConnectError as exc:
                logger.warning("socket send_message from %s failed: %s", sid, exc.message)
                return _failure(exc)
        return {"ok": True, "message": payload}

    async def send_friend_request(self, sid, data=None):
        data = data if isinstance(data, dict) else {}
        with self.context.session_factory() as db:
            try:
                rel = await self.context.relationships(db).send_request(
                    data.get("senderId"), data.get("receiverId")
                )
            except CampusConnectError as exc:
                logger.warning("socket send_friend_request from %s failed: %s", sid, exc.message)
                return _failure(exc)
            return {"ok": True, "relationshipId": rel.id, "status": rel.status}
