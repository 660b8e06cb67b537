import logging
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from .errors import InvalidInput, NotFound, store_operation
from .ids import isoformat, normalize_id, parse_id, pair_key
from .models import Account, Message
from .presence import MESSAGE_EDITED, RECEIVE_MESSAGE, Notifier
from .search import MessageIndex

logger = logging.getLogger(__name__)


def serialize_message(msg: Message) -> dict:
    return {
        "id": str(msg.id),
        "senderId": str(msg.sender_id),
        "receiverId": str(msg.receiver_id),
        "content": msg.content,
        "timestamp": isoformat(msg.created_at),
    }


def _index_document(payload: dict) -> dict:
    return {
        "id": payload["id"],
        "text": payload["content"],
        "timestamp": payload["timestamp"],
        "sender_id": payload["senderId"],
        "receiver_id": payload["receiverId"],
    }


def _require_content(content) -> str:
    if not isinstance(content, str) or not content.strip():
        raise InvalidInput("Message content is required")
    return content


class MessagingChannel:
    """Direct messages between two users, persisted then fanned out live.

    Messages are not gated by friendship: any two existing accounts may
    write to each other. Store calls run in the threadpool; only the
    publish and index calls run on the event loop.
    """

    def __init__(self, db: Session, notifier: Notifier, index: Optional[MessageIndex] = None):
        self.db = db
        self.notifier = notifier
        self.index = index

    def _insert_message(self, sender_id: str, receiver_id: str, content: str) -> Message:
        with store_operation(self.db, "send_message"):
            wanted = {sender_id, receiver_id}
            found = self.db.query(Account.id).filter(Account.id.in_(wanted)).count()
            if found != len(wanted):
                raise NotFound("User not found")

            msg = Message(
                sender_id=sender_id,
                receiver_id=receiver_id,
                pair_key=pair_key(sender_id, receiver_id),
                content=content,
            )
            self.db.add(msg)
            self.db.commit()
            self.db.refresh(msg)
        return msg

    def _update_content(self, message_id: Optional[str], content: str) -> Message:
        with store_operation(self.db, "edit_message"):
            msg = None
            if message_id is not None:
                msg = self.db.query(Message).filter(Message.id == message_id).first()
            if msg is None or msg.content == content:
                raise NotFound("Message not found or unchanged")
            msg.content = content
            self.db.commit()
            self.db.refresh(msg)
        return msg

    async def send_message(self, sender_id, receiver_id, content) -> dict:
        sender_id = parse_id(sender_id, "senderId")
        receiver_id = parse_id(receiver_id, "receiverId")
        content = _require_content(content)

        msg = await run_in_threadpool(self._insert_message, sender_id, receiver_id, content)

        payload = serialize_message(msg)
        # the sender's other sessions see the message too
        await self.notifier.publish({sender_id, receiver_id}, RECEIVE_MESSAGE, payload)
        if self.index is not None:
            await self.index.index_message(msg.pair_key, _index_document(payload))
        return payload

    async def edit_message(self, message_id: str, content) -> dict:
        content = _require_content(content)

        msg = await run_in_threadpool(self._update_content, normalize_id(message_id), content)

        payload = serialize_message(msg)
        # participants come from the stored record, not from the caller
        await self.notifier.publish({msg.sender_id, msg.receiver_id}, MESSAGE_EDITED, payload)
        if self.index is not None:
            await self.index.index_message(msg.pair_key, _index_document(payload))
        return payload

    def get_conversation(self, user_a: str, user_b: str) -> List[dict]:
        user_a, user_b = normalize_id(user_a), normalize_id(user_b)
        if user_a is None or user_b is None:
            return []
        with store_operation(self.db, "get_conversation"):
            messages = (
                self.db.query(Message)
                .filter(Message.pair_key == pair_key(user_a, user_b))
                .order_by(Message.created_at.asc(), Message.seq.asc())
                .all()
            )
        return [serialize_message(m) for m in messages]

    async def search_conversation(self, user_a: str, user_b: str, q: str) -> List[dict]:
        user_a, user_b = normalize_id(user_a), normalize_id(user_b)
        if user_a is None or user_b is None:
            return []
        hits = await self.index.search(pair_key(user_a, user_b), q)
        return [
            {
                "id": str(hit["id"]),
                "senderId": hit.get("sender_id"),
                "receiverId": hit.get("receiver_id"),
                "content": hit["text"],
                "timestamp": hit["timestamp"],
            }
            for hit in hits
        ]
