"""Friend-request state machine.

A relationship is created ``pending`` by the requester and moved to
``accepted`` or ``refused`` by either party. Every lookup goes through the
canonical pair key, so the direction of the ids passed in never matters and
the unique index on ``pair_key`` keeps one row per unordered pair.
"""
import logging
from typing import List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import Conflict, InvalidInput, NotFound, store_operation
from .ids import normalize_id, parse_id, pair_key, utcnow
from .models import RELATIONSHIP_STATUSES, Account, Message, Profile, Relationship
from .presence import FRIEND_REQUEST_RECEIVED, Notifier
from .search import MessageIndex

logger = logging.getLogger(__name__)

RESPONSE_STATUSES = ("accepted", "refused")


class RelationshipEngine:
    def __init__(self, db: Session, notifier: Notifier, index: Optional[MessageIndex] = None):
        self.db = db
        self.notifier = notifier
        self.index = index

    def _parse_pair(self, id_a, id_b) -> Tuple[str, str]:
        id_a = parse_id(id_a, "senderId")
        id_b = parse_id(id_b, "receiverId")
        if id_a == id_b:
            raise InvalidInput("Cannot befriend yourself")
        return id_a, id_b

    def _find(self, id_a: str, id_b: str) -> Optional[Relationship]:
        return (
            self.db.query(Relationship)
            .filter(Relationship.pair_key == pair_key(id_a, id_b))
            .first()
        )

    def _create_request(self, requester_id: str, responder_id: str) -> Relationship:
        with store_operation(self.db, "send_request"):
            found = (
                self.db.query(Account.id)
                .filter(Account.id.in_([requester_id, responder_id]))
                .count()
            )
            if found != 2:
                raise NotFound("User not found")
            if self._find(requester_id, responder_id):
                raise Conflict("A request or friendship already exists")

            rel = Relationship(
                requester_id=requester_id,
                responder_id=responder_id,
                pair_key=pair_key(requester_id, responder_id),
                status="pending",
            )
            self.db.add(rel)
            try:
                self.db.commit()
            except IntegrityError:
                # lost the race against a concurrent request for the same pair
                self.db.rollback()
                raise Conflict("A request or friendship already exists")
            self.db.refresh(rel)
        return rel

    async def send_request(self, requester_id, responder_id) -> Relationship:
        requester_id, responder_id = self._parse_pair(requester_id, responder_id)

        rel = await run_in_threadpool(self._create_request, requester_id, responder_id)

        logger.info("Friend request %s -> %s", requester_id, responder_id)
        await self.notifier.publish(
            {responder_id},
            FRIEND_REQUEST_RECEIVED,
            {
                "senderId": requester_id,
                "receiverId": responder_id,
                "message": "You have received a new friend request!",
            },
        )
        return rel

    def list_by_status(self, user_id: str, status: str) -> List[Profile]:
        if status not in RELATIONSHIP_STATUSES:
            raise InvalidInput(f"Unknown status: {status}")
        user_id = normalize_id(user_id)
        if user_id is None:
            return []

        with store_operation(self.db, "list_by_status"):
            relations = (
                self.db.query(Relationship)
                .filter(
                    or_(Relationship.requester_id == user_id, Relationship.responder_id == user_id),
                    Relationship.status == status,
                )
                .order_by(Relationship.created_at)
                .all()
            )
            if not relations:
                return []

            other_ids = [
                r.responder_id if r.requester_id == user_id else r.requester_id
                for r in relations
            ]
            profiles = {
                p.user_id: p
                for p in self.db.query(Profile).filter(Profile.user_id.in_(other_ids)).all()
            }
        return [profiles[uid] for uid in other_ids if uid in profiles]

    def update_status(self, requester_id, responder_id, status) -> Relationship:
        requester_id, responder_id = self._parse_pair(requester_id, responder_id)
        if status not in RESPONSE_STATUSES:
            raise InvalidInput("Status must be 'accepted' or 'refused'")

        with store_operation(self.db, "update_status"):
            rel = self._find(requester_id, responder_id)
            if not rel:
                raise NotFound("Friend request not found")
            rel.status = status
            rel.updated_at = utcnow()
            self.db.commit()
            self.db.refresh(rel)
        logger.info("Relationship %s is now %s", rel.pair_key, status)
        return rel

    def _delete_pair(self, id_a: str, id_b: str) -> int:
        with store_operation(self.db, "delete_relationship"):
            rel = self._find(id_a, id_b)
            if not rel:
                raise NotFound("Relationship not found")
            self.db.delete(rel)
            deleted_messages = (
                self.db.query(Message)
                .filter(Message.pair_key == pair_key(id_a, id_b))
                .delete(synchronize_session=False)
            )
            self.db.commit()
        return deleted_messages

    async def delete_relationship(self, id_a, id_b) -> int:
        """Delete the pair's relationship and its whole conversation.

        Returns the number of messages deleted.
        """
        id_a, id_b = self._parse_pair(id_a, id_b)
        key = pair_key(id_a, id_b)

        deleted_messages = await run_in_threadpool(self._delete_pair, id_a, id_b)

        logger.info("Relationship %s deleted with %d messages", key, deleted_messages)
        if self.index is not None:
            await self.index.delete_conversation(key)
        return deleted_messages

    def cascade_on_account_deletion(self, account_id: str) -> Tuple[int, int]:
        """Delete every relationship and message referencing ``account_id``.

        Runs in the caller's transaction: nothing is committed here. Returns
        ``(relationships_deleted, messages_deleted)``; an account with nothing
        left to delete yields ``(0, 0)``.
        """
        with store_operation(self.db, "cascade_on_account_deletion"):
            deleted_relationships = (
                self.db.query(Relationship)
                .filter(
                    or_(
                        Relationship.requester_id == account_id,
                        Relationship.responder_id == account_id,
                    )
                )
                .delete(synchronize_session=False)
            )
            deleted_messages = (
                self.db.query(Message)
                .filter(or_(Message.sender_id == account_id, Message.receiver_id == account_id))
                .delete(synchronize_session=False)
            )
        return deleted_relationships, deleted_messages
