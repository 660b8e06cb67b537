import logging
from typing import BinaryIO, Dict, Iterable, List, Optional, Tuple

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import auth as _auth_module
from .errors import Conflict, InvalidInput, NotFound, Unauthorized, store_operation
from .ids import normalize_id
from .models import Account, Profile
from .photos import PhotoStore
from .relationships import RelationshipEngine
from .search import MessageIndex

logger = logging.getLogger(__name__)

REGISTER_FIELDS = ("first_name", "last_name", "email", "password", "sexe")
PROFILE_FIELDS = ("first_name", "last_name", "sexe", "bio", "program", "level", "is_tutor", "campus")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def merge_interests(current: Iterable[str], added: Iterable[str]) -> List[str]:
    """Union of both lists, existing order first, duplicates dropped."""
    merged: List[str] = []
    for item in list(current or []) + list(added or []):
        item = item.strip() if isinstance(item, str) else item
        if item and item not in merged:
            merged.append(item)
    return merged


class AccountService:
    def __init__(
        self,
        db: Session,
        relationships: RelationshipEngine,
        photos: PhotoStore,
        index: Optional[MessageIndex] = None,
    ):
        self.db = db
        self.relationships = relationships
        self.photos = photos
        self.index = index

    def _email_taken(self, email: str) -> bool:
        return self.db.query(Account.id).filter(Account.email == email).first() is not None

    def register(self, first_name, last_name, email, password, sexe) -> Account:
        values = dict(zip(REGISTER_FIELDS, (first_name, last_name, email, password, sexe)))
        missing = [k for k, v in values.items() if not isinstance(v, str) or not v.strip()]
        if missing:
            raise InvalidInput("All fields are required: " + ", ".join(missing))
        email = _normalize_email(email)

        with store_operation(self.db, "register"):
            if self._email_taken(email):
                raise Conflict("Email already registered")

            account = Account(email=email, password_hash=_auth_module.get_password_hash(password))
            self.db.add(account)
            try:
                # the unique email index is checked here, before the profile exists
                self.db.flush()
                self.db.add(
                    Profile(
                        user_id=account.id,
                        first_name=first_name.strip(),
                        last_name=last_name.strip(),
                        sexe=sexe.strip(),
                        interests=[],
                    )
                )
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise Conflict("Email already registered")
            self.db.refresh(account)

        logger.info("Registered account %s", account.id)
        return account

    def authenticate(self, email, password) -> Tuple[Account, Optional[Profile]]:
        if not email or not password:
            raise InvalidInput("Email and password are required")

        with store_operation(self.db, "authenticate"):
            account = self.db.query(Account).filter(Account.email == _normalize_email(email)).first()
            if not account:
                raise NotFound("User not found")
            if not _auth_module.verify_password(password, account.password_hash):
                raise Unauthorized("Incorrect password")
            profile = self.db.query(Profile).filter(Profile.user_id == account.id).first()
        return account, profile

    def update_account(self, account_id: str, email: Optional[str] = None, password: Optional[str] = None) -> Account:
        with store_operation(self.db, "update_account"):
            account = self.db.get(Account, account_id)
            if not account:
                raise NotFound("User not found")
            if email is not None:
                email = _normalize_email(email)
                if not email:
                    raise InvalidInput("Email cannot be empty")
                taken = (
                    self.db.query(Account)
                    .filter(Account.email == email, Account.id != account_id)
                    .first()
                )
                if taken:
                    raise Conflict("Email already registered")
                account.email = email
            if password is not None:
                if not password:
                    raise InvalidInput("Password cannot be empty")
                account.password_hash = _auth_module.get_password_hash(password)
            self.db.commit()
            self.db.refresh(account)
        return account

    def _delete_rows(self, account_id: str) -> Tuple[int, int, Optional[str]]:
        with store_operation(self.db, "delete_account"):
            account = self.db.get(Account, account_id)
            if not account:
                raise NotFound("User not found")

            deleted_relationships, deleted_messages = self.relationships.cascade_on_account_deletion(account_id)
            photo = None
            profile = self.db.query(Profile).filter(Profile.user_id == account_id).first()
            if profile:
                photo = profile.photo_url
                self.db.delete(profile)
            self.db.delete(account)
            self.db.commit()
        return deleted_relationships, deleted_messages, photo

    async def delete_account(self, account_id: str) -> Dict[str, int]:
        account_id = normalize_id(account_id) or account_id
        deleted_relationships, deleted_messages, photo = await run_in_threadpool(
            self._delete_rows, account_id
        )

        logger.info(
            "Deleted account %s (%d relationships, %d messages)",
            account_id, deleted_relationships, deleted_messages,
        )
        if photo:
            self.photos.delete(photo)
        if self.index is not None:
            await self.index.delete_user(account_id)
        return {
            "deletedRelationships": deleted_relationships,
            "deletedMessages": deleted_messages,
        }

    def get_profile(self, user_id: str) -> Profile:
        with store_operation(self.db, "get_profile"):
            profile = self.db.query(Profile).filter(Profile.user_id == user_id).first()
        if not profile:
            raise NotFound("Profile not found")
        return profile

    def list_profiles(self) -> List[Profile]:
        with store_operation(self.db, "list_profiles"):
            return self.db.query(Profile).order_by(Profile.created_at).all()

    def update_profile(self, user_id: str, changes: dict, interests: Optional[List[str]] = None) -> Profile:
        """Set the given fields; ``interests`` are added, never replaced."""
        with store_operation(self.db, "update_profile"):
            profile = self.db.query(Profile).filter(Profile.user_id == user_id).first()
            if not profile:
                raise NotFound("Profile not found")
            for field, value in changes.items():
                if field in PROFILE_FIELDS and value is not None:
                    setattr(profile, field, value)
            if interests:
                # a new list, so the JSON column is flagged dirty
                profile.interests = merge_interests(profile.interests, interests)
            self.db.commit()
            self.db.refresh(profile)
        return profile

    def store_photo(self, user_id: str, stream: BinaryIO, original_name: str) -> str:
        profile = self.get_profile(user_id)
        file_name = self.photos.save(stream, original_name, profile.first_name)
        previous = profile.photo_url

        with store_operation(self.db, "store_photo"):
            profile.photo_url = file_name
            self.db.commit()

        if previous and previous != file_name:
            self.photos.delete(previous)
        return f"/file/{user_id}"

    def photo_path(self, user_id: str):
        profile = self.get_profile(user_id)
        path = self.photos.path_for(profile.photo_url)
        if path is None:
            raise NotFound("File not found")
        return path
