from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Accounts ---
class UserCreate(CamelModel):
    first_name: str
    last_name: str
    email: str
    password: str
    sexe: str

class UserLogin(CamelModel):
    email: str
    password: str

class UserUpdate(CamelModel):
    email: Optional[str] = None
    password: Optional[str] = None

class RegisterResult(CamelModel):
    message: str
    user_id: str

class DeleteUserResult(CamelModel):
    message: str
    deleted_relationships: int
    deleted_messages: int


# --- Profiles ---
class ProfileRead(CamelModel):
    user_id: str
    first_name: str
    last_name: str
    sexe: str
    bio: str = ""
    program: str = ""
    level: str = ""
    interests: List[str] = []
    is_tutor: bool = False
    campus: str = ""
    photo_url: str = ""
    created_at: datetime

class ProfileUpdate(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    sexe: Optional[str] = None
    bio: Optional[str] = None
    program: Optional[str] = None
    level: Optional[str] = None
    is_tutor: Optional[bool] = None
    campus: Optional[str] = None
    interests: Optional[List[str]] = None

class ProfileResult(CamelModel):
    message: str
    profile: ProfileRead

class ProfileList(CamelModel):
    message: str
    profiles: List[ProfileRead]

class LoginResult(CamelModel):
    message: str
    profile: Optional[ProfileRead]
    access_token: str
    token_type: str = "bearer"


# --- Friends ---
class FriendRequestCreate(CamelModel):
    sender_id: str
    receiver_id: str

class FriendRequestUpdate(CamelModel):
    sender_id: str
    receiver_id: str
    status: str

class RelationshipRead(CamelModel):
    id: str
    requester_id: str
    responder_id: str
    status: Literal["pending", "accepted", "refused"]
    created_at: datetime
    updated_at: datetime

class RelationshipResult(CamelModel):
    message: str
    relationship: RelationshipRead

class FriendList(CamelModel):
    message: str
    friends: List[ProfileRead]

class FriendDeleteResult(CamelModel):
    message: str
    deleted_messages_count: int


# --- Messages ---
class MessageCreate(CamelModel):
    sender_id: str
    receiver_id: str
    content: str

class MessageEdit(CamelModel):
    content: str

# ids are opaque strings, timestamp is ISO-8601 (REST or socket)
class MessageRead(CamelModel):
    id: str
    sender_id: Optional[str] = None
    receiver_id: Optional[str] = None
    content: str
    timestamp: str

class SentMessage(CamelModel):
    message: str
    new_message: MessageRead

class EditedMessage(CamelModel):
    message: str
    edited_message: MessageRead

class Conversation(CamelModel):
    message: str
    messages: List[MessageRead]


# --- Reports ---
class ReportCreate(CamelModel):
    reporter_id: str
    reported_id: str
    reason: str

class ReportRead(CamelModel):
    id: str
    reporter_id: str
    reported_id: str
    reason: str
    created_at: datetime

class ReportResult(CamelModel):
    message: str
    report: ReportRead

class ReportList(CamelModel):
    message: str
    reports: List[ReportRead]


class UploadResult(CamelModel):
    success: bool = True
    message: str
    file_url: str
