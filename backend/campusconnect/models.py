from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .database import Base
from .ids import new_id, utcnow

RELATIONSHIP_STATUSES = ("pending", "accepted", "refused")


class Account(Base):
    __tablename__ = "accounts"
    id            = Column(String(32), primary_key=True, default=new_id)
    email         = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at    = Column(DateTime, default=utcnow, nullable=False)

    profile = relationship("Profile", back_populates="account", uselist=False)


class Profile(Base):
    __tablename__ = "profiles"
    id         = Column(String(32), primary_key=True, default=new_id)
    user_id    = Column(String(32), ForeignKey("accounts.id"), unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name  = Column(String, nullable=False)
    sexe       = Column(String, nullable=False)
    bio        = Column(Text, default="", nullable=False)
    program    = Column(String, default="", nullable=False)
    level      = Column(String, default="", nullable=False)
    interests  = Column(JSON, default=list, nullable=False)
    is_tutor   = Column(Boolean, default=False, nullable=False)
    campus     = Column(String, default="", nullable=False)
    photo_url  = Column(String, default="", nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    account = relationship("Account", back_populates="profile")


class Relationship(Base):
    __tablename__ = "relationships"
    id           = Column(String(32), primary_key=True, default=new_id)
    requester_id = Column(String(32), ForeignKey("accounts.id"), index=True, nullable=False)
    responder_id = Column(String(32), ForeignKey("accounts.id"), index=True, nullable=False)
    # canonical key of the unordered pair; the unique index allows one row per pair
    pair_key     = Column(String(65), unique=True, index=True, nullable=False)
    status       = Column(String(16), default="pending", nullable=False)  # pending / accepted / refused
    created_at   = Column(DateTime, default=utcnow, nullable=False)
    updated_at   = Column(DateTime, default=utcnow, nullable=False)


class Message(Base):
    __tablename__ = "messages"
    # insertion order, breaks ties between equal timestamps
    seq         = Column(Integer, primary_key=True, autoincrement=True)
    id          = Column(String(32), unique=True, index=True, default=new_id, nullable=False)
    sender_id   = Column(String(32), ForeignKey("accounts.id"), index=True, nullable=False)
    receiver_id = Column(String(32), ForeignKey("accounts.id"), index=True, nullable=False)
    pair_key    = Column(String(65), index=True, nullable=False)
    content     = Column(Text, nullable=False)
    created_at  = Column(DateTime, default=utcnow, index=True, nullable=False)


class Report(Base):
    __tablename__ = "reports"
    id          = Column(String(32), primary_key=True, default=new_id)
    # plain references: reports are kept after the accounts are deleted
    reporter_id = Column(String(32), index=True, nullable=False)
    reported_id = Column(String(32), index=True, nullable=False)
    reason      = Column(Text, nullable=False)
    created_at  = Column(DateTime, default=utcnow, nullable=False)
