from dataclasses import dataclass

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .accounts import AccountService
from .config import Settings
from .messaging import MessagingChannel
from .photos import PhotoStore
from .presence import Notifier, PresenceRegistry
from .relationships import RelationshipEngine
from .reports import ReportService
from .search import MessageIndex


@dataclass
class AppContext:
    """Everything the components share, built once per process by ``create_app``."""

    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    presence: PresenceRegistry
    notifier: Notifier
    photos: PhotoStore
    index: MessageIndex

    def relationships(self, db: Session) -> RelationshipEngine:
        return RelationshipEngine(db, self.notifier, self.index)

    def messaging(self, db: Session) -> MessagingChannel:
        return MessagingChannel(db, self.notifier, self.index)

    def accounts(self, db: Session) -> AccountService:
        return AccountService(db, self.relationships(db), self.photos, self.index)

    def reports(self, db: Session) -> ReportService:
        return ReportService(db)
