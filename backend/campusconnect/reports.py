import logging
from typing import List

from sqlalchemy.orm import Session

from .errors import InvalidInput, store_operation
from .ids import parse_id
from .models import Report

logger = logging.getLogger(__name__)


class ReportService:
    """Append-only abuse reports."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, reporter_id, reported_id, reason) -> Report:
        reporter_id = parse_id(reporter_id, "reporterId")
        reported_id = parse_id(reported_id, "reportedId")
        if not isinstance(reason, str) or not reason.strip():
            raise InvalidInput("A reason is required")

        with store_operation(self.db, "create_report"):
            report = Report(reporter_id=reporter_id, reported_id=reported_id, reason=reason.strip())
            self.db.add(report)
            self.db.commit()
            self.db.refresh(report)
        logger.info("Report %s filed against %s", report.id, reported_id)
        return report

    def list_all(self) -> List[Report]:
        with store_operation(self.db, "list_reports"):
            return self.db.query(Report).order_by(Report.created_at).all()
