"""Marcus — Report Store.

Persists aggregated reports over time. The aggregation core never reads
from here; it only serves historical queries for dashboards.
"""

from typing import List, Optional

from sqlmodel import select

from marcus.core.logging import get_logger
from marcus.database import Database
from marcus.models.metrics import AggregatedReport
from marcus.models.report_models import ReportRecord

logger = get_logger("storage.reports")


class ReportStore:
    def __init__(self, database: Database):
        self.database = database

    def save(self, report: AggregatedReport) -> int:
        record = ReportRecord(
            created_at=report.generated_at,
            window_start=report.window.start.isoformat(),
            window_end=report.window.end.isoformat(),
            platforms=",".join(p.value for p in report.platforms),
            succeeded=len(report.succeeded),
            report_json=report.model_dump_json(),
        )
        with self.database.session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            logger.info(f"Stored report id {record.id}")
            return record.id  # type: ignore[return-value]

    def latest(self) -> Optional[AggregatedReport]:
        """Most recent stored report, or None if nothing was stored yet."""
        history = self.history(limit=1)
        return history[0] if history else None

    def history(
        self, limit: int = 10, window_end: Optional[str] = None
    ) -> List[AggregatedReport]:
        """Stored reports, newest first, optionally for one window end date."""
        query = select(ReportRecord)
        if window_end:
            query = query.where(ReportRecord.window_end == window_end)
        query = query.order_by(
            ReportRecord.created_at.desc(), ReportRecord.id.desc()  # type: ignore
        ).limit(limit)
        with self.database.session() as session:
            records = session.exec(query).all()
            return [AggregatedReport.model_validate_json(r.report_json) for r in records]
