"""Marcus — Persisted Report Models."""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class ReportRecord(SQLModel, table=True):
    """One stored ``AggregatedReport``, kept for historical trend queries."""

    __tablename__ = "aggregated_reports"

    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    window_start: str = Field(index=True, description="YYYY-MM-DD")
    window_end: str = Field(index=True, description="YYYY-MM-DD")
    platforms: str = Field(default="", description="Comma-separated platform ids")
    succeeded: int = Field(default=0, description="Platforms with a snapshot")
    report_json: str = Field(description="Full AggregatedReport as JSON")
