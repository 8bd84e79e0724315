"""Marcus — Scheduler Jobs.

APScheduler interval job that rebuilds the live "today" report, stores it
and pushes it to registered listeners.
"""

import inspect
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlalchemy.exc import SQLAlchemyError

from marcus.analyzer.aggregator import Aggregator
from marcus.core.errors import MarcusError
from marcus.core.logging import get_logger
from marcus.models.metrics import AggregatedReport, Platform, resolve_window
from marcus.storage.report_store import ReportStore

logger = get_logger("scheduler")

ReportListener = Callable[[AggregatedReport], Union[None, Awaitable[None]]]


class ReportRefresher:
    """Periodically refreshes, persists and broadcasts the live report."""

    def __init__(
        self,
        aggregator: Aggregator,
        store: Optional[ReportStore],
        platforms: Sequence[Platform],
        timezone: str = "UTC",
        timeout: Optional[float] = None,
        interval_minutes: int = 15,
    ):
        self.aggregator = aggregator
        self.store = store
        self.platforms = list(platforms)
        self.timezone = timezone
        self.timeout = timeout
        self.interval_minutes = interval_minutes
        self._listeners: List[ReportListener] = []
        self.scheduler = AsyncIOScheduler()

    def add_listener(self, listener: ReportListener) -> None:
        self._listeners.append(listener)

    async def _notify(self, report: AggregatedReport) -> None:
        for listener in self._listeners:
            try:
                result: Any = listener(report)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Report listener {listener!r} failed: {e}")

    async def refresh(self) -> Optional[AggregatedReport]:
        """Build, persist and broadcast one report for today."""
        logger.info("Scheduled report refresh starting...")
        try:
            window = resolve_window("today", timezone=self.timezone)
            report = await self.aggregator.build_report(
                self.platforms, window, timeout=self.timeout
            )
        except MarcusError as e:
            logger.error(f"Scheduled report refresh failed: {e}")
            return None

        if self.store is not None:
            try:
                self.store.save(report)
            except SQLAlchemyError as e:
                logger.error(f"Storing scheduled report failed, broadcasting anyway: {e}")
        await self._notify(report)
        logger.info(
            f"Scheduled refresh complete: {len(report.succeeded)}/{len(report.platforms)} platforms"
        )
        return report

    def start(self) -> None:
        """Configure and start the scheduler."""
        self.scheduler.add_job(
            self.refresh,
            "interval",
            minutes=self.interval_minutes,
            id="report_refresh",
            replace_existing=True,
            misfire_grace_time=300,
            max_instances=1,
        )
        self.scheduler.start()
        logger.info(f"Scheduler started. Report refresh every {self.interval_minutes} min")

    def stop(self) -> None:
        """Shutdown the scheduler gracefully."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
