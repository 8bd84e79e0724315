"""Marcus — Composition Root.

Builds every long-lived object from settings and controls their lifecycle
explicitly; nothing connects or starts at import time.
"""

from typing import Dict, Optional

from marcus.analyzer.aggregator import Aggregator
from marcus.config import Settings
from marcus.connectors.base import PlatformAdapter
from marcus.connectors.google.adapter import GoogleAdsAdapter
from marcus.connectors.meta.adapter import MetaAdsAdapter
from marcus.core.logging import get_logger
from marcus.database import Database
from marcus.models.metrics import Platform
from marcus.scheduler.jobs import ReportRefresher
from marcus.storage.report_store import ReportStore

logger = get_logger("container")


def build_adapters(settings: Settings) -> Dict[Platform, PlatformAdapter]:
    """One adapter per enabled platform.

    Adapters with missing credentials are still built; they report
    ``missing_credentials`` through their health instead of disappearing.
    """
    common = {
        "retry_policy": settings.retry_policy(),
        "timeout": settings.http_timeout_seconds,
        "timezone": settings.report_timezone,
    }
    adapters: Dict[Platform, PlatformAdapter] = {}
    for name in settings.enabled_platforms:
        platform = Platform(name)
        if platform == Platform.GOOGLE_ADS:
            adapters[platform] = GoogleAdsAdapter(
                settings.google_ads_credentials(),
                api_base=settings.google_ads_base_url,
                api_version=settings.google_ads_api_version,
                token_url=settings.google_oauth_token_url,
                **common,
            )
        elif platform == Platform.META_ADS:
            adapters[platform] = MetaAdsAdapter(
                settings.meta_ads_credentials(),
                base_url=settings.meta_base_url,
                api_version=settings.meta_api_version,
                **common,
            )
    return adapters


class Container:
    """Owns adapters, aggregator, database, store and refresher."""

    def __init__(
        self,
        settings: Settings,
        adapters: Dict[Platform, PlatformAdapter],
        database: Optional[Database] = None,
    ):
        self.settings = settings
        self.adapters = adapters
        self.aggregator = Aggregator(adapters)
        self.database = database
        self.store = ReportStore(database) if database is not None else None
        self.refresher = ReportRefresher(
            self.aggregator,
            self.store,
            platforms=list(adapters),
            timezone=settings.report_timezone,
            timeout=settings.aggregation_timeout_seconds,
            interval_minutes=settings.refresh_interval_minutes,
        )

    @classmethod
    def from_settings(cls, settings: Settings, with_database: bool = True) -> "Container":
        database = Database(settings.effective_database_url) if with_database else None
        return cls(settings, build_adapters(settings), database)

    def start(self, with_scheduler: Optional[bool] = None) -> None:
        """Connect storage and start background refresh.

        Must run inside an event loop when the scheduler is enabled.
        """
        if self.database is not None:
            self.database.connect(
                attempts=self.settings.db_connect_attempts,
                base_seconds=self.settings.db_connect_base_seconds,
            )
            self.database.init_schema()
        if with_scheduler is None:
            with_scheduler = self.settings.scheduler_enabled
        if with_scheduler:
            self.refresher.start()
        logger.info(
            f"Marcus started with platforms: {', '.join(p.value for p in self.adapters)}"
        )

    async def shutdown(self) -> None:
        self.refresher.stop()
        for adapter in self.adapters.values():
            await adapter.aclose()
        if self.database is not None:
            self.database.dispose()
        logger.info("Marcus shut down")
