"""Marcus — Central Configuration via Pydantic Settings."""

import os
from typing import List, Optional

from pydantic_settings import BaseSettings

from marcus.core.backoff import RetryPolicy
from marcus.models.credentials import GoogleAdsCredentials, MetaAdsCredentials


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Google Ads API ──
    google_ads_client_id: str = ""
    google_ads_client_secret: str = ""
    google_ads_developer_token: str = ""
    google_ads_refresh_token: str = ""
    google_ads_customer_id: str = ""
    google_ads_login_customer_id: Optional[str] = None
    google_ads_api_version: str = "v17"
    google_ads_base_url: str = "https://googleads.googleapis.com"
    google_oauth_token_url: str = "https://oauth2.googleapis.com/token"

    # ── Meta API ──
    meta_access_token: str = ""
    meta_ad_account_id: str = ""
    meta_api_version: str = "v21.0"
    meta_base_url: str = "https://graph.facebook.com"

    # ── HTTP / Retry ──
    http_timeout_seconds: float = 30.0
    retry_max_attempts: int = 3
    retry_base_seconds: float = 1.0
    retry_factor: float = 2.0
    retry_max_seconds: float = 30.0
    retry_jitter_pct: float = 0.1

    # ── Aggregation ──
    enabled_platforms: List[str] = ["google_ads", "meta_ads"]
    aggregation_timeout_seconds: Optional[float] = 45.0
    report_timezone: str = "UTC"

    # ── Database ──
    database_url: str = ""
    db_connect_attempts: int = 5
    db_connect_base_seconds: float = 1.0

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    refresh_interval_minutes: int = 15  # Live dashboard refresh cadence

    @property
    def effective_database_url(self) -> str:
        """Return the configured URL if set, otherwise fall back to SQLite."""
        if self.database_url:
            return self.database_url
        # Vercel has a read-only filesystem; use /tmp for SQLite
        if os.environ.get("VERCEL"):
            return "sqlite:////tmp/marcus.db"
        return "sqlite:///./marcus.db"

    def google_ads_credentials(self) -> GoogleAdsCredentials:
        return GoogleAdsCredentials(
            client_id=self.google_ads_client_id,
            client_secret=self.google_ads_client_secret,
            developer_token=self.google_ads_developer_token,
            refresh_token=self.google_ads_refresh_token,
            customer_id=self.google_ads_customer_id,
            login_customer_id=self.google_ads_login_customer_id,
        )

    def meta_ads_credentials(self) -> MetaAdsCredentials:
        return MetaAdsCredentials(
            access_token=self.meta_access_token,
            ad_account_id=self.meta_ad_account_id,
        )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.retry_max_attempts,
            base_seconds=self.retry_base_seconds,
            factor=self.retry_factor,
            max_seconds=self.retry_max_seconds,
            jitter_pct=self.retry_jitter_pct,
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
