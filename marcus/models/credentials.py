"""Marcus — Resolved Platform Credentials.

Adapters consume these already-resolved values; loading them from the
environment is the job of ``marcus.config``.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class GoogleAdsCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    client_id: str = ""
    client_secret: str = ""
    developer_token: str = ""
    refresh_token: str = ""
    customer_id: str = ""
    login_customer_id: Optional[str] = None

    def missing_fields(self) -> List[str]:
        """Names of required values that are absent or blank."""
        required = (
            "client_id",
            "client_secret",
            "developer_token",
            "refresh_token",
            "customer_id",
        )
        return [name for name in required if not (getattr(self, name) or "").strip()]

    @property
    def normalized_customer_id(self) -> str:
        # Must be hyphen-free per Google Ads docs.
        return self.customer_id.replace("-", "").strip()


class MetaAdsCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str = ""
    ad_account_id: str = ""

    def missing_fields(self) -> List[str]:
        return [
            name
            for name in ("access_token", "ad_account_id")
            if not (getattr(self, name) or "").strip()
        ]

    @property
    def account_path(self) -> str:
        """Graph API node for the ad account, always ``act_``-prefixed."""
        account_id = self.ad_account_id.strip()
        return account_id if account_id.startswith("act_") else f"act_{account_id}"


class AuthenticatedSession(BaseModel):
    """A bearer token an adapter may reuse until shortly before it expires."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_at: Optional[datetime] = None

    def is_valid(self, now: Optional[datetime] = None, skew_seconds: int = 60) -> bool:
        if not self.access_token:
            return False
        if self.expires_at is None:
            return True
        now = now or datetime.now(timezone.utc)
        return now + timedelta(seconds=skew_seconds) < self.expires_at
