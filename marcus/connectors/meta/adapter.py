"""Marcus — Meta Ads Adapter.

Handles authentication, error classification and pagination against the
Meta Marketing (Graph) API.
"""

import json
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

import httpx

from marcus.analyzer.normalizer import NATIVE_ROW
from marcus.connectors.base import PlatformAdapter, retry_after_seconds
from marcus.connectors.meta.transformer import HOURLY_BREAKDOWN, flatten_insights
from marcus.core.errors import (
    AdapterError,
    AuthExpired,
    MalformedResponse,
    MissingCredentials,
    RateLimited,
    UpstreamUnavailable,
)
from marcus.core.logging import get_logger
from marcus.models.credentials import AuthenticatedSession, MetaAdsCredentials
from marcus.models.metrics import ConnectionInfo, DateWindow, Platform

logger = get_logger("meta.adapter")

DEFAULT_BASE_URL = "https://graph.facebook.com"
DEFAULT_API_VERSION = "v21.0"
MAX_PAGES = 50

INSIGHT_FIELDS = "impressions,clicks,spend,actions,action_values"
ACCOUNT_FIELDS = "name,account_id,currency,timezone_name"

# Graph API error codes
AUTH_ERROR_CODES = {102, 190}
PERMISSION_ERROR_CODES = {10} | set(range(200, 300))
THROTTLE_ERROR_CODES = {4, 17, 32, 613} | set(range(80000, 80015))
TRANSIENT_ERROR_CODES = {1, 2}


class MetaAdsAdapter(PlatformAdapter):
    """Meta Marketing API insights for one ad account."""

    platform = Platform.META_ADS
    row_schema = NATIVE_ROW

    def __init__(
        self,
        credentials: MetaAdsCredentials,
        base_url: str = DEFAULT_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.credentials = credentials
        self.api_root = f"{base_url.rstrip('/')}/{api_version}"

    # ── Core Request Method ──

    @staticmethod
    def _api_error(resp: httpx.Response) -> AdapterError:
        try:
            body = resp.json()
        except ValueError:
            body = {}
        error = body.get("error") if isinstance(body, dict) else None
        error = error if isinstance(error, dict) else {}
        code = error.get("code") or 0
        message = (
            f"Meta API error {resp.status_code} (code {code}): "
            f"{error.get('message') or resp.text[:200]}"
        )

        if resp.status_code == 429 or code in THROTTLE_ERROR_CODES:
            return RateLimited(
                message,
                status_code=resp.status_code,
                retry_after=retry_after_seconds(resp),
            )
        if resp.status_code == 401 or code in AUTH_ERROR_CODES | PERMISSION_ERROR_CODES:
            return AuthExpired(message, status_code=resp.status_code)
        if resp.status_code >= 500 or code in TRANSIENT_ERROR_CODES:
            return UpstreamUnavailable(message, status_code=resp.status_code)
        return MalformedResponse(message, status_code=resp.status_code)

    async def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET with the access token; non-2xx answers raise typed errors.

        Extra ``params`` are merged into the URL's own query string, never
        replace it: ``paging.next`` links carry the cursor and every filter.
        """
        target = httpx.URL(url).copy_merge_params(params or {})
        if "access_token" not in target.params:
            target = target.copy_merge_params(
                {"access_token": self.credentials.access_token}
            )
        resp = await self._send("GET", str(target))
        if resp.status_code >= 400:
            raise self._api_error(resp)
        return self._json(resp)

    # ── Pagination ──

    async def _paginated_get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Fetch all pages of a paginated endpoint."""
        await self._ensure_session()
        all_data: List[Dict[str, Any]] = []
        current_url = url

        for page in range(MAX_PAGES):
            result = await self._get(current_url, params if page == 0 else None)
            if not isinstance(result, dict):
                raise MalformedResponse(
                    f"Expected an object from {url}, got {type(result).__name__}"
                )
            data = result.get("data", [])
            if not isinstance(data, list):
                raise MalformedResponse(f"'data' from {url} is not a list")
            all_data.extend(data)

            # The next URL already carries every query parameter
            paging = result.get("paging") or {}
            next_url = paging.get("next") if isinstance(paging, dict) else None
            if not next_url:
                break
            current_url = next_url

        logger.debug(
            f"Fetched {len(all_data)} records from {url}",
            extra={"platform": "meta_ads"},
        )
        return all_data

    # ── Hooks ──

    async def _authenticate(self) -> AuthenticatedSession:
        missing = self.credentials.missing_fields()
        if missing:
            raise MissingCredentials(f"Missing Meta credentials: {', '.join(missing)}")
        # Long-lived tokens carry no refresh flow; a cheap /me call validates it
        me = await self._get(f"{self.api_root}/me", {"fields": "id"})
        if not isinstance(me, dict) or "id" not in me:
            raise MalformedResponse("Token validation returned no user id")
        return AuthenticatedSession(access_token=self.credentials.access_token)

    def _insights_url(self) -> str:
        return f"{self.api_root}/{self.credentials.account_path}/insights"

    async def _fetch_window_rows(self, window: DateWindow) -> List[Mapping[str, Any]]:
        params = {
            "fields": INSIGHT_FIELDS,
            "level": "account",
            "time_range": json.dumps(
                {"since": window.start.isoformat(), "until": window.end.isoformat()}
            ),
            "time_increment": "1",
        }
        return flatten_insights(await self._paginated_get(self._insights_url(), params))

    async def _fetch_hourly_rows(self, day: date) -> List[Mapping[str, Any]]:
        params = {
            "fields": INSIGHT_FIELDS,
            "level": "account",
            "time_range": json.dumps(
                {"since": day.isoformat(), "until": day.isoformat()}
            ),
            "breakdowns": HOURLY_BREAKDOWN,
        }
        return flatten_insights(await self._paginated_get(self._insights_url(), params))

    async def _identify(self) -> ConnectionInfo:
        await self._ensure_session()
        account = await self._get(
            f"{self.api_root}/{self.credentials.account_path}",
            {"fields": ACCOUNT_FIELDS},
        )
        if not isinstance(account, dict) or not account:
            raise MalformedResponse("No ad account data returned")
        return ConnectionInfo(
            platform=self.platform,
            connected=True,
            account_id=str(account.get("account_id") or self.credentials.ad_account_id),
            account_name=str(account.get("name") or "Unknown Account"),
            currency=str(account.get("currency") or ""),
            timezone=str(account.get("timezone_name") or ""),
        )

    async def _count_active_campaigns(self) -> int:
        params = {
            "fields": "id",
            "effective_status": json.dumps(["ACTIVE"]),
            "limit": "100",
        }
        campaigns = await self._paginated_get(
            f"{self.api_root}/{self.credentials.account_path}/campaigns", params
        )
        return len(campaigns)
