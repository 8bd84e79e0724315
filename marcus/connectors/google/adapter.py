"""Marcus — Google Ads Adapter.

OAuth2 refresh-token grant for access tokens, GAQL over the REST
``googleAds:search`` endpoint for reporting.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional

import httpx

from marcus.analyzer.normalizer import GOOGLE_ADS_ROW
from marcus.connectors.base import PlatformAdapter, retry_after_seconds
from marcus.connectors.google import queries
from marcus.connectors.google.transformer import extract_customer, flatten_rows
from marcus.core.errors import (
    AdapterError,
    AuthExpired,
    MalformedResponse,
    MissingCredentials,
    RateLimited,
    UpstreamUnavailable,
)
from marcus.core.logging import get_logger
from marcus.models.credentials import AuthenticatedSession, GoogleAdsCredentials
from marcus.models.metrics import ConnectionInfo, DateWindow, Platform

logger = get_logger("google.adapter")

DEFAULT_API_BASE = "https://googleads.googleapis.com"
DEFAULT_API_VERSION = "v17"
DEFAULT_TOKEN_URL = "https://oauth2.googleapis.com/token"
MAX_PAGES = 50


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    if isinstance(body, list) and body:
        # searchStream wraps errors in a single-element array
        body = body[0]
    return body if isinstance(body, dict) else {}


class GoogleAdsAdapter(PlatformAdapter):
    """Google Ads reporting via REST + OAuth2 refresh token."""

    platform = Platform.GOOGLE_ADS
    row_schema = GOOGLE_ADS_ROW

    def __init__(
        self,
        credentials: GoogleAdsCredentials,
        api_base: str = DEFAULT_API_BASE,
        api_version: str = DEFAULT_API_VERSION,
        token_url: str = DEFAULT_TOKEN_URL,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.credentials = credentials
        self.api_root = f"{api_base.rstrip('/')}/{api_version}"
        self.token_url = token_url

    # ── Auth ──

    async def _authenticate(self) -> AuthenticatedSession:
        missing = self.credentials.missing_fields()
        if missing:
            raise MissingCredentials(
                f"Missing Google Ads credentials: {', '.join(missing)}"
            )

        resp = await self._send(
            "POST",
            self.token_url,
            data={
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "refresh_token": self.credentials.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        if resp.status_code >= 400:
            raise self._token_error(resp)

        body = self._json(resp)
        token = body.get("access_token") if isinstance(body, dict) else None
        if not token:
            raise MalformedResponse(
                "Token endpoint returned no access_token", status_code=resp.status_code
            )
        expires_in = body.get("expires_in")
        expires_at = None
        if isinstance(expires_in, (int, float)) and expires_in > 0:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)
        logger.info("Google Ads access token refreshed", extra={"platform": "google_ads"})
        return AuthenticatedSession(access_token=token, expires_at=expires_at)

    @staticmethod
    def _token_error(resp: httpx.Response) -> AdapterError:
        body = _error_body(resp)
        code = body.get("error") if isinstance(body.get("error"), str) else ""
        description = body.get("error_description") or resp.text[:200]
        message = f"Token refresh failed ({resp.status_code} {code}): {description}"
        if resp.status_code == 429:
            return RateLimited(
                message, status_code=429, retry_after=retry_after_seconds(resp)
            )
        if resp.status_code >= 500:
            return UpstreamUnavailable(message, status_code=resp.status_code)
        # invalid_grant: refresh token expired or revoked; invalid_client: bad id/secret
        return AuthExpired(message, status_code=resp.status_code)

    def _headers(self, session: AuthenticatedSession) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {session.access_token}",
            "developer-token": self.credentials.developer_token,
            "Content-Type": "application/json",
        }
        login_id = (self.credentials.login_customer_id or "").replace("-", "").strip()
        if login_id:
            headers["login-customer-id"] = login_id
        return headers

    # ── GAQL ──

    @staticmethod
    def _api_error(resp: httpx.Response) -> AdapterError:
        error = _error_body(resp).get("error") or {}
        if not isinstance(error, dict):
            error = {}
        status = str(error.get("status") or "")
        message = (
            f"Google Ads API error {resp.status_code} {status}: "
            f"{error.get('message') or resp.text[:200]}"
        )
        request_id = resp.headers.get("request-id")
        if request_id:
            message += f" (request_id={request_id})"

        if resp.status_code == 429 or status == "RESOURCE_EXHAUSTED":
            return RateLimited(
                message,
                status_code=resp.status_code,
                retry_after=retry_after_seconds(resp),
            )
        if resp.status_code in (401, 403) or status in (
            "UNAUTHENTICATED",
            "PERMISSION_DENIED",
        ):
            return AuthExpired(message, status_code=resp.status_code)
        if resp.status_code >= 500:
            return UpstreamUnavailable(message, status_code=resp.status_code)
        return MalformedResponse(message, status_code=resp.status_code)

    async def _search(self, query: str) -> List[Dict[str, Any]]:
        """Run a GAQL query, following ``nextPageToken`` pages."""
        session = await self._ensure_session()
        customer_id = self.credentials.normalized_customer_id
        url = f"{self.api_root}/customers/{customer_id}/googleAds:search"

        results: List[Dict[str, Any]] = []
        payload: Dict[str, Any] = {"query": query}
        for _ in range(MAX_PAGES):
            resp = await self._send("POST", url, json=payload, headers=self._headers(session))
            if resp.status_code >= 400:
                raise self._api_error(resp)

            body = self._json(resp)
            if not isinstance(body, dict):
                raise MalformedResponse(
                    f"Expected an object from googleAds:search, got {type(body).__name__}"
                )
            page = body.get("results") or []
            if not isinstance(page, list):
                raise MalformedResponse("googleAds:search 'results' is not a list")
            results.extend(page)

            next_token = body.get("nextPageToken")
            if not next_token:
                break
            payload = {"query": query, "pageToken": next_token}

        logger.debug(
            f"GAQL returned {len(results)} rows", extra={"platform": "google_ads"}
        )
        return results

    # ── Hooks ──

    async def _fetch_window_rows(self, window: DateWindow) -> List[Mapping[str, Any]]:
        return flatten_rows(await self._search(queries.window_query(window)))

    async def _fetch_hourly_rows(self, day: date) -> List[Mapping[str, Any]]:
        return flatten_rows(await self._search(queries.hourly_query(day)))

    async def _identify(self) -> ConnectionInfo:
        rows = await self._search(queries.IDENTITY_QUERY)
        customer = extract_customer(rows[0]) if rows else {}
        if not customer:
            raise MalformedResponse("No customer data returned")
        return ConnectionInfo(
            platform=self.platform,
            connected=True,
            account_id=customer["id"] or self.credentials.normalized_customer_id,
            account_name=customer["name"] or "Unknown Account",
            currency=customer["currency"],
            timezone=customer["timezone"],
        )

    async def _count_active_campaigns(self) -> int:
        return len(await self._search(queries.ACTIVE_CAMPAIGNS_QUERY))

    def diagnostic_info(self) -> Dict[str, Optional[object]]:
        """Which credential pieces are present, without revealing them."""
        health = self.get_health()
        return {
            "has_client_credentials": bool(
                self.credentials.client_id and self.credentials.client_secret
            ),
            "has_developer_token": bool(self.credentials.developer_token),
            "has_refresh_token": bool(self.credentials.refresh_token),
            "has_customer_id": bool(self.credentials.customer_id),
            "last_error": health.last_error,
            "last_checked_at": health.last_checked_at,
        }
