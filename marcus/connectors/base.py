"""Marcus — Platform Adapter Base.

Each ad platform is wrapped by a ``PlatformAdapter``. Subclasses implement
the raw upstream calls; this base class owns the adapter boundary:

  retry transient failures → classify every failure → record health → raise
  only ``AdapterError`` subclasses

so the aggregator never sees a vendor exception or an untyped fault.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

import httpx

from marcus.analyzer.normalizer import RowSchema, group_by_hour, normalize
from marcus.core.backoff import RetryPolicy
from marcus.core.errors import (
    AdapterError,
    ErrorKind,
    MalformedResponse,
    UpstreamUnavailable,
)
from marcus.core.logging import get_logger
from marcus.models.credentials import AuthenticatedSession
from marcus.models.metrics import (
    AdapterHealth,
    CanonicalMetricSnapshot,
    ConnectionInfo,
    DateWindow,
    HourlySnapshot,
    Platform,
)

logger = get_logger("connectors.base")

T = TypeVar("T")


def retry_after_seconds(response: httpx.Response) -> Optional[float]:
    """Parse a numeric Retry-After header, if any."""
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


class PlatformAdapter(ABC):
    """Common boundary for every ad platform integration."""

    platform: Platform
    row_schema: RowSchema
    hour_key: str = "hour"

    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        timezone: str = "UTC",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.timezone = timezone
        self._sleep = sleep
        self._client = http_client
        self._owns_client = http_client is None
        self._session: Optional[AuthenticatedSession] = None
        self._health = AdapterHealth(platform=self.platform)

    # ── Health ──

    def get_health(self) -> AdapterHealth:
        """Snapshot copy of this adapter's connection state."""
        return self._health.model_copy(deep=True)

    def _record_success(self) -> None:
        self._health.connected = True
        self._health.last_error = None
        self._health.last_error_kind = None
        self._health.consecutive_failures = 0
        self._health.last_checked_at = datetime.now(timezone.utc)

    def _record_failure(self, error: AdapterError) -> None:
        self._health.connected = False
        self._health.last_error = str(error)
        self._health.last_error_kind = error.kind
        self._health.consecutive_failures += 1
        self._health.last_checked_at = datetime.now(timezone.utc)

    # ── Public capability set ──

    async def authenticate(self) -> AuthenticatedSession:
        """Obtain (or reuse) an authenticated session for this platform."""
        return await self._guarded("authenticate", self._ensure_session)

    async def fetch_snapshot(self, window: DateWindow) -> CanonicalMetricSnapshot:
        """Totals for ``window``, normalized into a canonical snapshot."""

        async def call() -> CanonicalMetricSnapshot:
            rows = await self._fetch_window_rows(window)
            return normalize(rows, window, self.platform, self.row_schema)

        return await self._guarded("fetch_snapshot", call)

    async def fetch_hourly_breakdown(
        self, day: date, timezone: Optional[str] = None
    ) -> List[HourlySnapshot]:
        """Exactly 24 hourly snapshots for ``day``; empty hours are zero.

        Both platforms bucket hours in the ad account's own reporting time
        zone and cannot re-bucket server side, so ``hour`` is always an account
        hour. ``timezone`` only labels the snapshot windows; rows are never
        shifted to it.
        """
        window = DateWindow.single_day(day, timezone or self.timezone)

        async def call() -> List[HourlySnapshot]:
            rows = await self._fetch_hourly_rows(day)
            buckets = group_by_hour(rows, self.hour_key)
            return [
                HourlySnapshot(
                    hour=hour,
                    snapshot=normalize(
                        buckets.get(hour, []), window, self.platform, self.row_schema
                    ),
                )
                for hour in range(24)
            ]

        return await self._guarded("fetch_hourly_breakdown", call)

    async def count_active_campaigns(self) -> int:
        """Campaigns currently enabled to serve in the account."""
        return await self._guarded("count_active_campaigns", self._count_active_campaigns)

    async def test_connection(self) -> ConnectionInfo:
        """Lightweight identity query used for health checks."""
        return await self._guarded("test_connection", self._identify)

    async def reconnect(self) -> ConnectionInfo:
        """Drop the cached session, reset health and query the platform again."""
        self._session = None
        self._health = AdapterHealth(platform=self.platform)
        logger.info("Reconnecting adapter", extra={"platform": self.platform.value})
        return await self.test_connection()

    async def aclose(self) -> None:
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()

    # ── Subclass hooks ──

    @abstractmethod
    async def _authenticate(self) -> AuthenticatedSession:
        """Validate credentials upstream and return a fresh session."""

    @abstractmethod
    async def _fetch_window_rows(self, window: DateWindow) -> List[Mapping[str, Any]]:
        """Raw rows for ``window`` in this adapter's ``row_schema``."""

    @abstractmethod
    async def _fetch_hourly_rows(self, day: date) -> List[Mapping[str, Any]]:
        """Raw rows for ``day`` carrying an hour under ``hour_key``."""

    @abstractmethod
    async def _identify(self) -> ConnectionInfo:
        """Identity query for ``test_connection``."""

    @abstractmethod
    async def _count_active_campaigns(self) -> int:
        """Count of enabled campaigns, straight from the platform."""

    # ── Boundary ──

    async def _ensure_session(self) -> AuthenticatedSession:
        if self._session is None or not self._session.is_valid():
            self._session = await self._authenticate()
        return self._session

    async def _guarded(self, operation: str, call: Callable[[], Awaitable[T]]) -> T:
        """Run ``call`` with bounded retries and typed failures."""
        platform = self.platform.value
        started = time.monotonic()
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await call()
            except asyncio.CancelledError:
                self._record_failure(
                    UpstreamUnavailable(f"{operation} cancelled", platform=platform)
                )
                raise
            except AdapterError as e:
                error = e
            except Exception as e:
                # Payload drift shows up as arbitrary errors deep in parsing code
                logger.exception(
                    f"Unexpected error in {operation}",
                    extra={"platform": platform, "operation": operation},
                )
                error = MalformedResponse(
                    f"{operation}: {type(e).__name__}: {e}", platform=platform
                )
                error.__cause__ = e
            else:
                self._record_success()
                logger.info(
                    f"{operation} succeeded",
                    extra={
                        "platform": platform,
                        "operation": operation,
                        "attempt": attempt,
                        "duration_ms": round((time.monotonic() - started) * 1000, 1),
                    },
                )
                return result

            error.platform = error.platform or platform
            error.attempts = attempt
            self._record_failure(error)
            if error.kind == ErrorKind.AUTH_EXPIRED:
                self._session = None

            if error.retryable and attempt < self.retry_policy.max_attempts:
                delay = self.retry_policy.delay_for(attempt, error.retry_after)
                logger.warning(
                    f"{operation} failed ({error}). Retrying in {delay:.2f}s "
                    f"(attempt {attempt}/{self.retry_policy.max_attempts})",
                    extra={
                        "platform": platform,
                        "operation": operation,
                        "attempt": attempt,
                        "delay_s": round(delay, 3),
                        "error_kind": error.kind.value,
                    },
                )
                await self._sleep(delay)
                continue

            logger.error(
                f"{operation} failed: {error}",
                extra={
                    "platform": platform,
                    "operation": operation,
                    "attempt": attempt,
                    "error_kind": error.kind.value,
                    "status_code": error.status_code,
                },
            )
            raise error

    # ── HTTP helpers ──

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """Issue a request; transport failures become ``UpstreamUnavailable``."""
        client = await self._get_client()
        try:
            return await client.request(
                method, url, params=params, data=data, json=json, headers=headers
            )
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise UpstreamUnavailable(f"Connection failed: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(
                f"Non-JSON response ({response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            ) from e
