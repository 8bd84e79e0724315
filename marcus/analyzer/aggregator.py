"""Marcus — Report Aggregator.

Runs the full data flow for every requested platform, concurrently:

  fetch_snapshot(window) → alerts → fetch_snapshot(baseline) → compare
  → count_active_campaigns

and merges the results into one ``AggregatedReport``. A platform that fails
is kept in the report with its error and health; a failed baseline or
campaign count only leaves that part empty; only caller contract
violations (``InvalidArgument``) fail the whole call. No retries happen at
this layer.
"""

import asyncio
import time
from typing import Dict, Iterable, List, Mapping, Optional, Union

from marcus.analyzer.alerts import evaluate_alerts
from marcus.analyzer.comparator import compare
from marcus.connectors.base import PlatformAdapter
from marcus.core.errors import AdapterError, ErrorKind, InvalidArgument
from marcus.core.logging import get_logger
from marcus.models.metrics import (
    AdapterHealth,
    AggregatedReport,
    DateWindow,
    ErrorInfo,
    Platform,
    PlatformReport,
)

logger = get_logger("analyzer.aggregator")

PlatformLike = Union[Platform, str]


class Aggregator:
    """Best-effort, single-pass aggregation over injected adapters."""

    def __init__(self, adapters: Mapping[Platform, PlatformAdapter]):
        self._adapters: Dict[Platform, PlatformAdapter] = dict(adapters)

    @property
    def platforms(self) -> List[Platform]:
        return list(self._adapters)

    def health(self) -> Dict[Platform, AdapterHealth]:
        """Current health of every registered adapter."""
        return {p: a.get_health() for p, a in self._adapters.items()}

    # ── Validation ──

    def _resolve_platform(self, value: PlatformLike) -> Platform:
        try:
            platform = Platform(value)
        except ValueError:
            raise InvalidArgument(f"unknown platform {value!r}") from None
        if platform not in self._adapters:
            raise InvalidArgument(f"platform {platform.value} is not configured")
        return platform

    def _validate(
        self,
        platforms: Iterable[PlatformLike],
        window: DateWindow,
        timeout: Optional[float],
    ) -> List[Platform]:
        if not isinstance(window, DateWindow):
            raise InvalidArgument(f"window must be a DateWindow, got {type(window).__name__}")
        if timeout is not None and timeout <= 0:
            raise InvalidArgument(f"timeout must be positive, got {timeout}")
        if isinstance(platforms, (str, Platform)):
            platforms = [platforms]
        selected: List[Platform] = []
        for value in platforms or ():
            platform = self._resolve_platform(value)
            if platform not in selected:
                selected.append(platform)
        if not selected:
            raise InvalidArgument("at least one platform is required")
        return selected

    # ── Per-platform flow ──

    async def _collect(
        self,
        platform: Platform,
        window: DateWindow,
        baseline_window: DateWindow,
        partial: Dict[Platform, PlatformReport],
    ) -> PlatformReport:
        adapter = self._adapters[platform]
        try:
            snapshot = await adapter.fetch_snapshot(window)
        except AdapterError as e:
            return PlatformReport(
                platform=platform,
                health=adapter.get_health(),
                error=ErrorInfo(kind=e.kind, message=e.message),
            )
        entry = PlatformReport(
            platform=platform,
            snapshot=snapshot,
            health=adapter.get_health(),
            alerts=evaluate_alerts(snapshot),
        )
        # Filled in place; build_report reads it if the timeout cuts us off
        partial[platform] = entry

        try:
            baseline = await adapter.fetch_snapshot(baseline_window)
        except AdapterError as e:
            logger.warning(
                f"Baseline unavailable, report entry has no comparison: {e}",
                extra={"platform": platform.value, "error_kind": e.kind.value},
            )
        else:
            entry.comparison = compare(snapshot, baseline)

        try:
            entry.active_campaigns = await adapter.count_active_campaigns()
        except AdapterError as e:
            logger.warning(
                f"Active campaign count unavailable: {e}",
                extra={"platform": platform.value, "error_kind": e.kind.value},
            )

        entry.health = adapter.get_health()
        return entry

    # ── Entry point ──

    async def build_report(
        self,
        platforms: Iterable[PlatformLike],
        window: DateWindow,
        timeout: Optional[float] = None,
    ) -> AggregatedReport:
        """Build a fresh report for ``platforms`` over ``window``.

        Waits for every platform to settle. With a ``timeout``, platforms still
        running are cancelled and reported as ``upstream_unavailable``; one
        whose current snapshot already arrived keeps it and whatever else was
        fetched before the cut-off.
        """
        selected = self._validate(platforms, window, timeout)
        baseline_window = window.previous()
        started = time.monotonic()
        partial: Dict[Platform, PlatformReport] = {}

        tasks = {
            platform: asyncio.create_task(
                self._collect(platform, window, baseline_window, partial),
                name=f"collect:{platform.value}",
            )
            for platform in selected
        }
        try:
            _done, pending = await asyncio.wait(tasks.values(), timeout=timeout)
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        entries: Dict[Platform, PlatformReport] = {}
        contract_error: Optional[BaseException] = None
        for platform, task in tasks.items():
            if task in pending:
                logger.warning(
                    f"Platform timed out after {timeout}s",
                    extra={
                        "platform": platform.value,
                        "error_kind": ErrorKind.UPSTREAM_UNAVAILABLE.value,
                    },
                )
                entry = partial.get(platform) or PlatformReport(
                    platform=platform,
                    health=self._adapters[platform].get_health(),
                )
                entry.health = self._adapters[platform].get_health()
                entry.error = ErrorInfo(
                    kind=ErrorKind.UPSTREAM_UNAVAILABLE,
                    message=f"timed out after {timeout}s",
                )
                entries[platform] = entry
                continue
            exc = task.exception()
            if exc is not None:
                contract_error = contract_error or exc
                continue
            entries[platform] = task.result()

        if contract_error is not None:
            raise contract_error

        report = AggregatedReport(
            window=window,
            baseline_window=baseline_window,
            platforms=entries,
        )
        logger.info(
            f"Report built: {len(report.succeeded)} ok, {len(report.failed)} failed",
            extra={"duration_ms": round((time.monotonic() - started) * 1000, 1)},
        )
        return report
