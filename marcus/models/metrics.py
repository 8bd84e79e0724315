"""Marcus — Canonical Metric Models.

Every platform adapter produces ``CanonicalMetricSnapshot`` records, whatever
shape the upstream API reports in. Derived rates are computed properties of
the base totals and are never stored independently.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from marcus.core.errors import ErrorKind, InvalidArgument
from marcus.core.metric_registry import BASE_METRICS

ZERO = Decimal("0")
HUNDRED = Decimal("100")


class Platform(str, Enum):
    """Supported ad platforms."""

    GOOGLE_ADS = "google_ads"
    META_ADS = "meta_ads"


# ─────────────────────────────────────────────
# TIME WINDOWS
# ─────────────────────────────────────────────


class DateWindow(BaseModel):
    """Inclusive range of calendar days in a given timezone."""

    model_config = ConfigDict(frozen=True)

    start: date
    end: date
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {value!r}") from e
        return value

    @model_validator(mode="after")
    def _ordered(self) -> "DateWindow":
        if self.end < self.start:
            raise ValueError(f"window end {self.end} is before start {self.start}")
        return self

    @classmethod
    def single_day(cls, day: date, timezone: str = "UTC") -> "DateWindow":
        return cls(start=day, end=day, timezone=timezone)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def previous(self) -> "DateWindow":
        """The immediately preceding window of equal length."""
        prev_end = self.start - timedelta(days=1)
        prev_start = prev_end - timedelta(days=self.days - 1)
        return DateWindow(start=prev_start, end=prev_end, timezone=self.timezone)


PRESETS = ("today", "yesterday", "last_7d", "last_14d", "last_30d", "this_month")


def _parse_day(value: Optional[str]) -> Optional[date]:
    """Return the date if ``value`` is a valid YYYY-MM-DD string, else None."""
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def resolve_window(
    date_range: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    timezone: str = "UTC",
    today: Optional[date] = None,
) -> DateWindow:
    """Resolve preset or explicit date parameters into a ``DateWindow``.

    Explicit start/end dates win over a preset. Unknown presets raise
    ``InvalidArgument``; with nothing given the live "today" window is used.
    """
    try:
        tz = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidArgument(f"unknown timezone {timezone!r}") from e
    today = today or datetime.now(tz).date()

    start = _parse_day(start_date)
    end = _parse_day(end_date)
    if start and end:
        if end < start:
            raise InvalidArgument(f"end_date {end} is before start_date {start}")
        return DateWindow(start=start, end=end, timezone=timezone)

    mapping = {
        "today": (today, today),
        "yesterday": (today - timedelta(days=1), today - timedelta(days=1)),
        "last_7d": (today - timedelta(days=7), today - timedelta(days=1)),
        "last_14d": (today - timedelta(days=14), today - timedelta(days=1)),
        "last_30d": (today - timedelta(days=30), today - timedelta(days=1)),
        "this_month": (today.replace(day=1), today),
    }
    preset = date_range or "today"
    if preset not in PRESETS:
        raise InvalidArgument(
            f"unknown date_range {preset!r}; expected one of {list(PRESETS)}"
        )
    s, e = mapping[preset]
    return DateWindow(start=s, end=e, timezone=timezone)


# ─────────────────────────────────────────────
# SNAPSHOTS
# ─────────────────────────────────────────────


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    return numerator / denominator if denominator > 0 else ZERO


class CanonicalMetricSnapshot(BaseModel):
    """Totals for one platform over one window."""

    model_config = ConfigDict(frozen=True)

    platform: Platform
    window: DateWindow
    impressions: int = Field(default=0, ge=0)
    clicks: int = Field(default=0, ge=0)
    spend: Decimal = Field(default=ZERO, ge=0)
    conversions: Decimal = Field(default=ZERO, ge=0)
    revenue: Decimal = Field(default=ZERO, ge=0)

    @classmethod
    def zero(cls, platform: Platform, window: DateWindow) -> "CanonicalMetricSnapshot":
        return cls(platform=platform, window=window)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ctr(self) -> Decimal:
        """Click-through rate in percent."""
        return _ratio(Decimal(self.clicks), Decimal(self.impressions)) * HUNDRED

    @computed_field  # type: ignore[prop-decorator]
    @property
    def avg_cpc(self) -> Decimal:
        return _ratio(self.spend, Decimal(self.clicks))

    @computed_field  # type: ignore[prop-decorator]
    @property
    def conversion_rate(self) -> Decimal:
        """Conversions per click in percent."""
        return _ratio(self.conversions, Decimal(self.clicks)) * HUNDRED

    @computed_field  # type: ignore[prop-decorator]
    @property
    def roas(self) -> Decimal:
        return _ratio(self.revenue, self.spend)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cost_per_conversion(self) -> Decimal:
        return _ratio(self.spend, self.conversions)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def revenue_per_impression(self) -> Decimal:
        return _ratio(self.revenue, Decimal(self.impressions))

    def as_row(self) -> Dict[str, object]:
        """The base totals as one native-currency row (see ``NATIVE_ROW``)."""
        return {name: getattr(self, name) for name in BASE_METRICS}


class HourlySnapshot(BaseModel):
    """Totals for a single hour of a day."""

    model_config = ConfigDict(frozen=True)

    hour: int = Field(ge=0, le=23)
    snapshot: CanonicalMetricSnapshot


class ComparisonResult(BaseModel):
    """Percent change per numeric field between two snapshots.

    A value of exactly 100 for a field listed in ``new_growth_fields`` is the
    growth-from-nothing sentinel (baseline 0, current > 0), not a measured
    percentage.
    """

    model_config = ConfigDict(frozen=True)

    platform: Platform
    current: CanonicalMetricSnapshot
    baseline: CanonicalMetricSnapshot
    changes: Dict[str, float]
    new_growth_fields: List[str] = []


# ─────────────────────────────────────────────
# HEALTH & REPORTS
# ─────────────────────────────────────────────


class AdapterHealth(BaseModel):
    """Connection state of one adapter. Mutated only by its owning adapter."""

    platform: Platform
    connected: bool = False
    last_error: Optional[str] = None
    last_error_kind: Optional[ErrorKind] = None
    last_checked_at: Optional[datetime] = None
    consecutive_failures: int = 0


class ConnectionInfo(BaseModel):
    """Result of a lightweight identity query against a platform."""

    platform: Platform
    connected: bool
    account_id: str = ""
    account_name: str = ""
    currency: str = ""
    timezone: str = ""


class ErrorInfo(BaseModel):
    kind: ErrorKind
    message: str


class Alert(BaseModel):
    """A derived metric past its threshold on enough volume to matter."""

    metric: str
    severity: str = "warning"  # "warning" | "error"
    value: Decimal
    threshold: Decimal
    message: str


class PlatformReport(BaseModel):
    """One platform's entry in an aggregated report.

    ``snapshot`` is None when the platform failed entirely; ``comparison`` is
    None when the baseline window could not be fetched; ``active_campaigns``
    is None when the campaign count could not be fetched.
    """

    platform: Platform
    snapshot: Optional[CanonicalMetricSnapshot] = None
    comparison: Optional[ComparisonResult] = None
    health: AdapterHealth
    error: Optional[ErrorInfo] = None
    alerts: List[Alert] = []
    active_campaigns: Optional[int] = None


class AggregatedReport(BaseModel):
    """Unified, comparison-annotated report across platforms."""

    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    window: DateWindow
    baseline_window: DateWindow
    platforms: Dict[Platform, PlatformReport] = {}

    @property
    def succeeded(self) -> List[Platform]:
        return [p for p, entry in self.platforms.items() if entry.snapshot is not None]

    @property
    def failed(self) -> List[Platform]:
        return [p for p, entry in self.platforms.items() if entry.snapshot is None]
