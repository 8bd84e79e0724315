import asyncio

from marcus.core.errors import InvalidArgument
from marcus.database import Database
from marcus.models.metrics import AggregatedReport, Platform
from marcus.scheduler.jobs import ReportRefresher
from marcus.storage.report_store import ReportStore


class StubAggregator:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def build_report(self, platforms, window, timeout=None):
        self.calls.append((platforms, window, timeout))
        if self.error:
            raise self.error
        return AggregatedReport(window=window, baseline_window=window.previous())


def _store():
    database = Database("sqlite://")
    database.init_schema()
    return ReportStore(database)


def test_refresh_stores_and_notifies_listeners():
    store = _store()
    aggregator = StubAggregator()
    refresher = ReportRefresher(
        aggregator, store, [Platform.GOOGLE_ADS], timezone="Asia/Kolkata", timeout=10
    )
    received = []

    def broken_listener(report):
        raise RuntimeError("socket closed")

    async def async_listener(report):
        received.append(("async", report))

    refresher.add_listener(broken_listener)
    refresher.add_listener(received.append)
    refresher.add_listener(async_listener)

    report = asyncio.run(refresher.refresh())

    platforms, window, timeout = aggregator.calls[0]
    assert platforms == [Platform.GOOGLE_ADS]
    assert window.days == 1
    assert window.timezone == "Asia/Kolkata"
    assert timeout == 10
    assert received == [report, ("async", report)]
    assert store.latest().window == report.window


def test_refresh_failure_returns_none():
    store = _store()
    refresher = ReportRefresher(
        StubAggregator(error=InvalidArgument("no platforms")), store, []
    )
    assert asyncio.run(refresher.refresh()) is None
    assert store.latest() is None


def test_stop_without_start_is_a_no_op():
    refresher = ReportRefresher(StubAggregator(), None, [Platform.META_ADS])
    refresher.stop()
    assert refresher.scheduler.running is False


def test_storage_failure_still_broadcasts():
    # No schema: every insert fails
    store = ReportStore(Database("sqlite://"))
    refresher = ReportRefresher(StubAggregator(), store, [Platform.GOOGLE_ADS])
    received = []
    refresher.add_listener(received.append)

    report = asyncio.run(refresher.refresh())

    assert report is not None
    assert received == [report]
