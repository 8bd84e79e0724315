import asyncio
import json
from datetime import date

import httpx
import pytest

from marcus.connectors.google.adapter import GoogleAdsAdapter
from marcus.core.backoff import RetryPolicy
from marcus.core.errors import (
    AuthExpired,
    ErrorKind,
    MalformedResponse,
    MissingCredentials,
    RateLimited,
    UpstreamUnavailable,
)
from marcus.models.credentials import GoogleAdsCredentials
from marcus.models.metrics import DateWindow

TOKEN_URL = "https://oauth.test/token"
API_BASE = "https://ads.test"
SEARCH_PATH = "/v17/customers/1234567890/googleAds:search"

CREDS = GoogleAdsCredentials(
    client_id="cid",
    client_secret="secret",
    developer_token="dev-token",
    refresh_token="refresh",
    customer_id="123-456-7890",
)

WINDOW = DateWindow.single_day(date(2024, 5, 1))


def _metrics_row(impressions="1000", clicks="50", cost="25000000", hour=None):
    row = {
        "metrics": {
            "impressions": impressions,
            "clicks": clicks,
            "costMicros": cost,
            "conversions": 5.0,
            "conversionsValue": 500.0,
        }
    }
    if hour is not None:
        row["segments"] = {"hour": hour, "date": "2024-05-01"}
    return row


def _token_ok(request):
    return httpx.Response(200, json={"access_token": "ya29.token", "expires_in": 3599})


class Upstream:
    """Scripted fake of the OAuth and googleAds:search endpoints."""

    def __init__(self, search_responses, token=_token_ok):
        self.search_responses = list(search_responses)
        self.token = token
        self.token_calls = 0
        self.search_calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == TOKEN_URL:
            self.token_calls += 1
            return self.token(request)
        assert request.url.path == SEARCH_PATH
        self.search_calls.append(request)
        response = self.search_responses.pop(0)
        return response(request) if callable(response) else response


async def _no_sleep(_delay):
    return None


def _adapter(upstream, credentials=CREDS, attempts=3):
    return GoogleAdsAdapter(
        credentials,
        api_base=API_BASE,
        token_url=TOKEN_URL,
        retry_policy=RetryPolicy(max_attempts=attempts, jitter_pct=0.0),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(upstream)),
        sleep=_no_sleep,
    )


def test_fetch_snapshot_normalizes_rest_rows():
    upstream = Upstream([httpx.Response(200, json={"results": [_metrics_row()]})])
    adapter = _adapter(upstream)

    snap = asyncio.run(adapter.fetch_snapshot(WINDOW))

    assert snap.spend == 25
    assert snap.ctr == 5
    assert snap.roas == 20
    request = upstream.search_calls[0]
    assert request.headers["authorization"] == "Bearer ya29.token"
    assert request.headers["developer-token"] == "dev-token"
    query = json.loads(request.content)["query"]
    assert "BETWEEN '2024-05-01' AND '2024-05-01'" in query
    health = adapter.get_health()
    assert health.connected is True
    assert health.last_error is None


def test_search_follows_page_tokens():
    upstream = Upstream(
        [
            httpx.Response(200, json={"results": [_metrics_row()], "nextPageToken": "p2"}),
            httpx.Response(200, json={"results": [_metrics_row()]}),
        ]
    )
    snap = asyncio.run(_adapter(upstream).fetch_snapshot(WINDOW))
    assert snap.impressions == 2000
    assert json.loads(upstream.search_calls[1].content)["pageToken"] == "p2"


def test_access_token_is_reused():
    upstream = Upstream(
        [
            httpx.Response(200, json={"results": []}),
            httpx.Response(200, json={"results": []}),
        ]
    )
    adapter = _adapter(upstream)

    async def run():
        await adapter.fetch_snapshot(WINDOW)
        await adapter.fetch_snapshot(WINDOW.previous())

    asyncio.run(run())
    assert upstream.token_calls == 1


def test_hourly_breakdown_fills_all_24_hours():
    upstream = Upstream(
        [
            httpx.Response(
                200,
                json={"results": [_metrics_row(hour=9), _metrics_row(hour=13)]},
            )
        ]
    )
    hours = asyncio.run(_adapter(upstream).fetch_hourly_breakdown(date(2024, 5, 1)))

    assert [h.hour for h in hours] == list(range(24))
    assert hours[9].snapshot.impressions == 1000
    assert hours[13].snapshot.spend == 25
    assert hours[0].snapshot.impressions == 0
    assert "segments.hour" in json.loads(upstream.search_calls[0].content)["query"]


def test_missing_credentials_never_calls_upstream():
    upstream = Upstream([])
    adapter = _adapter(upstream, credentials=GoogleAdsCredentials(client_id="cid"))

    with pytest.raises(MissingCredentials):
        asyncio.run(adapter.fetch_snapshot(WINDOW))

    assert upstream.token_calls == 0
    health = adapter.get_health()
    assert health.connected is False
    assert health.last_error_kind == ErrorKind.MISSING_CREDENTIALS


def test_revoked_refresh_token_is_auth_expired_and_not_retried():
    def invalid_grant(request):
        return httpx.Response(
            400, json={"error": "invalid_grant", "error_description": "Token has been expired or revoked."}
        )

    upstream = Upstream([], token=invalid_grant)
    adapter = _adapter(upstream)

    with pytest.raises(AuthExpired) as exc_info:
        asyncio.run(adapter.fetch_snapshot(WINDOW))

    assert exc_info.value.attempts == 1
    assert upstream.token_calls == 1
    assert "invalid_grant" in adapter.get_health().last_error


def test_transient_failure_is_retried_then_succeeds():
    upstream = Upstream(
        [
            httpx.Response(503, json={"error": {"status": "UNAVAILABLE", "message": "busy"}}),
            httpx.Response(200, json={"results": [_metrics_row()]}),
        ]
    )
    adapter = _adapter(upstream)

    snap = asyncio.run(adapter.fetch_snapshot(WINDOW))

    assert snap.impressions == 1000
    assert len(upstream.search_calls) == 2
    health = adapter.get_health()
    assert health.connected is True
    assert health.consecutive_failures == 0


def test_rate_limit_exhausts_retries():
    slept = []

    async def record_sleep(delay):
        slept.append(delay)

    upstream = Upstream(
        [
            httpx.Response(
                429,
                headers={"Retry-After": "2"},
                json={"error": {"status": "RESOURCE_EXHAUSTED", "message": "quota"}},
            )
            for _ in range(3)
        ]
    )
    adapter = _adapter(upstream)
    adapter._sleep = record_sleep

    with pytest.raises(RateLimited) as exc_info:
        asyncio.run(adapter.fetch_snapshot(WINDOW))

    assert exc_info.value.attempts == 3
    assert slept == [2.0, 2.0]
    assert adapter.get_health().consecutive_failures == 3


def test_network_errors_become_upstream_unavailable():
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    upstream = Upstream([boom])
    with pytest.raises(UpstreamUnavailable):
        asyncio.run(_adapter(upstream, attempts=1).fetch_snapshot(WINDOW))


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>oops</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
        httpx.Response(200, json={"results": {"unexpected": True}}),
    ],
)
def test_malformed_payloads(response):
    upstream = Upstream([response])
    adapter = _adapter(upstream)
    with pytest.raises(MalformedResponse):
        asyncio.run(adapter.fetch_snapshot(WINDOW))
    assert len(upstream.search_calls) == 1


def test_permission_denied_maps_to_auth_expired():
    upstream = Upstream(
        [httpx.Response(403, json={"error": {"status": "PERMISSION_DENIED", "message": "no access"}})]
    )
    with pytest.raises(AuthExpired):
        asyncio.run(_adapter(upstream).fetch_snapshot(WINDOW))


def test_test_connection_reports_account():
    customer = {
        "customer": {
            "id": "1234567890",
            "descriptiveName": "Acme Store",
            "currencyCode": "INR",
            "timeZone": "Asia/Kolkata",
        }
    }
    upstream = Upstream([httpx.Response(200, json={"results": [customer]})])

    info = asyncio.run(_adapter(upstream).test_connection())

    assert info.connected is True
    assert info.account_name == "Acme Store"
    assert info.currency == "INR"
    assert info.timezone == "Asia/Kolkata"


def test_test_connection_without_customer_is_malformed():
    upstream = Upstream([httpx.Response(200, json={"results": []})])
    with pytest.raises(MalformedResponse):
        asyncio.run(_adapter(upstream).test_connection())


def test_reconnect_resets_health():
    upstream = Upstream(
        [
            httpx.Response(500, json={}),
            httpx.Response(200, json={"results": [{"customer": {"id": "1234567890"}}]}),
        ]
    )
    adapter = _adapter(upstream, attempts=1)

    async def run():
        with pytest.raises(UpstreamUnavailable):
            await adapter.test_connection()
        assert adapter.get_health().consecutive_failures == 1
        return await adapter.reconnect()

    info = asyncio.run(run())
    assert info.account_name == "Unknown Account"
    assert adapter.get_health().consecutive_failures == 0
    assert upstream.token_calls == 2


def test_diagnostic_info_hides_secrets():
    info = _adapter(Upstream([])).diagnostic_info()
    assert info["has_refresh_token"] is True
    assert info["has_developer_token"] is True
    assert not {"secret", "dev-token", "refresh"} & set(map(str, info.values()))


def test_count_active_campaigns_counts_enabled_rows_across_pages():
    upstream = Upstream(
        [
            httpx.Response(
                200,
                json={
                    "results": [{"campaign": {"id": "1"}}, {"campaign": {"id": "2"}}],
                    "nextPageToken": "p2",
                },
            ),
            httpx.Response(200, json={"results": [{"campaign": {"id": "3"}}]}),
        ]
    )

    count = asyncio.run(_adapter(upstream).count_active_campaigns())

    assert count == 3
    query = json.loads(upstream.search_calls[0].content)["query"]
    assert "FROM campaign" in query
    assert "campaign.status = 'ENABLED'" in query
