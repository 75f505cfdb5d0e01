"""
Tests for the upstream API client.
"""

import httpx
import pytest

from adsync.common.exceptions import (
    MalformedResponseError,
    UpstreamAuthError,
    UpstreamError,
    UpstreamRateLimitedError,
    UpstreamTimeoutError,
    UpstreamUnavailableError,
)
from adsync.upstream import BroadstreetClient


@pytest.mark.asyncio
async def test_fetch_sends_token_and_scope(upstream, broadstreet: BroadstreetClient) -> None:
    """Test the access token and scope become query parameters."""
    upstream.add("advertisers", [{"id": 10}], network_id=1)

    payload = await broadstreet.fetch("advertisers", network_id=1, advertiser_id=None)

    assert payload == [{"id": 10}]
    assert upstream.calls == [("advertisers", {"network_id": "1"})]
    assert upstream.tokens == ["test-token"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "status,error",
    [
        (401, UpstreamAuthError),
        (403, UpstreamAuthError),
        (429, UpstreamRateLimitedError),
        (500, UpstreamUnavailableError),
        (503, UpstreamUnavailableError),
    ],
)
async def test_status_mapping(
    upstream, broadstreet: BroadstreetClient, status: int, error: type
) -> None:
    """Test HTTP failures map onto the upstream error hierarchy."""
    upstream.add("networks", {"error": "nope"}, status=status)

    with pytest.raises(error) as exc_info:
        await broadstreet.fetch("networks")

    assert exc_info.value.status_code == status


@pytest.mark.asyncio
async def test_other_client_error(upstream, broadstreet: BroadstreetClient) -> None:
    """Test an unexpected 4xx is a plain upstream error."""
    upstream.add("networks", {"error": "bad request"}, status=400)

    with pytest.raises(UpstreamError) as exc_info:
        await broadstreet.fetch("networks")

    assert type(exc_info.value) is UpstreamError
    assert exc_info.value.details["status_code"] == 400


@pytest.mark.asyncio
async def test_timeout(upstream, broadstreet: BroadstreetClient) -> None:
    """Test a transport timeout."""
    upstream.fail("networks", lambda request: httpx.ReadTimeout("slow", request=request))

    with pytest.raises(UpstreamTimeoutError):
        await broadstreet.fetch("networks")


@pytest.mark.asyncio
async def test_connection_failure(upstream, broadstreet: BroadstreetClient) -> None:
    """Test an unreachable upstream."""
    upstream.fail("networks", lambda request: httpx.ConnectError("refused", request=request))

    with pytest.raises(UpstreamUnavailableError):
        await broadstreet.fetch("networks")


@pytest.mark.asyncio
async def test_non_json_body() -> None:
    """Test an undecodable body."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>maintenance</html>")

    client = BroadstreetClient("https://upstream.test/api/1", transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(UpstreamError):
            await client.fetch("networks")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_campaign_totals(upstream, broadstreet: BroadstreetClient) -> None:
    """Test the records summary call and its query."""
    upstream.add(
        "records",
        {"totals": {"views": 2000, "clicks": 50}},
        type="campaign",
        id=100,
        summary=1,
    )

    totals = await broadstreet.fetch_campaign_totals(100)

    assert totals == {"views": 2000, "clicks": 50}
    assert upstream.calls == [("records", {"type": "campaign", "id": "100", "summary": "1"})]


@pytest.mark.asyncio
async def test_campaign_totals_missing_is_empty(upstream, broadstreet: BroadstreetClient) -> None:
    """Test a summary without totals means nothing recorded yet."""
    upstream.add("records", {"totals": None}, type="campaign", id=100, summary=1)

    assert await broadstreet.fetch_campaign_totals(100) == {}


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [[], {"totals": [1, 2]}, "ok"])
async def test_campaign_totals_malformed(
    upstream, broadstreet: BroadstreetClient, payload
) -> None:
    """Test an unexpected summary body is an upstream error."""
    upstream.add("records", payload, type="campaign", id=100, summary=1)

    with pytest.raises(MalformedResponseError) as exc_info:
        await broadstreet.fetch_campaign_totals(100)

    assert isinstance(exc_info.value, UpstreamError)
    assert exc_info.value.details["campaign_id"] == 100
