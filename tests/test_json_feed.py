"""Tests for the JSON promotions feed source."""

import httpx
import pytest

from superodds.feeds.json_feed import JsonFeedSource
from superodds.models.schemas import StartupError
from superodds.utils.helpers import generate_odd_id

FEED_URL = "https://br4bet.example.com/api/promotions"


def make_source(handler, max_retries: int = 3) -> JsonFeedSource:
    source = JsonFeedSource(
        key="br4bet",
        name="Br4bet",
        feed_url=FEED_URL,
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )
    source.RETRY_DELAYS = [0.0]
    return source


def respond(body=None, status: int = 200, calls: list = None):
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status, json=body)

    return handler


LISTING = {
    "game": "Flamengo x Palmeiras",
    "league": "Brasileirão",
    "homeTeam": "Flamengo",
    "awayTeam": "Palmeiras",
    "oddValue": "3,50",
    "minBet": "R$ 5,00",
    "maxBet": 100,
    "freebet": 0,
    "promotionType": "Super Odd",
    "url": "https://br4bet.example.com/promo/1",
}


class TestJsonFeedSource:
    """Tests for JsonFeedSource class."""

    @pytest.mark.asyncio
    async def test_maps_listing_to_super_odd(self):
        source = make_source(respond([LISTING]))
        await source.initialize()

        result = await source.scrape_odds()

        assert result.success
        assert len(result.odds) == 1
        odd = result.odds[0]
        assert odd.id == generate_odd_id("Flamengo", "Palmeiras", 3.5, "Super Odd")
        assert odd.odd_value == 3.5
        assert odd.min_bet == 5.0
        assert odd.max_bet == 100.0
        assert odd.league == "Brasileirão"
        assert odd.url == "https://br4bet.example.com/promo/1"
        assert odd.source is None
        await source.close()

    @pytest.mark.asyncio
    async def test_wrapped_list_and_teams_from_title(self):
        listing = {"title": "Santos vs Corinthians", "odd_value": 2.2, "promotion_type": "Boost"}
        source = make_source(respond({"promotions": [listing]}))
        await source.initialize()

        result = await source.scrape_odds()

        odd = result.odds[0]
        assert (odd.home_team, odd.away_team) == ("Santos", "Corinthians")
        # Falls back to the feed URL when a listing has none
        assert odd.url == FEED_URL
        await source.close()

    @pytest.mark.asyncio
    async def test_invalid_listings_are_dropped(self):
        listings = [
            LISTING,
            {**LISTING, "oddValue": "1,00"},
            {"league": "no teams", "oddValue": 2.0},
            "not an object",
        ]
        source = make_source(respond(listings))
        await source.initialize()

        result = await source.scrape_odds()

        assert result.success
        assert len(result.odds) == 1
        await source.close()

    @pytest.mark.asyncio
    async def test_fingerprint_is_stable_across_scrapes(self):
        source = make_source(respond([LISTING]))
        await source.initialize()

        first = await source.scrape_odds()
        second = await source.scrape_odds()

        assert first.odds[0].id == second.odds[0].id
        await source.close()

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(502)
            return httpx.Response(200, json=[LISTING])

        source = make_source(handler)
        await source.initialize()

        result = await source.scrape_odds()

        assert result.success
        assert len(calls) == 2
        await source.close()

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        calls = []
        source = make_source(respond(status=500, calls=calls), max_retries=3)
        await source.initialize()

        result = await source.scrape_odds()

        assert not result.success
        assert "3 attempts" in result.error
        assert len(calls) == 3
        assert source.health.failure_count == 1
        await source.close()

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        calls = []
        source = make_source(respond(status=404, calls=calls))
        await source.initialize()

        result = await source.scrape_odds()

        assert not result.success
        assert result.error == "HTTP 404 from feed"
        assert len(calls) == 1
        await source.close()

    @pytest.mark.asyncio
    async def test_transport_error_becomes_failed_result(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        source = make_source(handler, max_retries=2)
        await source.initialize()

        result = await source.scrape_odds()

        assert not result.success
        assert "ConnectTimeout" in result.error
        await source.close()

    @pytest.mark.asyncio
    async def test_non_json_body(self):
        source = make_source(lambda request: httpx.Response(200, text="<html>maintenance</html>"))
        await source.initialize()

        result = await source.scrape_odds()

        assert not result.success
        assert result.error == "feed did not return valid JSON"
        await source.close()

    @pytest.mark.asyncio
    async def test_unrecognised_body(self):
        source = make_source(respond({"status": "ok"}))
        await source.initialize()

        result = await source.scrape_odds()

        assert not result.success
        await source.close()

    @pytest.mark.asyncio
    async def test_initialize_rejects_bad_url(self):
        source = JsonFeedSource(key="x", feed_url="file:///etc/passwd")
        with pytest.raises(StartupError):
            await source.initialize()

    @pytest.mark.asyncio
    async def test_metrics_after_scrape(self):
        source = make_source(respond([LISTING]))
        await source.initialize()
        await source.scrape_odds()

        metrics = source.get_metrics()

        assert metrics["key"] == "br4bet"
        assert metrics["initialized"] is True
        assert metrics["scrape_count"] == 1
        assert metrics["failure_count"] == 0
        assert metrics["age_ms"] >= 0

        await source.close()
        assert source.get_metrics()["initialized"] is False
