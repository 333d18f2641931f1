"""
JSON promotions feed source.

Polls a site endpoint that publishes its boosted odds as JSON and maps each
listing to a SuperOdd. Accepts either a bare list or an object wrapping the
list under "odds", "promotions" or "data". Listing keys may be camelCase or
snake_case.

Example listing:
    {"game": "Flamengo x Palmeiras", "league": "Brasileirão",
     "oddValue": "3,50", "minBet": 5, "maxBet": 100, "freebet": 0,
     "promotionType": "Super Odd", "url": "https://..."}
"""

import asyncio
import ssl
from typing import Any, Optional

import certifi
import httpx
from pydantic import ValidationError

from superodds.feeds.base import BaseSource
from superodds.models.schemas import ScrapeResult, StartupError, SuperOdd, utc_now
from superodds.utils.helpers import (
    extract_teams_from_title,
    generate_odd_id,
    is_valid_super_odd,
    parse_decimal,
    sanitize_text,
)

_LIST_KEYS = ("odds", "promotions", "data")


def _pick(listing: dict, *names: str, default: Any = None) -> Any:
    """Return the first present key among camelCase/snake_case spellings."""
    for name in names:
        if name in listing and listing[name] is not None:
            return listing[name]
    return default


class JsonFeedSource(BaseSource):
    """
    Source backed by an HTTP JSON endpoint.

    Transport errors and 5xx responses are retried up to ``max_retries``
    times with progressive backoff; anything else fails the scrape at once.
    """

    RETRY_DELAYS = [1.0, 2.0, 5.0]

    def __init__(
        self,
        key: str,
        feed_url: str,
        name: Optional[str] = None,
        max_retries: int = 3,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(key, name)
        self.feed_url = feed_url
        self.max_retries = max(1, max_retries)
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        if not self.feed_url.startswith(("http://", "https://")):
            raise StartupError(f"{self.name}: feed URL must be http(s), got {self.feed_url!r}")

        if self._http_client is None:
            client_kwargs: dict[str, Any] = {
                "timeout": self.timeout_seconds,
                "headers": {"Accept": "application/json"},
                "follow_redirects": True,
            }
            if self._transport is not None:
                client_kwargs["transport"] = self._transport
            else:
                client_kwargs["verify"] = ssl.create_default_context(cafile=certifi.where())
            self._http_client = httpx.AsyncClient(**client_kwargs)

        await super().initialize()

    async def close(self) -> None:
        if self._http_client:
            try:
                await self._http_client.aclose()
            except Exception as e:
                self.logger.warning("Error closing HTTP client", error=str(e))
            self._http_client = None
        await super().close()

    async def _fetch(self) -> Any:
        """GET the feed with retry on transport errors and server errors."""
        last_error = "no attempt made"

        for attempt in range(self.max_retries):
            try:
                response = await self._http_client.get(self.feed_url)
                if response.status_code >= 500:
                    last_error = f"HTTP {response.status_code}"
                else:
                    response.raise_for_status()
                    return response.json()
            except (httpx.TimeoutException, httpx.TransportError) as e:
                last_error = f"{type(e).__name__}: {e}"

            self.logger.debug("Feed request failed", attempt=attempt + 1, error=last_error)
            if attempt < self.max_retries - 1:
                delay = self.RETRY_DELAYS[min(attempt, len(self.RETRY_DELAYS) - 1)]
                await asyncio.sleep(delay)

        raise RuntimeError(f"feed unreachable after {self.max_retries} attempts ({last_error})")

    async def _scrape(self) -> ScrapeResult:
        if self._http_client is None:
            await self.initialize()

        try:
            body = await self._fetch()
        except httpx.HTTPStatusError as e:
            return ScrapeResult.failed(f"HTTP {e.response.status_code} from feed")
        except ValueError:
            return ScrapeResult.failed("feed did not return valid JSON")

        listings = self._extract_listings(body)
        if listings is None:
            return ScrapeResult.failed("no listings found in feed response")

        odds = []
        for listing in listings:
            odd = self._to_super_odd(listing)
            if odd is not None:
                odds.append(odd)

        if len(odds) < len(listings):
            self.logger.debug("Dropped invalid listings", dropped=len(listings) - len(odds))
        return ScrapeResult.ok(odds)

    @staticmethod
    def _extract_listings(body: Any) -> Optional[list]:
        if isinstance(body, list):
            return body
        if isinstance(body, dict):
            for key in _LIST_KEYS:
                if isinstance(body.get(key), list):
                    return body[key]
        return None

    def _to_super_odd(self, listing: Any) -> Optional[SuperOdd]:
        """Map one raw listing to a SuperOdd, or None if it is not usable."""
        if not isinstance(listing, dict):
            return None

        game = sanitize_text(str(_pick(listing, "game", "title", default="")))
        home_team = sanitize_text(str(_pick(listing, "homeTeam", "home_team", default="")))
        away_team = sanitize_text(str(_pick(listing, "awayTeam", "away_team", default="")))
        if (not home_team or not away_team) and game:
            home_team, away_team = extract_teams_from_title(game)

        fields = {
            "home_team": home_team,
            "away_team": away_team,
            "odd_value": parse_decimal(_pick(listing, "oddValue", "odd_value", "odd")),
            "url": str(_pick(listing, "url", default=self.feed_url)),
        }
        if not is_valid_super_odd(fields):
            return None

        promotion_type = sanitize_text(str(_pick(listing, "promotionType", "promotion_type", default="")))
        try:
            return SuperOdd(
                id=generate_odd_id(home_team, away_team, fields["odd_value"], promotion_type),
                game=game or f"{home_team} x {away_team}",
                league=sanitize_text(str(_pick(listing, "league", default=""))),
                home_team=home_team,
                away_team=away_team,
                odd_value=fields["odd_value"],
                min_bet=parse_decimal(_pick(listing, "minBet", "min_bet")),
                max_bet=parse_decimal(_pick(listing, "maxBet", "max_bet")),
                freebet=parse_decimal(_pick(listing, "freebet", "freeBet")),
                promotion_type=promotion_type,
                url=fields["url"],
                detected_at=utc_now(),
                expires_at=_pick(listing, "expiresAt", "expires_at"),
            )
        except ValidationError as e:
            self.logger.debug("Listing rejected", error=str(e))
            return None
