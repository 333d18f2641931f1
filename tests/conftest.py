"""Shared fakes and factories for the monitor tests."""

import asyncio
from datetime import datetime
from typing import Optional, Union

import pytest
from websockets.protocol import State

from superodds.models.schemas import AlertType, ScrapeResult, SuperOdd, utc_now
from superodds.utils.helpers import generate_odd_id


def make_odd(
    odd_id: Optional[str] = None,
    odd_value: float = 2.1,
    freebet: float = 0.0,
    home_team: str = "Flamengo",
    away_team: str = "Palmeiras",
    promotion_type: str = "Super Odd",
    detected_at: Optional[datetime] = None,
) -> SuperOdd:
    """Build a valid SuperOdd with sensible defaults."""
    return SuperOdd(
        id=odd_id or generate_odd_id(home_team, away_team, odd_value, promotion_type),
        game=f"{home_team} x {away_team}",
        league="Brasileirão",
        home_team=home_team,
        away_team=away_team,
        odd_value=odd_value,
        min_bet=5.0,
        max_bet=100.0,
        freebet=freebet,
        promotion_type=promotion_type,
        url="https://example.com/promo",
        detected_at=detected_at or utc_now(),
    )


class FakeSource:
    """
    Source adapter that replays scripted results.

    Each scripted item is a ScrapeResult, a list of odds, or an exception
    to raise. The last item repeats once the script runs out.
    """

    def __init__(self, *script: Union[ScrapeResult, list, Exception], delay: float = 0.0):
        self.script = list(script) or [[]]
        self.delay = delay
        self.calls = 0
        self.initialized = False
        self.closed = False
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def initialize(self) -> None:
        self.initialized = True

    async def scrape_odds(self) -> ScrapeResult:
        step = self.script[min(self.calls, len(self.script) - 1)]
        self.calls += 1
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, ScrapeResult):
            return step
        return ScrapeResult.ok(step)

    async def close(self) -> None:
        self.closed = True


class RecordingDispatcher:
    """Dispatcher stand-in that records every alert in call order."""

    def __init__(self, fail_on: tuple = ()):
        self.calls: list[tuple[AlertType, object]] = []
        self.fail_on = set(fail_on)
        self.initialized = False
        self.closed = False

    async def initialize(self) -> None:
        self.initialized = True

    async def _record(self, alert_type: AlertType, data: object) -> None:
        self.calls.append((alert_type, data))
        if alert_type in self.fail_on:
            raise RuntimeError(f"{alert_type.value} channel down")

    async def send_new_odd_alert(self, odd: SuperOdd) -> None:
        await self._record(AlertType.NEW_SUPER_ODD, odd)

    async def send_odds_update_alert(self, odds: list[SuperOdd]) -> None:
        await self._record(AlertType.ODDS_UPDATE, list(odds))

    async def send_error_alert(self, message: str) -> None:
        await self._record(AlertType.ERROR, message)

    async def close(self) -> None:
        self.closed = True

    def of_type(self, alert_type: AlertType) -> list:
        return [data for kind, data in self.calls if kind is alert_type]


class FakeConnection:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self):
        self.state = State.OPEN
        self.sent: list[str] = []
        self.received = 0
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._closed = asyncio.Event()

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def close(self) -> None:
        self.drop()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def __aiter__(self):
        while True:
            message = await self._inbox.get()
            if message is None:
                return
            self.received += 1
            yield message

    def push(self, message: str) -> None:
        """Simulate the server sending a frame."""
        self._inbox.put_nowait(message)

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        if self.state is State.CLOSED:
            return
        self.state = State.CLOSED
        self._closed.set()
        self._inbox.put_nowait(None)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll until predicate() is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()
