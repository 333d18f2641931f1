"""
Cycle orchestrator.

Drives periodic polling across all enabled sources:
1. Scrape each source in order, with a pacing delay between sources
2. Dedup against the registry (new = not seen on this source in 24h)
3. Send one consolidated odds_update, then individual alerts for big odds
4. Evict registry entries older than the retention window

A failing source or a failing alert never stops the cycle.
"""

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Protocol

import structlog

from superodds.engine.registry import RETENTION_HORIZON, DedupRegistry
from superodds.models.schemas import (
    MonitorState,
    ScrapeResult,
    SourceCheckError,
    SourceNotFoundError,
    StartupError,
    SuperOdd,
    utc_now,
)

logger = structlog.get_logger()

ESCALATION_MIN_ODD = 3.0
ESCALATION_MIN_FREEBET = 50.0


class SourceAdapter(Protocol):
    """What the orchestrator needs from a source."""

    async def initialize(self) -> None: ...

    async def scrape_odds(self) -> ScrapeResult: ...

    async def close(self) -> None: ...


class Dispatcher(Protocol):
    """What the orchestrator needs from the alert dispatcher."""

    async def initialize(self) -> None: ...

    async def send_new_odd_alert(self, odd: SuperOdd): ...

    async def send_odds_update_alert(self, odds: list[SuperOdd]): ...

    async def send_error_alert(self, message: str): ...

    async def close(self) -> None: ...


@dataclass
class SourceEntry:
    """One monitored source and whether it is polled."""
    key: str
    name: str
    adapter: SourceAdapter
    enabled: bool = True


def is_escalated(
    odd: SuperOdd,
    min_odd: float = ESCALATION_MIN_ODD,
    min_freebet: float = ESCALATION_MIN_FREEBET,
) -> bool:
    """Whether an odd is big enough for its own alert on top of the batch."""
    return odd.odd_value >= min_odd or odd.freebet >= min_freebet


class CycleOrchestrator:
    """
    Polls sources on a fixed interval and turns new listings into alerts.

    Usage:
        orchestrator = CycleOrchestrator(sources, dispatcher)
        await orchestrator.initialize()
        await orchestrator.start()   # runs the first cycle right away
        ...
        await orchestrator.stop()
    """

    def __init__(
        self,
        sources: list[SourceEntry],
        dispatcher: Dispatcher,
        registry: Optional[DedupRegistry] = None,
        interval_minutes: float = 5,
        timeout_ms: int = 30_000,
        source_delay_seconds: float = 2.0,
        retention: timedelta = RETENTION_HORIZON,
        escalation_min_odd: float = ESCALATION_MIN_ODD,
        escalation_min_freebet: float = ESCALATION_MIN_FREEBET,
    ):
        self.sources = list(sources)
        self.dispatcher = dispatcher
        self.registry = registry if registry is not None else DedupRegistry()
        self.interval_minutes = interval_minutes
        self.timeout_ms = timeout_ms
        self.source_delay_seconds = source_delay_seconds
        self.retention = retention
        self.escalation_min_odd = escalation_min_odd
        self.escalation_min_freebet = escalation_min_freebet

        self.logger = logger.bind(component="orchestrator")

        # Control
        self.state = MonitorState.IDLE
        self._timer_task: Optional[asyncio.Task] = None
        self._cycle_task: Optional[asyncio.Task] = None

        # Stats
        self._cycles_completed = 0
        self._last_cycle_at: Optional[datetime] = None
        self._last_cycle_duration_ms = 0

    @property
    def is_running(self) -> bool:
        return self.state is MonitorState.RUNNING

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """
        Initialize every enabled source, then the dispatcher.

        Raises:
            StartupError: if any of them cannot start
        """
        for entry in self.sources:
            if not entry.enabled:
                continue
            try:
                await entry.adapter.initialize()
            except StartupError:
                raise
            except Exception as e:
                raise StartupError(f"{entry.name} failed to initialize: {e}") from e
            self.logger.info("Source ready", source=entry.key)

        try:
            await self.dispatcher.initialize()
        except StartupError:
            raise
        except Exception as e:
            raise StartupError(f"Alert dispatcher failed to initialize: {e}") from e

        self.logger.info("Orchestrator initialized", sources=len(self.sources))

    async def start(self) -> None:
        """Run one cycle now, then every ``interval_minutes``."""
        if self.state is not MonitorState.IDLE:
            self.logger.warning("Monitor already running", state=self.state.value)
            return

        self.state = MonitorState.RUNNING
        self.logger.info(
            "Monitor started",
            sources=self.enabled_source_names(),
            interval_minutes=self.interval_minutes,
        )

        await self._run_tracked_cycle()

        if self.state is MonitorState.RUNNING:
            self._timer_task = asyncio.create_task(self._timer_loop())

    async def stop(self) -> None:
        """Cancel the timer, let an in-flight cycle finish, close collaborators."""
        if self.state is not MonitorState.RUNNING:
            return

        self.state = MonitorState.STOPPING
        self.logger.info("Stopping monitor...")

        if self._timer_task and not self._timer_task.done():
            self._timer_task.cancel()
            try:
                await self._timer_task
            except asyncio.CancelledError:
                pass
        self._timer_task = None

        # Let a cycle that already started run to completion
        if self._cycle_task and not self._cycle_task.done():
            await asyncio.wait([self._cycle_task])
        self._cycle_task = None

        await self.close()

        self.state = MonitorState.IDLE
        self.logger.info("Monitor stopped")

    async def close(self) -> None:
        """Close every source and the dispatcher. Errors are logged, not raised."""
        for entry in self.sources:
            try:
                await entry.adapter.close()
            except Exception as e:
                self.logger.warning("Error closing source", source=entry.key, error=str(e))

        try:
            await self.dispatcher.close()
        except Exception as e:
            self.logger.warning("Error closing dispatcher", error=str(e))

    async def _timer_loop(self) -> None:
        interval_seconds = self.interval_minutes * 60
        while self.state is MonitorState.RUNNING:
            await asyncio.sleep(interval_seconds)
            if self.state is not MonitorState.RUNNING:
                break
            await self._run_tracked_cycle()

    async def _run_tracked_cycle(self) -> None:
        """Run a cycle as its own task so stop() can wait for it without cancelling it."""
        self._cycle_task = asyncio.create_task(self.run_cycle())
        try:
            await asyncio.shield(self._cycle_task)
        except Exception as e:
            self.logger.error("Cycle crashed", error=str(e), error_type=type(e).__name__)

    # =========================================================================
    # Cycle
    # =========================================================================

    async def run_cycle(self) -> list[SuperOdd]:
        """
        Poll every enabled source once and alert on what is new.

        Returns:
            Odds first seen during this cycle (tagged with their source)
        """
        started = time.monotonic()
        self.logger.info("Checking all sources...")

        new_odds: list[SuperOdd] = []
        for entry in self.sources:
            if not entry.enabled:
                continue

            new_odds.extend(await self._check_entry(entry))

            # Pause between sites so we never burst them
            if self.source_delay_seconds > 0:
                await asyncio.sleep(self.source_delay_seconds)

        if new_odds:
            self.logger.info("New super odds found", total=len(new_odds))
            await self._send_alerts(new_odds)

        self.registry.evict_older_than(self.retention)

        self._cycles_completed += 1
        self._last_cycle_at = utc_now()
        self._last_cycle_duration_ms = int((time.monotonic() - started) * 1000)
        self.logger.info(
            "Cycle complete",
            new_odds=len(new_odds),
            known_odds=self.registry.size(),
            duration_ms=self._last_cycle_duration_ms,
        )
        return new_odds

    async def _check_entry(self, entry: SourceEntry) -> list[SuperOdd]:
        """Scrape one source and record its odds. Failures become error alerts."""
        self.logger.info("Checking source", source=entry.key)

        try:
            result = await asyncio.wait_for(
                entry.adapter.scrape_odds(),
                timeout=self.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            self.logger.error("Source timed out", source=entry.key, timeout_ms=self.timeout_ms)
            await self._report_error(f"{entry.name}: timed out after {self.timeout_ms}ms")
            return []
        except Exception as e:
            self.logger.error("Source check failed", source=entry.key, error=str(e))
            await self._report_error(f"Error in {entry.name}: {e or type(e).__name__}")
            return []

        if not result.success:
            self.logger.error("Source scrape failed", source=entry.key, error=result.error)
            await self._report_error(f"{entry.name}: {result.error}")
            return []

        new_odds = []
        for odd in result.odds:
            if not self.registry.has(entry.key, odd.id):
                new_odds.append(odd.tagged(entry.key))
            self.registry.put(entry.key, odd)

        if new_odds:
            self.logger.info("New odds on source", source=entry.key, count=len(new_odds))
        else:
            self.logger.info("No new odds", source=entry.key)
        return new_odds

    async def _send_alerts(self, new_odds: list[SuperOdd]) -> None:
        """Consolidated batch first, then escalated individual alerts."""
        try:
            await self.dispatcher.send_odds_update_alert(new_odds)
        except Exception as e:
            self.logger.error("Failed to send odds update", error=str(e))
            await self._report_error(f"Failed to send odds update: {e}")

        for odd in new_odds:
            if not is_escalated(odd, self.escalation_min_odd, self.escalation_min_freebet):
                continue
            try:
                await self.dispatcher.send_new_odd_alert(odd)
            except Exception as e:
                self.logger.error("Failed to send super odd alert", odd_id=odd.id, error=str(e))
                await self._report_error(f"Failed to send alert for {odd.game}: {e}")

    async def _report_error(self, message: str) -> None:
        """Best-effort error alert; a failure here is only logged."""
        try:
            await self.dispatcher.send_error_alert(message)
        except Exception as e:
            self.logger.error("Failed to send error alert", message=message, error=str(e))

    # =========================================================================
    # Sources
    # =========================================================================

    def _get_entry(self, key: str) -> Optional[SourceEntry]:
        for entry in self.sources:
            if entry.key == key:
                return entry
        return None

    def enable_source(self, key: str) -> bool:
        entry = self._get_entry(key)
        if entry is None:
            self.logger.warning("Unknown source", source=key)
            return False
        entry.enabled = True
        self.logger.info("Source enabled", source=key)
        return True

    def disable_source(self, key: str) -> bool:
        entry = self._get_entry(key)
        if entry is None:
            self.logger.warning("Unknown source", source=key)
            return False
        entry.enabled = False
        self.logger.info("Source disabled", source=key)
        return True

    async def check_source(self, key: str) -> list[SuperOdd]:
        """
        Manually scrape a single source.

        Does not touch the registry or send alerts.

        Raises:
            SourceNotFoundError: unknown key
            SourceCheckError: the scrape failed
        """
        entry = self._get_entry(key)
        if entry is None:
            raise SourceNotFoundError(key)

        self.logger.info("Manual source check", source=key)
        result = await asyncio.wait_for(
            entry.adapter.scrape_odds(),
            timeout=self.timeout_ms / 1000,
        )
        if not result.success:
            raise SourceCheckError(result.error or "scrape failed")
        return result.odds

    def enabled_source_names(self) -> list[str]:
        return [entry.name for entry in self.sources if entry.enabled]

    def get_stats(self) -> dict:
        return {
            "known_odds_count": self.registry.size(),
            "state": self.state.value,
            "is_running": self.is_running,
            "interval_minutes": self.interval_minutes,
            "enabled_sites": self.enabled_source_names(),
            "cycles_completed": self._cycles_completed,
            "last_cycle_at": self._last_cycle_at.isoformat() if self._last_cycle_at else None,
            "last_cycle_duration_ms": self._last_cycle_duration_ms,
        }
