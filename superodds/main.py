"""
Super Odds Monitor - Main Entry Point.

Polls every enabled site for boosted odds, dedups against the last 24 hours
and pushes alerts to a webhook and a WebSocket stream.

Usage:
    python -m superodds.main

Environment Variables:
    INTERVAL_MINUTES   - Minutes between cycles (default: 5)
    TIMEOUT_MS         - Per-source scrape timeout (default: 30000)
    MAX_RETRIES        - Feed request attempts per scrape (default: 3)
    WEBHOOK_URL        - Webhook endpoint (empty disables)
    STREAM_URL         - WebSocket endpoint (empty disables)
    SITES              - JSON list of {"key", "name", "feed_url", "enabled"}
"""

import asyncio
import signal
import sys
from typing import Optional

import structlog

from config.settings import Settings, settings as default_settings
from superodds.engine.orchestrator import CycleOrchestrator, SourceEntry
from superodds.feeds.json_feed import JsonFeedSource
from superodds.models.schemas import StartupError
from superodds.utils.alerts import AlertDispatcher
from superodds.utils.logging import setup_logging

logger = structlog.get_logger()


def build_sources(settings: Settings) -> list[SourceEntry]:
    """Create one entry per configured site, in configuration order."""
    entries = []
    for site in settings.sites:
        adapter = JsonFeedSource(
            key=site.key,
            name=site.name,
            feed_url=site.feed_url,
            max_retries=settings.max_retries,
            timeout_seconds=settings.timeout_ms / 1000,
        )
        # A site without a feed cannot be polled
        enabled = site.enabled and bool(site.feed_url)
        entries.append(SourceEntry(key=site.key, name=site.name, adapter=adapter, enabled=enabled))
    return entries


def build_orchestrator(settings: Settings) -> CycleOrchestrator:
    dispatcher = AlertDispatcher(
        webhook_url=settings.webhook_url,
        stream_url=settings.stream_url,
        source=settings.monitor_name,
        webhook_timeout=settings.alerts.webhook_timeout_seconds,
        reconnect_delay=settings.alerts.reconnect_delay_seconds,
    )
    return CycleOrchestrator(
        sources=build_sources(settings),
        dispatcher=dispatcher,
        interval_minutes=settings.interval_minutes,
        timeout_ms=settings.timeout_ms,
        source_delay_seconds=settings.source_delay_seconds,
        escalation_min_odd=settings.alerts.escalation_min_odd,
        escalation_min_freebet=settings.alerts.escalation_min_freebet,
    )


class MonitorApp:
    """
    Process wrapper around the orchestrator.

    Owns signal handling, the periodic stats log and graceful shutdown.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.orchestrator = build_orchestrator(settings)
        self.logger = logger.bind(component="app")
        self._shutdown_event = asyncio.Event()
        self._stats_task: Optional[asyncio.Task] = None

    def shutdown(self) -> None:
        """Trigger graceful shutdown."""
        if not self._shutdown_event.is_set():
            self.logger.info("Shutdown requested")
            self._shutdown_event.set()

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        self.logger.error(
            "Unhandled error",
            message=context.get("message"),
            error=str(exc) if exc else None,
            error_type=type(exc).__name__ if exc else None,
        )
        self.shutdown()

    async def _stats_loop(self) -> None:
        interval_seconds = self.settings.stats_interval_minutes * 60
        while True:
            await asyncio.sleep(interval_seconds)
            self.logger.info("Monitor stats", **self.orchestrator.get_stats())

    async def run(self) -> int:
        """Run until a shutdown is requested. Returns the process exit code."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.shutdown)
            except NotImplementedError:
                # Windows event loops have no signal handlers
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(self.shutdown))
        loop.set_exception_handler(self._handle_loop_exception)

        self.logger.info(
            "Starting Super Odds Monitor",
            interval_minutes=self.settings.interval_minutes,
            sites=self.orchestrator.enabled_source_names(),
            webhook=bool(self.settings.webhook_url),
            stream=bool(self.settings.stream_url),
        )

        try:
            await self.orchestrator.initialize()
        except StartupError as e:
            self.logger.error("Startup failed", error=str(e))
            await self.orchestrator.close()
            return 1

        self._stats_task = asyncio.create_task(self._stats_loop())
        try:
            await self.orchestrator.start()
            await self._shutdown_event.wait()
        except Exception as e:
            self.logger.exception("Monitor crashed", error=str(e))
        finally:
            self._stats_task.cancel()
            try:
                await self._stats_task
            except asyncio.CancelledError:
                pass
            self._stats_task = None
            await self.orchestrator.stop()

        self.logger.info("Monitor shut down cleanly")
        return 0


def main() -> None:
    """Main entry point."""
    setup_logging(default_settings.log_level, default_settings.log_format.value)

    app = MonitorApp(default_settings)
    try:
        exit_code = asyncio.run(app.run())
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
