"""
Dual-channel alert dispatcher.

Every alert goes out over two independent channels at the same time:
- a webhook POST (stateless, one request per alert)
- a long-lived WebSocket stream (reconnects forever on a fixed delay)

Delivery is best-effort. Each channel reports a DeliveryOutcome and never
raises to the caller.
"""

import asyncio
import ssl
from typing import Any, Awaitable, Callable, Optional

import certifi
import httpx
import structlog
import websockets
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from superodds.models.schemas import (
    ALERT_SOURCE,
    AlertPayload,
    DeliveryOutcome,
    DispatchReport,
    StartupError,
    SuperOdd,
)

logger = structlog.get_logger()

StreamConnector = Callable[[str], Awaitable[Any]]


class AlertDispatcher:
    """
    Sends alert payloads to a webhook and a WebSocket stream.

    Either target may be empty, in which case that channel is skipped
    silently. The stream connection is opened by ``initialize()``; when it
    closes unexpectedly exactly one reconnect is scheduled after
    ``reconnect_delay`` seconds, and the same happens on every later close
    until ``close()`` is called.
    """

    USER_AGENT = "SuperOdds-Monitor/1.0"

    def __init__(
        self,
        webhook_url: str = "",
        stream_url: str = "",
        source: str = ALERT_SOURCE,
        webhook_timeout: float = 10.0,
        reconnect_delay: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        connector: Optional[StreamConnector] = None,
    ):
        self.webhook_url = webhook_url
        self.stream_url = stream_url
        self.source = source
        self.webhook_timeout = webhook_timeout
        self.reconnect_delay = reconnect_delay
        self.logger = logger.bind(component="alert_dispatcher")

        self._transport = transport
        self._connector = connector or self._open_stream
        self._client: Optional[httpx.AsyncClient] = None

        self._ws: Optional[Any] = None
        self._watch_task: Optional[asyncio.Task] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closing = False

        # Stream stats
        self.connect_count = 0
        self.reconnects_scheduled = 0

    # ==========================================================================
    # Lifecycle
    # ==========================================================================

    async def initialize(self) -> None:
        """
        Validate targets and open the stream.

        Raises:
            StartupError: if a configured target is malformed or has the wrong scheme
        """
        if self.webhook_url:
            if not self.webhook_url.startswith(("http://", "https://")):
                raise StartupError(f"Webhook URL must be http(s): {self.webhook_url!r}")
            try:
                # Reading .host also decodes IDNA labels
                if not httpx.URL(self.webhook_url).host:
                    raise ValueError("missing host")
            except Exception as e:
                raise StartupError(f"Webhook URL is malformed: {self.webhook_url!r} ({e})") from e
        if self.stream_url and not self.stream_url.startswith(("ws://", "wss://")):
            raise StartupError(f"Stream URL must be ws(s): {self.stream_url!r}")

        self._closing = False
        if self.stream_url:
            await self._connect_stream()

        self.logger.info(
            "Alert dispatcher initialized",
            webhook=bool(self.webhook_url),
            stream=bool(self.stream_url),
            stream_connected=self.stream_connected,
        )

    async def close(self) -> None:
        """Tear down the stream and cancel any pending reconnect."""
        self._closing = True

        for task in (self._reconnect_task, self._watch_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reconnect_task = None
        self._watch_task = None

        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                self.logger.debug("Error closing stream", error=str(e))
            self._ws = None

        if self._client is not None:
            try:
                await self._client.aclose()
            except Exception as e:
                self.logger.debug("Error closing HTTP client", error=str(e))
            self._client = None

        self.logger.info("Alert dispatcher closed")

    # ==========================================================================
    # Stream Connection
    # ==========================================================================

    @property
    def stream_connected(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    async def _open_stream(self, url: str) -> Any:
        ssl_context = None
        if url.startswith("wss://"):
            ssl_context = ssl.create_default_context(cafile=certifi.where())

        return await asyncio.wait_for(
            websockets.connect(
                url,
                ping_interval=30,
                ping_timeout=20,
                close_timeout=5,
                ssl=ssl_context,
            ),
            timeout=10.0,
        )

    async def _connect_stream(self) -> None:
        """Open the stream once. A failed attempt counts as a close."""
        try:
            ws = await self._connector(self.stream_url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.warning("Stream connection failed", error=str(e))
            self._schedule_reconnect()
            return

        if self._closing:
            await ws.close()
            return

        self._ws = ws
        self.connect_count += 1
        self.logger.info("Stream connected", connects=self.connect_count)
        self._watch_task = asyncio.create_task(self._watch_stream(ws))

    async def _watch_stream(self, ws: Any) -> None:
        """Drain inbound frames until the connection closes, then arm a reconnect."""
        try:
            async for message in ws:
                self.logger.debug("Stream message received", size=len(message))
        except ConnectionClosed as e:
            self.logger.debug("Stream connection lost", error=str(e))
        if self._ws is ws:
            self._ws = None
        if not self._closing:
            self.logger.info("Stream closed, reconnecting", delay=self.reconnect_delay)
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        """Arm a single delayed reconnect unless one is already pending."""
        if self._closing:
            return
        pending = self._reconnect_task
        # A failed attempt re-arms from inside the pending task itself
        if pending and not pending.done() and pending is not asyncio.current_task():
            return
        self.reconnects_scheduled += 1
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay())

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self.reconnect_delay)
        await self._connect_stream()

    # ==========================================================================
    # Channels
    # ==========================================================================

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            client_kwargs: dict[str, Any] = {
                "timeout": httpx.Timeout(self.webhook_timeout),
                "headers": {
                    "Content-Type": "application/json",
                    "User-Agent": self.USER_AGENT,
                },
            }
            if self._transport is not None:
                client_kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**client_kwargs)
        return self._client

    async def _send_webhook(self, body: str) -> DeliveryOutcome:
        if not self.webhook_url:
            return DeliveryOutcome.SKIPPED

        try:
            client = await self._get_client()
            response = await client.post(self.webhook_url, content=body)
        except Exception as e:
            self.logger.error("Webhook send failed", error=str(e), error_type=type(e).__name__)
            return DeliveryOutcome.FAILED

        if response.is_success:
            self.logger.debug("Webhook sent", status=response.status_code)
            return DeliveryOutcome.SENT

        self.logger.warning("Webhook rejected alert", status=response.status_code)
        return DeliveryOutcome.FAILED

    async def _send_stream(self, body: str) -> DeliveryOutcome:
        if not self.stream_url:
            return DeliveryOutcome.SKIPPED

        if not self.stream_connected:
            self.logger.debug("Stream not connected, skipping send")
            return DeliveryOutcome.SKIPPED

        try:
            await self._ws.send(body)
        except Exception as e:
            self.logger.error("Stream send failed", error=str(e), error_type=type(e).__name__)
            return DeliveryOutcome.FAILED

        self.logger.debug("Stream message sent")
        return DeliveryOutcome.SENT

    # ==========================================================================
    # Alerts
    # ==========================================================================

    async def dispatch(self, payload: AlertPayload) -> DispatchReport:
        """Serialize once and push to both channels concurrently."""
        body = payload.to_json()
        webhook, stream = await asyncio.gather(
            self._send_webhook(body),
            self._send_stream(body),
        )
        return DispatchReport(alert_type=payload.type, webhook=webhook, stream=stream)

    async def send_new_odd_alert(self, odd: SuperOdd) -> DispatchReport:
        report = await self.dispatch(AlertPayload.new_super_odd(odd, source=self.source))
        self.logger.info("New super odd alert sent", game=odd.game, odd_value=odd.odd_value)
        return report

    async def send_odds_update_alert(self, odds: list[SuperOdd]) -> DispatchReport:
        report = await self.dispatch(AlertPayload.odds_update(odds, source=self.source))
        self.logger.info("Odds update alert sent", count=len(odds))
        return report

    async def send_error_alert(self, message: str) -> DispatchReport:
        report = await self.dispatch(AlertPayload.error(message, source=self.source))
        self.logger.info("Error alert sent", message=message)
        return report

    def get_metrics(self) -> dict:
        return {
            "webhook_enabled": bool(self.webhook_url),
            "stream_enabled": bool(self.stream_url),
            "stream_connected": self.stream_connected,
            "connect_count": self.connect_count,
            "reconnects_scheduled": self.reconnects_scheduled,
        }
