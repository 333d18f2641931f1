"""
Data models and schemas for the super odds monitor.

Listings and alert payloads are Pydantic models so they validate on the way in
and serialize to the camelCase wire format on the way out.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Identifies this monitoring process in every alert payload
ALERT_SOURCE = "superodds-monitor"


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class AlertType(str, Enum):
    """Kind of alert carried by a payload."""
    NEW_SUPER_ODD = "new_super_odd"
    ODDS_UPDATE = "odds_update"
    ERROR = "error"


class DeliveryOutcome(str, Enum):
    """Result of one delivery attempt on one channel."""
    SENT = "sent"
    SKIPPED = "skipped"  # Channel not configured or not connected
    FAILED = "failed"


class MonitorState(str, Enum):
    """Lifecycle of the cycle orchestrator."""
    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"


# --- Errors ---

class StartupError(RuntimeError):
    """A source adapter or the alert dispatcher could not initialize."""


class SourceNotFoundError(KeyError):
    """No source is registered under the requested key."""


class SourceCheckError(RuntimeError):
    """A manual source check returned a failure."""


# --- Listing Models ---

class SuperOdd(BaseModel):
    """One promotional betting listing observed on a source."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    id: str
    game: str = ""
    league: str = ""
    home_team: str
    away_team: str
    odd_value: float = Field(gt=1.0)
    min_bet: float = Field(default=0.0, ge=0.0)
    max_bet: float = Field(default=0.0, ge=0.0)
    freebet: float = Field(default=0.0, ge=0.0)
    promotion_type: str = ""
    url: str = ""
    detected_at: datetime = Field(default_factory=utc_now)
    expires_at: Optional[datetime] = None

    # Set by the orchestrator when the odd is first seen on a source
    source: Optional[str] = None

    @field_validator("detected_at", "expires_at")
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def tagged(self, source_key: str) -> "SuperOdd":
        """Return a copy annotated with the source it was seen on."""
        label = f"{self.promotion_type} ({source_key.upper()})".strip()
        return self.model_copy(update={"source": source_key, "promotion_type": label})


@dataclass
class ScrapeResult:
    """Outcome of one adapter scrape: either odds or a failure reason."""
    success: bool
    odds: list[SuperOdd] = field(default_factory=list)
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)

    @classmethod
    def ok(cls, odds: list[SuperOdd]) -> "ScrapeResult":
        return cls(success=True, odds=list(odds))

    @classmethod
    def failed(cls, error: str) -> "ScrapeResult":
        return cls(success=False, error=error or "unknown error")


# --- Alert Models ---

class ErrorData(BaseModel):
    """Body of an error alert."""

    model_config = ConfigDict(frozen=True)

    error: str


class AlertPayload(BaseModel):
    """
    Alert delivered identically to the webhook and the stream.

    Built once per alert and serialized once; both channels receive the
    same bytes.
    """

    model_config = ConfigDict(frozen=True)

    type: AlertType
    data: Union[SuperOdd, list[SuperOdd], ErrorData]
    timestamp: datetime = Field(default_factory=utc_now)
    source: str = ALERT_SOURCE

    @classmethod
    def new_super_odd(cls, odd: SuperOdd, source: str = ALERT_SOURCE) -> "AlertPayload":
        return cls(type=AlertType.NEW_SUPER_ODD, data=odd, source=source)

    @classmethod
    def odds_update(cls, odds: list[SuperOdd], source: str = ALERT_SOURCE) -> "AlertPayload":
        return cls(type=AlertType.ODDS_UPDATE, data=list(odds), source=source)

    @classmethod
    def error(cls, message: str, source: str = ALERT_SOURCE) -> "AlertPayload":
        return cls(type=AlertType.ERROR, data=ErrorData(error=message), source=source)

    def to_json(self) -> str:
        """Serialize to the wire format (camelCase listing keys, ISO timestamps)."""
        return self.model_dump_json(by_alias=True)


@dataclass
class DispatchReport:
    """Per-channel outcomes for one dispatched payload."""
    alert_type: AlertType
    webhook: DeliveryOutcome
    stream: DeliveryOutcome

    @property
    def delivered(self) -> bool:
        """True if at least one channel accepted the payload."""
        return DeliveryOutcome.SENT in (self.webhook, self.stream)
