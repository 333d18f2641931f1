"""Super odds data models and schemas."""

from superodds.models.schemas import (
    ALERT_SOURCE,
    AlertPayload,
    AlertType,
    DeliveryOutcome,
    DispatchReport,
    ErrorData,
    MonitorState,
    ScrapeResult,
    SourceCheckError,
    SourceNotFoundError,
    StartupError,
    SuperOdd,
)

__all__ = [
    "ALERT_SOURCE",
    "AlertPayload",
    "AlertType",
    "DeliveryOutcome",
    "DispatchReport",
    "ErrorData",
    "MonitorState",
    "ScrapeResult",
    "SourceCheckError",
    "SourceNotFoundError",
    "StartupError",
    "SuperOdd",
]
