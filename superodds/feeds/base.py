"""
Base class for super odds sources.

A source wraps one monitored site. The orchestrator only sees this contract;
how a concrete source gets its listings is its own business.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import structlog

from superodds.models.schemas import ScrapeResult

logger = structlog.get_logger()


@dataclass
class SourceHealth:
    """Health status of a source."""
    initialized: bool = False
    scrape_count: int = 0
    failure_count: int = 0
    last_success_ms: int = 0
    last_error: Optional[str] = None

    @property
    def age_ms(self) -> int:
        """Age of the last successful scrape in milliseconds."""
        if self.last_success_ms == 0:
            return -1
        return int(time.time() * 1000) - self.last_success_ms


class BaseSource(ABC):
    """
    Abstract base class for odds sources.

    Subclasses implement ``_scrape``; ``scrape_odds`` wraps it so a failure
    always comes back as a failed ScrapeResult instead of an exception.
    """

    def __init__(self, key: str, name: Optional[str] = None):
        self.key = key
        self.name = name or key
        self.health = SourceHealth()
        self.logger = logger.bind(source=key)

    async def initialize(self) -> None:
        """Prepare the source. Raise StartupError if it cannot start."""
        self.health.initialized = True
        self.logger.info("Source initialized")

    @abstractmethod
    async def _scrape(self) -> ScrapeResult:
        """Fetch current listings. Override in subclass."""
        pass

    async def scrape_odds(self) -> ScrapeResult:
        """Fetch current listings, converting unexpected errors into a failed result."""
        self.health.scrape_count += 1
        try:
            result = await self._scrape()
        except Exception as e:
            self.logger.error("Scrape failed", error=str(e), error_type=type(e).__name__)
            result = ScrapeResult.failed(str(e) or type(e).__name__)

        if result.success:
            self.health.last_success_ms = int(time.time() * 1000)
            self.health.last_error = None
            self.logger.info("Scrape complete", odds=len(result.odds))
        else:
            self.health.failure_count += 1
            self.health.last_error = result.error
        return result

    async def close(self) -> None:
        """Release resources. Errors are logged, never raised."""
        self.health.initialized = False
        self.logger.info("Source closed")

    def get_metrics(self) -> dict:
        """Get current metrics for this source."""
        return {
            "key": self.key,
            "name": self.name,
            "initialized": self.health.initialized,
            "scrape_count": self.health.scrape_count,
            "failure_count": self.health.failure_count,
            "age_ms": self.health.age_ms,
            "last_error": self.health.last_error,
        }
