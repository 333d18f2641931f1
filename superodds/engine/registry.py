"""
Dedup registry for super odds.

Remembers which (source, fingerprint) pairs have already been alerted so a
listing that stays up across cycles is only announced once per window.
"""

from datetime import datetime, timedelta
from typing import Optional

import structlog

from superodds.models.schemas import SuperOdd, utc_now

logger = structlog.get_logger()

# Default retention window for known odds
RETENTION_HORIZON = timedelta(hours=24)


class DedupRegistry:
    """
    In-memory map of (source_key, odd_id) -> last seen SuperOdd.

    Owned by the orchestrator and only touched from its event loop, so no
    locking is done here.
    """

    def __init__(self):
        self._entries: dict[tuple[str, str], SuperOdd] = {}
        self.logger = logger.bind(component="dedup_registry")

    def has(self, source_key: str, odd_id: str) -> bool:
        """Check whether this fingerprint was already seen on the source."""
        return (source_key, odd_id) in self._entries

    def put(self, source_key: str, odd: SuperOdd) -> None:
        """Insert or refresh the entry for this odd."""
        self._entries[(source_key, odd.id)] = odd

    def get(self, source_key: str, odd_id: str) -> Optional[SuperOdd]:
        return self._entries.get((source_key, odd_id))

    def evict_older_than(
        self,
        horizon: timedelta = RETENTION_HORIZON,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Drop every entry detected strictly before ``now - horizon``.

        Args:
            horizon: Retention window
            now: Reference time (defaults to current UTC time)

        Returns:
            Number of entries removed
        """
        cutoff = (now or utc_now()) - horizon
        stale = [key for key, odd in self._entries.items() if odd.detected_at < cutoff]
        for key in stale:
            del self._entries[key]

        if stale:
            self.logger.info("Evicted old odds", removed=len(stale), remaining=len(self._entries))
        return len(stale)

    def size(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._entries
