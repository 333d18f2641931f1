"""
Super Odds Monitor.

Watches betting sites for promotional "super odds", remembers what it has
already announced for 24 hours and pushes new listings to a webhook and a
WebSocket stream.

Layout:
- feeds/: Site sources (one adapter per monitored site)
- engine/: Dedup registry and the polling cycle orchestrator
- models/: Listing and alert payload schemas
- utils/: Alert dispatcher, logging, parsing helpers
"""

__version__ = "1.0.0"
