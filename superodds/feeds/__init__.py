"""
Super odds sources.

- BaseSource: contract every monitored site implements
- JsonFeedSource: sites that publish their promotions as JSON
"""

from superodds.feeds.base import BaseSource, SourceHealth
from superodds.feeds.json_feed import JsonFeedSource

__all__ = [
    "BaseSource",
    "SourceHealth",
    "JsonFeedSource",
]
