"""
Core components for the BOOTH notifier.

This module contains the components that fetch the catalog, detect new items,
evaluate filters, format alerts and route them to Discord channels.
"""

from .alert_formatter import AlertFormatter
from .booth_client import BoothClient
from .change_detector import ChangeDetector
from .destination_router import AudienceGateCache, DestinationRouter, DispatchSummary
from .filter_engine import FilterEngine
from .message_dispatcher import DiscordDispatcher

__all__ = [
    "AlertFormatter",
    "AudienceGateCache",
    "BoothClient",
    "ChangeDetector",
    "DestinationRouter",
    "DiscordDispatcher",
    "DispatchSummary",
    "FilterEngine",
]
