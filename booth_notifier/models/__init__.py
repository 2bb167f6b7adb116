"""
Data models for the BOOTH notifier.

This module contains the data classes used throughout the application for
items, filters, destinations, poll snapshots, alerts and configuration.
"""

from .alert import FormattedAlert
from .config import BoothConfig, Configuration, DiscordConfig, StorageConfig
from .delivery import DeliveryResult
from .destination import AudienceGate, Destination, Guild
from .filter import (
    Field,
    Filter,
    FilterGroup,
    NotificationFilter,
    Op,
    Pattern,
    RegexPattern,
    Rule,
    TagMode,
    TextPattern,
    parse_filter,
)
from .item import Image, Item, Shop, Tag
from .snapshot import PollSnapshot

__all__ = [
    "Item",
    "Tag",
    "Shop",
    "Image",
    "Filter",
    "FilterGroup",
    "Rule",
    "Field",
    "Op",
    "TagMode",
    "Pattern",
    "TextPattern",
    "RegexPattern",
    "NotificationFilter",
    "parse_filter",
    "AudienceGate",
    "Destination",
    "Guild",
    "PollSnapshot",
    "FormattedAlert",
    "DeliveryResult",
    "Configuration",
    "DiscordConfig",
    "BoothConfig",
    "StorageConfig",
]
