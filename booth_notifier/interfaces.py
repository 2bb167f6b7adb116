"""
Protocol interfaces for the BOOTH notifier.

This module defines the collaborator boundaries of the notification pipeline:
the catalog client, the storage repository and the messaging transport.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Protocol

from .models.alert import FormattedAlert
from .models.delivery import DeliveryResult
from .models.destination import AudienceGate, Destination, Guild
from .models.item import Item
from .models.snapshot import PollSnapshot


class ICatalogClient(Protocol):
    """Protocol for the marketplace catalog client."""

    def fetch_catalog_ids(self) -> List[int]:
        """Fetch the current listing as item ids, oldest first.

        Raises FetchError or ParseError.
        """
        ...

    def fetch_item_detail(self, item_id: int) -> Item:
        """Fetch the full record of one item.

        Raises FetchError or ParseError.
        """
        ...


class IItemRepository(Protocol):
    """Protocol for the persistent store. Every method may raise StorageError."""

    def load_latest_snapshot(self) -> Optional[PollSnapshot]:
        """Load the most recent poll snapshot, if any."""
        ...

    def save_snapshot(self, item_ids: List[int], fetched_at: datetime) -> None:
        """Persist the id list observed on one poll."""
        ...

    def persist_item_record(self, item: Item) -> None:
        """Persist the detail record of a newly discovered item."""
        ...

    def load_guilds(self) -> List[Guild]:
        """Load every registered guild."""
        ...

    def load_destinations(self, guild_id: int) -> List[Destination]:
        """Load the destinations registered for a guild."""
        ...

    def load_filters_by_ids(self, filter_ids: Iterable[int]) -> Dict[int, str]:
        """Load stored filter texts keyed by filter id in a single lookup."""
        ...


class IDestinationTransport(Protocol):
    """Protocol for the outbound messaging transport."""

    def resolve_audience_gate(self, destination_id: int) -> AudienceGate:
        """Look up whether a destination accepts adult or general content.

        Raises TransportError.
        """
        ...

    def deliver(self, destination_id: int, alert: FormattedAlert) -> DeliveryResult:
        """Post an alert, then publish it where the destination supports it.

        Raises TransportError when the post fails. Publish failures are
        logged and reported on the result only.
        """
        ...
