"""
Change detection for the BOOTH notifier.

This module turns the repeatedly polled listing into the list of newly
arrived items, pacing detail fetches and persisting each poll's id list so
the baseline survives restarts.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Set

from ..interfaces import ICatalogClient, IItemRepository
from ..models.item import Item
from ..utils.error_handling import StorageError

logger = logging.getLogger(__name__)


class ChangeDetector:
    """Detects new items between successive polls of the listing."""

    def __init__(
        self,
        catalog_client: ICatalogClient,
        repository: IItemRepository,
        fetch_interval: float = 1.0,
        seed_on_bootstrap: bool = False,
    ):
        """
        Initialize change detector.

        Args:
            catalog_client: Source of listing ids and item records
            repository: Store for poll snapshots and item records
            fetch_interval: Seconds to wait between successive detail fetches
            seed_on_bootstrap: Record the listing without reporting it as new
                when no previous snapshot exists
        """
        self.catalog_client = catalog_client
        self.repository = repository
        self.fetch_interval = fetch_interval
        self.seed_on_bootstrap = seed_on_bootstrap

        self.last_seen_ids: Set[int] = set()
        self.last_poll_was_bootstrap = False

    async def poll(self) -> List[Item]:
        """
        Fetch the listing and return the items not seen on the previous poll.

        The baseline is only advanced once every new item has been fetched,
        so a failed poll is retried in full on the next call.

        Returns:
            Newly discovered items in listing order (oldest first)

        Raises:
            FetchError, ParseError: If the listing or a detail record cannot
                be fetched. The baseline is left unchanged.
            StorageError: If the previous snapshot cannot be read.
        """
        loop = asyncio.get_running_loop()

        self.last_poll_was_bootstrap = False
        if not self.last_seen_ids:
            self.last_poll_was_bootstrap = not self._seed_from_snapshot()

        current_ids = await loop.run_in_executor(
            None, self.catalog_client.fetch_catalog_ids
        )
        new_ids = self.calc_new_item_ids(current_ids)

        if self.last_poll_was_bootstrap:
            logger.info(
                f"No previous snapshot; {len(new_ids)} listed items count as new"
            )
            if self.seed_on_bootstrap:
                self._commit(current_ids)
                logger.info("Baseline recorded without reporting bootstrap items")
                return []

        items: List[Item] = []
        for index, item_id in enumerate(new_ids):
            if index > 0 and self.fetch_interval > 0:
                await asyncio.sleep(self.fetch_interval)

            item = await loop.run_in_executor(
                None, self.catalog_client.fetch_item_detail, item_id
            )
            self._persist_item(item)
            logger.info(f"New item found: {item.id} - {item.name} ({item.url})")
            items.append(item)

        # Committed only after every detail fetch so a failed poll is redone
        self._commit(current_ids)

        logger.info(
            f"Poll complete: {len(current_ids)} listed, {len(items)} new items"
        )
        return items

    def calc_new_item_ids(self, item_ids: List[int]) -> List[int]:
        """Return the ids absent from the baseline, preserving order."""
        return [item_id for item_id in item_ids if item_id not in self.last_seen_ids]

    def _seed_from_snapshot(self) -> bool:
        """Load the baseline from the latest snapshot. Returns False if none."""
        snapshot = self.repository.load_latest_snapshot()
        if snapshot is None or not snapshot.item_ids:
            return False

        self.last_seen_ids = set(snapshot.item_ids)
        logger.info(
            f"Seeded baseline with {len(self.last_seen_ids)} ids from snapshot "
            f"taken at {snapshot.fetched_at}"
        )
        return True

    def _persist_item(self, item: Item) -> None:
        try:
            self.repository.persist_item_record(item)
        except StorageError as e:
            logger.error(f"Could not persist record for item {item.id}: {e}")

    def _commit(self, current_ids: List[int]) -> None:
        """Save the snapshot and advance the in-memory baseline."""
        try:
            self.repository.save_snapshot(list(current_ids), datetime.now(timezone.utc))
        except StorageError as e:
            logger.error(f"Could not save poll snapshot: {e}")

        self.last_seen_ids = set(current_ids)

