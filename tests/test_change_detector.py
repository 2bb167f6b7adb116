"""
Tests for the change detector.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, Mock, patch

import pytest
from factories import make_item

from booth_notifier.components.change_detector import ChangeDetector
from booth_notifier.models.snapshot import PollSnapshot
from booth_notifier.utils.error_handling import FetchError, ParseError, StorageError


@pytest.fixture
def catalog_client():
    """Catalog client double returning parsed items for any id."""
    client = Mock()
    client.fetch_catalog_ids.return_value = [3, 4, 5]
    client.fetch_item_detail.side_effect = lambda item_id: make_item(item_id=item_id)
    return client


@pytest.fixture
def repository():
    repo = Mock()
    repo.load_latest_snapshot.return_value = None
    return repo


@pytest.fixture
def detector(catalog_client, repository):
    return ChangeDetector(catalog_client, repository, fetch_interval=0)


class TestChangeDetection:
    """Test new item detection between polls."""

    @pytest.mark.asyncio
    async def test_new_items_are_difference_in_listing_order(self, detector, catalog_client):
        """Baseline {1,2,3} and listing [3,4,5] yield items 4 and 5."""
        detector.last_seen_ids = {1, 2, 3}

        items = await detector.poll()

        assert [item.id for item in items] == [4, 5]
        assert detector.last_seen_ids == {3, 4, 5}
        assert [c.args[0] for c in catalog_client.fetch_item_detail.call_args_list] == [
            4,
            5,
        ]

    @pytest.mark.asyncio
    async def test_unchanged_listing_yields_nothing(self, detector, catalog_client):
        """Re-polling an unchanged listing reports no new items."""
        first = await detector.poll()
        second = await detector.poll()

        assert [item.id for item in first] == [3, 4, 5]
        assert second == []
        assert catalog_client.fetch_item_detail.call_count == 3

    @pytest.mark.asyncio
    async def test_snapshot_saved_every_poll(self, detector, repository):
        """The full listing is persisted even when nothing is new."""
        await detector.poll()
        await detector.poll()

        assert repository.save_snapshot.call_count == 2
        item_ids, fetched_at = repository.save_snapshot.call_args.args
        assert item_ids == [3, 4, 5]
        assert fetched_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_new_items_are_persisted(self, detector, repository):
        items = await detector.poll()

        persisted = [c.args[0] for c in repository.persist_item_record.call_args_list]
        assert persisted == items


class TestBootstrap:
    """Test behaviour when the in-memory baseline is empty."""

    @pytest.mark.asyncio
    async def test_seeds_baseline_from_snapshot(self, detector, repository):
        repository.load_latest_snapshot.return_value = PollSnapshot(
            item_ids=[1, 2, 3], fetched_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
        )

        items = await detector.poll()

        assert [item.id for item in items] == [4, 5]
        assert detector.last_poll_was_bootstrap is False

    @pytest.mark.asyncio
    async def test_no_snapshot_treats_every_item_as_new(self, detector):
        items = await detector.poll()

        assert [item.id for item in items] == [3, 4, 5]
        assert detector.last_poll_was_bootstrap is True

    @pytest.mark.asyncio
    async def test_seed_on_bootstrap_records_without_reporting(
        self, catalog_client, repository
    ):
        detector = ChangeDetector(
            catalog_client, repository, fetch_interval=0, seed_on_bootstrap=True
        )

        assert await detector.poll() == []
        catalog_client.fetch_item_detail.assert_not_called()
        repository.save_snapshot.assert_called_once()
        assert detector.last_seen_ids == {3, 4, 5}

        catalog_client.fetch_catalog_ids.return_value = [3, 4, 5, 6]
        items = await detector.poll()
        assert [item.id for item in items] == [6]

    @pytest.mark.asyncio
    async def test_snapshot_load_failure_propagates(self, detector, repository):
        repository.load_latest_snapshot.side_effect = StorageError("disk I/O error")

        with pytest.raises(StorageError):
            await detector.poll()


class TestFailures:
    """Test at-least-once behaviour on failures."""

    @pytest.mark.asyncio
    async def test_listing_failure_keeps_baseline(self, detector, catalog_client, repository):
        detector.last_seen_ids = {1, 2, 3}
        catalog_client.fetch_catalog_ids.side_effect = FetchError("timeout")

        with pytest.raises(FetchError):
            await detector.poll()

        assert detector.last_seen_ids == {1, 2, 3}
        repository.save_snapshot.assert_not_called()

    @pytest.mark.asyncio
    async def test_detail_failure_keeps_baseline_and_retries(
        self, detector, catalog_client, repository
    ):
        """A failed detail fetch aborts the poll; the items come back next time."""
        detector.last_seen_ids = {1, 2, 3}

        def flaky(item_id):
            if item_id == 5:
                raise ParseError("item 5: missing required key 'name'")
            return make_item(item_id=item_id)

        catalog_client.fetch_item_detail.side_effect = flaky

        with pytest.raises(ParseError):
            await detector.poll()

        assert detector.last_seen_ids == {1, 2, 3}
        repository.save_snapshot.assert_not_called()

        catalog_client.fetch_item_detail.side_effect = lambda i: make_item(item_id=i)
        items = await detector.poll()
        assert [item.id for item in items] == [4, 5]

    @pytest.mark.asyncio
    async def test_snapshot_save_failure_is_logged(self, detector, repository, caplog):
        repository.save_snapshot.side_effect = StorageError("database is locked")

        items = await detector.poll()

        assert len(items) == 3
        assert detector.last_seen_ids == {3, 4, 5}
        assert "Could not save poll snapshot" in caplog.text

    @pytest.mark.asyncio
    async def test_item_record_failure_is_logged(self, detector, repository, caplog):
        repository.persist_item_record.side_effect = StorageError("database is locked")

        items = await detector.poll()

        assert [item.id for item in items] == [3, 4, 5]
        assert "Could not persist record for item 3" in caplog.text


class TestPacing:
    """Test the delay between detail fetches."""

    @pytest.mark.asyncio
    async def test_sleeps_between_fetches_only(self, catalog_client, repository):
        detector = ChangeDetector(catalog_client, repository, fetch_interval=1.5)

        with patch(
            "booth_notifier.components.change_detector.asyncio.sleep",
            new_callable=AsyncMock,
        ) as mock_sleep:
            await detector.poll()

        assert mock_sleep.await_count == 2
        mock_sleep.assert_awaited_with(1.5)

    def test_calc_new_item_ids_preserves_order(self, detector):
        detector.last_seen_ids = {2}
        assert detector.calc_new_item_ids([5, 2, 1, 9]) == [5, 1, 9]
