"""
Tests for destination routing.
"""

from unittest.mock import patch

import pytest
from factories import make_item, single_rule_filter, text_rule

from booth_notifier.components.destination_router import (
    AudienceGateCache,
    DestinationRouter,
)
from booth_notifier.models.destination import AudienceGate, Destination, Guild
from booth_notifier.models.filter import Field
from booth_notifier.utils.error_handling import (
    ErrorCategory,
    ErrorTracker,
    StorageError,
    get_error_tracker,
)

GUILD_ID = 100
D1 = 1001
D2 = 1002
NSFW = 1003
FALLBACK = 1900
ADULT_FALLBACK = 1901

VRCHAT_FILTER = single_rule_filter(text_rule(Field.TAGS, "VRChat")).to_yaml()
MATCH_ALL_NAMES = single_rule_filter(text_rule(Field.NAME, "")).to_yaml()


@pytest.fixture
def router(repository, transport):
    return DestinationRouter(repository, transport)


def general_item(item_id=1, tags=("VRChat", "Avatar")):
    return make_item(item_id=item_id, name=f"item {item_id}", tags=tags)


def adult_item(item_id=9, tags=("VRChat",)):
    return make_item(item_id=item_id, name=f"item {item_id}", tags=tags, is_adult=True)


class TestVRChatScenario:
    """Guild with one VRChat channel and a general fallback."""

    @pytest.fixture(autouse=True)
    def setup_guild(self, repository, transport):
        repository.filters[1] = VRCHAT_FILTER
        repository.add_guild(
            Guild(id=GUILD_ID, fallback_destination_id=FALLBACK),
            [Destination(id=D1, guild_id=GUILD_ID, filter_id=1)],
        )
        transport.gates = {
            D1: AudienceGate.GENERAL_ONLY,
            FALLBACK: AudienceGate.GENERAL_ONLY,
        }

    @pytest.mark.asyncio
    async def test_matching_item_goes_to_channel_only(self, router, transport):
        summary = await router.dispatch([general_item(tags=["VRChat", "Avatar"])])

        assert transport.delivered_to() == [D1]
        assert summary.deliveries == 1
        assert summary.fallback_deliveries == 0

    @pytest.mark.asyncio
    async def test_unmatched_item_goes_to_fallback_only(self, router, transport):
        summary = await router.dispatch([general_item(tags=["Furniture"])])

        assert transport.delivered_to() == [FALLBACK]
        assert summary.fallback_deliveries == 1

    @pytest.mark.asyncio
    async def test_adult_item_without_adult_fallback_goes_nowhere(
        self, router, transport
    ):
        errors_before = get_error_tracker().get_error_stats()["total_errors"]

        summary = await router.dispatch([adult_item()])

        assert transport.deliveries == []
        assert summary.total == 0
        assert summary.failures == 0
        assert get_error_tracker().get_error_stats()["total_errors"] == errors_before

    @pytest.mark.asyncio
    async def test_items_keep_poll_order(self, router, transport):
        items = [
            general_item(1, ["VRChat"]),
            general_item(2, ["Furniture"]),
            general_item(3, ["VRChat"]),
        ]

        await router.dispatch(items)

        assert [alert.title for _, alert in transport.deliveries] == [
            "item 1",
            "item 2",
            "item 3",
        ]
        assert transport.delivered_to() == [D1, FALLBACK, D1]


class TestAudienceGate:
    """Test that adult and general content never cross."""

    @pytest.fixture(autouse=True)
    def setup_guild(self, repository, transport):
        repository.filters[1] = MATCH_ALL_NAMES
        repository.add_guild(
            Guild(
                id=GUILD_ID,
                fallback_destination_id=FALLBACK,
                adult_fallback_destination_id=ADULT_FALLBACK,
            ),
            [
                Destination(id=D1, guild_id=GUILD_ID, filter_id=1),
                Destination(id=NSFW, guild_id=GUILD_ID, filter_id=1),
            ],
        )
        transport.gates = {D1: AudienceGate.GENERAL_ONLY, NSFW: AudienceGate.ADULT_ONLY}

    @pytest.mark.asyncio
    async def test_adult_item_never_reaches_general_channel(self, router, transport):
        await router.dispatch([adult_item()])

        assert D1 not in transport.delivered_to()
        assert transport.delivered_to() == [NSFW]

    @pytest.mark.asyncio
    async def test_general_item_skips_adult_channel(self, router, transport):
        await router.dispatch([general_item()])

        assert transport.delivered_to() == [D1]

    @pytest.mark.asyncio
    async def test_adult_item_uses_adult_fallback(self, router, repository, transport):
        repository.destinations[GUILD_ID] = [
            Destination(id=D1, guild_id=GUILD_ID, filter_id=1)
        ]

        await router.dispatch([adult_item()])

        assert transport.delivered_to() == [ADULT_FALLBACK]

    @pytest.mark.asyncio
    async def test_gate_resolved_once_per_destination(self, router, transport):
        await router.dispatch([general_item(1), general_item(2), adult_item(3)])

        assert sorted(transport.gate_lookups) == [D1, NSFW]

    @pytest.mark.asyncio
    async def test_gate_looked_up_again_on_next_pass(self, router, transport):
        await router.dispatch([general_item(1)])

        # Channel switched to age-restricted between passes
        transport.gates[D1] = AudienceGate.ADULT_ONLY
        await router.dispatch([general_item(2)])

        assert transport.gate_lookups.count(D1) == 2
        assert transport.delivered_to("item 1") == [D1]
        assert transport.delivered_to("item 2") == [FALLBACK]

    @pytest.mark.asyncio
    async def test_gate_lookup_failure_makes_destination_non_matching(
        self, router, transport
    ):
        del transport.gates[D1]

        await router.dispatch([general_item(1), general_item(2)])

        assert transport.delivered_to() == [FALLBACK, FALLBACK]
        assert transport.gate_lookups.count(D1) == 1


class TestFallbackExclusivity:
    """Test that the fallback only receives items nobody matched."""

    @pytest.fixture(autouse=True)
    def setup_guild(self, repository, transport):
        repository.filters[1] = VRCHAT_FILTER
        repository.filters[2] = MATCH_ALL_NAMES
        repository.add_guild(
            Guild(id=GUILD_ID, fallback_destination_id=FALLBACK),
            [
                Destination(id=D2, guild_id=GUILD_ID, filter_id=2),
                Destination(id=D1, guild_id=GUILD_ID, filter_id=1),
                Destination(id=1500, guild_id=GUILD_ID, filter_id=None),
            ],
        )
        transport.gates = {D1: AudienceGate.GENERAL_ONLY, D2: AudienceGate.GENERAL_ONLY}

    @pytest.mark.asyncio
    async def test_fallback_skipped_when_any_channel_matches(self, router, transport):
        summary = await router.dispatch([general_item()])

        assert transport.delivered_to() == [D1, D2]
        assert FALLBACK not in transport.delivered_to()
        assert summary.deliveries == 2

    @pytest.mark.asyncio
    async def test_delivery_failure_does_not_trigger_fallback(self, router, transport):
        transport.failing = {D1, D2}

        summary = await router.dispatch([general_item()])

        assert transport.deliveries == []
        assert summary.failures == 2
        assert summary.fallback_deliveries == 0

    @pytest.mark.asyncio
    async def test_delivery_failure_does_not_block_other_channels(
        self, router, transport
    ):
        transport.failing = {D1}

        summary = await router.dispatch([general_item()])

        assert transport.delivered_to() == [D2]
        assert summary.failures == 1
        assert summary.deliveries == 1

    @pytest.mark.asyncio
    async def test_filters_loaded_in_one_lookup_per_guild(self, router, repository):
        await router.dispatch([general_item(1), general_item(2)])

        assert repository.filter_lookups == [[1, 2]]


class TestBrokenFilters:
    """Test destinations whose stored filter cannot be used."""

    @pytest.fixture(autouse=True)
    def setup_guild(self, repository, transport):
        repository.filters[1] = "groups: [unclosed"
        repository.filters[2] = VRCHAT_FILTER
        repository.add_guild(
            Guild(id=GUILD_ID, fallback_destination_id=FALLBACK),
            [
                Destination(id=D1, guild_id=GUILD_ID, filter_id=1),
                Destination(id=D2, guild_id=GUILD_ID, filter_id=2),
                Destination(id=NSFW, guild_id=GUILD_ID, filter_id=42),
            ],
        )
        transport.gates = {
            D1: AudienceGate.GENERAL_ONLY,
            D2: AudienceGate.GENERAL_ONLY,
            NSFW: AudienceGate.GENERAL_ONLY,
        }

    @pytest.mark.asyncio
    async def test_malformed_filter_never_matches(self, router, transport):
        await router.dispatch([general_item(1, ["VRChat"]), general_item(2, ["Other"])])

        assert transport.delivered_to("item 1") == [D2]
        assert transport.delivered_to("item 2") == [FALLBACK]

    @pytest.mark.asyncio
    async def test_malformed_filter_logged_once_per_pass(self, router):
        tracker = ErrorTracker()

        with patch(
            "booth_notifier.components.destination_router.get_error_tracker",
            return_value=tracker,
        ):
            await router.dispatch([general_item(i) for i in range(1, 6)])

        errors = list(tracker.errors)
        assert [e.context.get("filter_id") for e in errors] == [1]
        assert errors[0].category is ErrorCategory.FILTER_EVALUATION


class TestStorageFailures:
    """Test guild-level storage failures."""

    @pytest.mark.asyncio
    async def test_guild_load_failure_skips_pass(self, router, repository, transport):
        def fail():
            raise StorageError("database is locked")

        repository.load_guilds = fail

        summary = await router.dispatch([general_item()])

        assert summary.total == 0
        assert transport.deliveries == []

    @pytest.mark.asyncio
    async def test_destination_load_failure_skips_only_that_guild(
        self, router, repository, transport
    ):
        repository.add_guild(Guild(id=1, fallback_destination_id=11))
        repository.add_guild(Guild(id=2, fallback_destination_id=22))
        original = repository.load_destinations

        def flaky(guild_id):
            if guild_id == 1:
                raise StorageError("database is locked")
            return original(guild_id)

        repository.load_destinations = flaky

        await router.dispatch([general_item()])

        assert transport.delivered_to() == [22]

    @pytest.mark.asyncio
    async def test_no_items_touches_nothing(self, router, repository, transport):
        summary = await router.dispatch([])

        assert summary.total == 0
        assert transport.gate_lookups == []
        assert repository.filter_lookups == []


class TestAudienceGateCache:
    """Test the per-pass gate cache."""

    @pytest.mark.asyncio
    async def test_caches_successful_and_failed_lookups(self, transport):
        transport.gates = {D1: AudienceGate.ADULT_ONLY}
        cache = AudienceGateCache(transport)

        assert await cache.get(D1) is AudienceGate.ADULT_ONLY
        assert await cache.get(D1) is AudienceGate.ADULT_ONLY
        assert await cache.get(D2) is None
        assert await cache.get(D2) is None

        assert transport.gate_lookups == [D1, D2]
        assert len(cache) == 2
