"""
Destination routing for the BOOTH notifier.

This module fans new items out to every registered guild. Within a guild an
item goes to each destination whose audience gate admits it and whose filter
matches; when no destination matched, the guild's fallback channel for the
item's classification receives it instead.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Set

from ..interfaces import IDestinationTransport, IItemRepository
from ..models.alert import FormattedAlert
from ..models.destination import AudienceGate, Destination, Guild
from ..models.filter import Filter, parse_filter
from ..models.item import Item
from ..utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    ParseError,
    StorageError,
    TransportError,
    get_error_tracker,
)
from .alert_formatter import AlertFormatter
from .filter_engine import FilterEngine

logger = logging.getLogger(__name__)

COMPONENT = "destination_router"


@dataclass
class DispatchSummary:
    """Counters describing one dispatch pass."""

    deliveries: int = 0
    fallback_deliveries: int = 0
    failures: int = 0

    @property
    def total(self) -> int:
        return self.deliveries + self.fallback_deliveries


class AudienceGateCache:
    """Lazily resolved audience gates, valid for a single dispatch pass.

    A failed lookup is remembered as ``None`` so the destination is skipped
    for the rest of the pass instead of being queried once per item.
    """

    def __init__(self, transport: IDestinationTransport):
        self.transport = transport
        self._gates: Dict[int, Optional[AudienceGate]] = {}

    async def get(self, destination_id: int) -> Optional[AudienceGate]:
        if destination_id in self._gates:
            return self._gates[destination_id]

        loop = asyncio.get_running_loop()
        try:
            gate: Optional[AudienceGate] = await loop.run_in_executor(
                None, self.transport.resolve_audience_gate, destination_id
            )
        except TransportError as e:
            logger.warning(
                f"Could not resolve audience gate for destination {destination_id}: {e}"
            )
            gate = None

        self._gates[destination_id] = gate
        return gate

    def __len__(self) -> int:
        return len(self._gates)


class DestinationRouter:
    """Routes new items to guild destinations."""

    def __init__(
        self,
        repository: IItemRepository,
        transport: IDestinationTransport,
        filter_engine: Optional[FilterEngine] = None,
        formatter: Optional[AlertFormatter] = None,
    ):
        """
        Initialize the router.

        Args:
            repository: Source of guilds, destinations and stored filters
            transport: Messaging transport used for gates and delivery
            filter_engine: Evaluator for destination filters
            formatter: Renders items into alerts
        """
        self.repository = repository
        self.transport = transport
        self.filter_engine = filter_engine or FilterEngine()
        self.formatter = formatter or AlertFormatter()

    async def dispatch(self, items: List[Item]) -> DispatchSummary:
        """
        Deliver items to every guild, preserving item order within a guild.

        Returns:
            DispatchSummary: Delivery counters for the pass
        """
        summary = DispatchSummary()
        if not items:
            return summary

        try:
            guilds = self.repository.load_guilds()
        except StorageError as e:
            self._record(e, ErrorCategory.STORAGE, "Failed to load guilds")
            return summary

        gate_cache = AudienceGateCache(self.transport)
        alerts: Dict[int, FormattedAlert] = {}

        for guild in guilds:
            await self._dispatch_guild(guild, items, gate_cache, alerts, summary)

        logger.info(
            f"Dispatched {len(items)} items to {len(guilds)} guilds: "
            f"{summary.deliveries} matched, {summary.fallback_deliveries} fallback, "
            f"{summary.failures} failed"
        )
        return summary

    async def _dispatch_guild(
        self,
        guild: Guild,
        items: List[Item],
        gate_cache: AudienceGateCache,
        alerts: Dict[int, FormattedAlert],
        summary: DispatchSummary,
    ) -> None:
        try:
            destinations = self.repository.load_destinations(guild.id)
            filters = self._load_filters(guild, destinations)
        except StorageError as e:
            self._record(
                e,
                ErrorCategory.STORAGE,
                f"Skipping guild {guild.id}: could not load destinations",
                {"guild_id": guild.id},
            )
            return

        # Stable visiting order within the guild
        destinations = sorted(destinations, key=lambda d: d.id)

        for item in items:
            matched = False

            for destination in destinations:
                if destination.filter_id is None:
                    continue

                filter_ = filters.get(destination.filter_id)
                if filter_ is None:
                    continue

                gate = await gate_cache.get(destination.id)
                if gate is None or not gate.allows(item.is_adult):
                    continue

                if not self.filter_engine.evaluate(filter_, item):
                    continue

                # A filter match suppresses the fallback even if delivery fails
                matched = True
                if await self._deliver(destination.id, item, alerts, summary):
                    summary.deliveries += 1

            if matched:
                continue

            fallback_id = guild.fallback_for(item.is_adult)
            if fallback_id is None:
                logger.debug(
                    f"No {'adult ' if item.is_adult else ''}fallback in guild "
                    f"{guild.id} for item {item.id}"
                )
                continue

            if await self._deliver(fallback_id, item, alerts, summary):
                summary.fallback_deliveries += 1

    def _load_filters(
        self, guild: Guild, destinations: List[Destination]
    ) -> Dict[int, Filter]:
        """Load and parse the filters used by a guild in one lookup.

        Filters that fail to parse are logged once and left out, so their
        destinations never match.
        """
        filter_ids: Set[int] = {
            d.filter_id for d in destinations if d.filter_id is not None
        }
        if not filter_ids:
            return {}

        texts = self.repository.load_filters_by_ids(sorted(filter_ids))

        filters: Dict[int, Filter] = {}
        for filter_id in sorted(filter_ids):
            text = texts.get(filter_id)
            if text is None:
                logger.warning(
                    f"Filter {filter_id} referenced in guild {guild.id} does not exist"
                )
                continue

            try:
                filters[filter_id] = parse_filter(text)
            except ParseError as e:
                self._record(
                    e,
                    ErrorCategory.FILTER_EVALUATION,
                    f"Stored filter {filter_id} is malformed",
                    {"guild_id": guild.id, "filter_id": filter_id},
                    severity=ErrorSeverity.LOW,
                )

        return filters

    async def _deliver(
        self,
        destination_id: int,
        item: Item,
        alerts: Dict[int, FormattedAlert],
        summary: DispatchSummary,
    ) -> bool:
        alert = alerts.get(item.id)
        if alert is None:
            alert = self.formatter.format_alert(item)
            alerts[item.id] = alert

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None, self.transport.deliver, destination_id, alert
            )
            logger.info(f"Delivered item {item.id} to destination {destination_id}")
            return True

        except TransportError as e:
            summary.failures += 1
            self._record(
                e,
                ErrorCategory.MESSAGE_DELIVERY,
                f"Failed to deliver item {item.id} to destination {destination_id}",
                {"item_id": item.id, "destination_id": destination_id},
            )
            return False

    @staticmethod
    def _record(
        error: Exception,
        category: ErrorCategory,
        message: str,
        context: Optional[dict] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
    ) -> None:
        logger.error(f"{message}: {error}")
        get_error_tracker().record_error(
            component=COMPONENT,
            category=category,
            severity=severity,
            message=message,
            exception=error,
            context=context,
        )
