"""
Main application orchestrator for the BOOTH notifier.

This module wires the components together, runs the poll-then-dispatch cycle
on a fixed wall-clock schedule, and handles graceful shutdown.
"""

import asyncio
import signal
from datetime import datetime
from typing import Any, Dict, Optional

from .components.alert_formatter import AlertFormatter
from .components.booth_client import BoothClient
from .components.change_detector import ChangeDetector
from .components.destination_router import DestinationRouter, DispatchSummary
from .components.filter_engine import FilterEngine
from .components.message_dispatcher import DiscordDispatcher
from .models.config import Configuration
from .services.config_manager import ConfigurationManager
from .services.repository import SQLiteRepository
from .utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    FetchError,
    NotifierError,
    ParseError,
    StorageError,
    categorize,
    get_error_tracker,
    with_error_handling,
)
from .utils.logging import LoggingManager, get_logger, setup_logging


class ApplicationOrchestrator:
    """
    Main application orchestrator that coordinates all system components.

    One cycle polls the catalog for new items and routes them to the
    registered Discord channels. Cycles never overlap.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the application orchestrator.

        Args:
            config_path: Path to configuration file. If None, uses default paths.
        """
        self.logger = get_logger("orchestrator")

        self.config_path = config_path
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._cycle_lock = asyncio.Lock()

        self.error_tracker = get_error_tracker()
        self._logging_manager: Optional[LoggingManager] = None

        # Component instances
        self._config_manager: Optional[ConfigurationManager] = None
        self._repository: Optional[SQLiteRepository] = None
        self._catalog_client: Optional[BoothClient] = None
        self._dispatcher: Optional[DiscordDispatcher] = None
        self._change_detector: Optional[ChangeDetector] = None
        self._router: Optional[DestinationRouter] = None

        # System state
        self._config: Optional[Configuration] = None
        self._startup_time: Optional[datetime] = None
        self._component_health: Dict[str, bool] = {}
        self._error_counts: Dict[str, int] = {}
        self._cycle_count = 0
        self._skipped_cycles = 0
        self._last_cycle_at: Optional[datetime] = None
        self._last_summary: Optional[DispatchSummary] = None

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._signal_handler, signum)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no add_signal_handler
                signal.signal(
                    signum,
                    lambda sig, frame: loop.call_soon_threadsafe(
                        self._signal_handler, sig
                    ),
                )

    def _signal_handler(self, signum: int) -> None:
        """Handle shutdown signals."""
        self.logger.info(
            "Received shutdown signal, finishing the current cycle",
            extra={"signal": signum},
        )
        self.request_shutdown()

    def request_shutdown(self) -> None:
        """Stop scheduling new cycles. An in-flight cycle is allowed to finish."""
        self._running = False
        self._shutdown_event.set()

    async def initialize(self) -> bool:
        """
        Load configuration and build all components.

        Returns:
            True if initialization succeeded.

        Raises:
            ConfigError: If the configuration is missing or invalid.
            StorageError: If the database cannot be prepared.
        """
        self._config_manager = ConfigurationManager(self.config_path)
        self._config = self._config_manager.load_config()

        self._logging_manager = setup_logging(
            log_dir=self._config.log_dir, log_level=self._config.log_level
        )
        self.logger.info(
            "Configuration loaded",
            extra={
                "config_path": self._config_manager.config_path,
                "polling_interval": self._config.polling_interval,
            },
        )

        self._initialize_components()
        await self._validate_components()

        self._startup_time = datetime.now()
        self.logger.info("System initialization completed successfully")
        return True

    def _initialize_components(self) -> None:
        """Initialize all system components in dependency order."""
        config = self._config

        self._repository = SQLiteRepository(config.storage.database_path)
        self._repository.init_db()
        self._component_health["repository"] = True
        self.logger.info(
            "Repository initialized",
            extra={"database_path": config.storage.database_path},
        )

        self._catalog_client = BoothClient(config.booth)
        self._component_health["catalog_client"] = True

        self._dispatcher = DiscordDispatcher(config.discord)
        self._component_health["discord"] = True

        self._change_detector = ChangeDetector(
            catalog_client=self._catalog_client,
            repository=self._repository,
            fetch_interval=config.fetch_interval,
            seed_on_bootstrap=config.seed_on_bootstrap,
        )
        self._router = DestinationRouter(
            repository=self._repository,
            transport=self._dispatcher,
            filter_engine=FilterEngine(),
            formatter=AlertFormatter(),
        )
        self.logger.info("Components initialized")

    @with_error_handling(
        component="orchestrator",
        category=ErrorCategory.MESSAGE_DELIVERY,
        severity=ErrorSeverity.HIGH,
        fallback_value=False,
        suppress_exceptions=True,
    )
    async def _validate_components(self) -> bool:
        """Check Discord connectivity. The system starts even when it fails."""
        loop = asyncio.get_running_loop()
        connected = await loop.run_in_executor(None, self._dispatcher.test_connection)
        self._component_health["discord"] = connected
        if not connected:
            self.logger.warning("Discord connection test failed")
        return connected

    async def run_cycle(self) -> bool:
        """
        Run one poll-then-dispatch cycle.

        Returns:
            True if the cycle completed, False if it was skipped because
            another cycle was in flight or if it was aborted by an error.
        """
        if self._cycle_lock.locked():
            self._skipped_cycles += 1
            self.logger.warning("Previous cycle still running, skipping this tick")
            return False

        async with self._cycle_lock:
            self._cycle_count += 1
            self._last_cycle_at = datetime.now()
            cycle_context = {"cycle": self._cycle_count}

            try:
                items = await self._change_detector.poll()
            except (FetchError, ParseError, StorageError) as e:
                self._record_cycle_error(e, "Poll failed, retrying next cycle")
                return False

            if not items:
                self.logger.debug("No new items", extra=cycle_context)
                return True

            self.logger.info(
                f"Found {len(items)} new items",
                extra={**cycle_context, "item_ids": [item.id for item in items]},
            )

            try:
                self._last_summary = await self._router.dispatch(items)
            except NotifierError as e:
                self._record_cycle_error(e, "Dispatch failed")
                return False

            self.logger.info(
                "Cycle complete",
                extra={
                    **cycle_context,
                    "deliveries": self._last_summary.deliveries,
                    "fallback_deliveries": self._last_summary.fallback_deliveries,
                    "failures": self._last_summary.failures,
                },
            )
            return True

    def _record_cycle_error(self, error: Exception, message: str) -> None:
        self._increment_error_count(type(error).__name__)
        self.error_tracker.record_error(
            component="orchestrator",
            category=categorize(error),
            severity=ErrorSeverity.MEDIUM,
            message=message,
            exception=error,
            context={"cycle": self._cycle_count},
        )

    async def start(self) -> None:
        """Run cycles on a fixed wall-clock interval until shutdown."""
        if self._running:
            self.logger.warning("System is already running")
            return

        self._running = True
        self.logger.info("Starting main application loop...")

        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        try:
            while self._running and not self._shutdown_event.is_set():
                try:
                    await self.run_cycle()
                    await self._check_config_reload()
                except Exception as e:
                    self.logger.error(f"Error in main loop: {e}", exc_info=True)
                    self._increment_error_count("main_loop")

                interval = self._config.polling_interval
                next_tick += interval
                now = loop.time()
                if next_tick <= now:
                    missed = int((now - next_tick) // interval) + 1
                    next_tick += missed * interval
                    self.logger.warning(
                        "Cycle overran the polling interval, skipping ticks",
                        extra={"missed_ticks": missed},
                    )

                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(), timeout=next_tick - now
                    )
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False

    @with_error_handling(
        component="orchestrator",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.LOW,
        suppress_exceptions=True,
    )
    async def _check_config_reload(self) -> None:
        """Apply schedule and log level changes from an edited config file."""
        if not self._config_manager.reload_if_changed():
            return

        new_config = self._config_manager.get_config()
        if new_config.polling_interval != self._config.polling_interval:
            self.logger.info(
                "Polling interval changed",
                extra={
                    "old": self._config.polling_interval,
                    "new": new_config.polling_interval,
                },
            )
            self._config.polling_interval = new_config.polling_interval

        if new_config.log_level != self._config.log_level and self._logging_manager:
            self._logging_manager.set_log_level(new_config.log_level)
            self._config.log_level = new_config.log_level

        self.logger.info("Configuration reloaded")

    def _increment_error_count(self, error_type: str) -> None:
        """Increment error count for a specific error type."""
        self._error_counts[error_type] = self._error_counts.get(error_type, 0) + 1

        if self._error_counts[error_type] % 10 == 0:
            self.logger.warning(
                f"High error count for {error_type}: {self._error_counts[error_type]}"
            )

    async def shutdown(self) -> None:
        """Gracefully shutdown the system."""
        self.request_shutdown()

        # Wait for an in-flight cycle
        async with self._cycle_lock:
            pass

        if self._catalog_client:
            self._catalog_client.session.close()
        if self._dispatcher:
            self._dispatcher.session.close()

        uptime = datetime.now() - self._startup_time if self._startup_time else None
        self.logger.info(f"System shutdown complete. Uptime: {uptime}")

    def get_system_status(self) -> Dict[str, Any]:
        """Get current system status information."""
        summary = self._last_summary
        return {
            "running": self._running,
            "startup_time": self._startup_time.isoformat()
            if self._startup_time
            else None,
            "uptime": str(datetime.now() - self._startup_time)
            if self._startup_time
            else None,
            "cycles": self._cycle_count,
            "skipped_cycles": self._skipped_cycles,
            "last_cycle_at": self._last_cycle_at.isoformat()
            if self._last_cycle_at
            else None,
            "last_dispatch": {
                "deliveries": summary.deliveries,
                "fallback_deliveries": summary.fallback_deliveries,
                "failures": summary.failures,
            }
            if summary
            else None,
            "component_health": self._component_health.copy(),
            "error_counts": self._error_counts.copy(),
            "error_stats": self.error_tracker.get_error_stats(),
            "config_loaded": self._config is not None,
        }

    async def run(self) -> None:
        """Run the complete application lifecycle.

        Configuration and storage errors during initialization propagate to
        the caller.
        """
        await self.initialize()
        self._setup_signal_handlers()

        try:
            await self.start()
        finally:
            await self.shutdown()
