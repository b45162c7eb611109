"""
Main application orchestrator for the Kufar notifier.

This module wires the pipeline components together, runs sync cycles at
startup and on a fixed interval, serves the bot commands, and handles
graceful shutdown.
"""

import asyncio
import signal
import sys
from datetime import datetime
from typing import Any, Dict, Optional

from .components.alert_formatter import AlertFormatter
from .components.delivery_state_tracker import DeliveryStateTracker
from .components.http_client import MarketplaceHttpClient
from .components.listing_fetcher import ListingFetcher
from .components.message_dispatcher import TelegramDispatcher
from .components.parameter_map_cache import ParameterMapCache
from .components.parameter_map_resolver import ParameterMapResolver
from .components.search_query_builder import SearchQueryBuilder
from .components.sync_loop import SyncLoop
from .components.telegram_bot_handler import TelegramBotHandler
from .interfaces import IConfigurationManager, IMessageDispatcher, ITelegramBotHandler
from .models.config import Configuration
from .models.sync import CycleReport
from .services.config_manager import ConfigurationManager
from .services.store import SQLiteStore
from .utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    RetryConfig,
    get_degradation_manager,
    get_error_tracker,
    with_error_handling,
)
from .utils.logging import get_logger, get_logging_stats, setup_logging


class ApplicationOrchestrator:
    """
    Main application orchestrator that coordinates all system components.

    This class manages the lifecycle of all components, schedules sync
    cycles, and handles system startup and shutdown.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the application orchestrator.

        Args:
            config_path: Path to configuration file. If None, uses default paths.
        """
        setup_logging()
        self.logger = get_logger("orchestrator")

        self.config_path = config_path
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._cycle_lock = asyncio.Lock()

        # Error handling and monitoring
        self.error_tracker = get_error_tracker()
        self.degradation_manager = get_degradation_manager()

        # Component instances
        self._config_manager: Optional[IConfigurationManager] = None
        self._store: Optional[SQLiteStore] = None
        self._message_dispatcher: Optional[IMessageDispatcher] = None
        self._bot_handler: Optional[ITelegramBotHandler] = None
        self._sync_loop: Optional[SyncLoop] = None

        # System state
        self._config: Optional[Configuration] = None
        self._startup_time: Optional[datetime] = None
        self._component_health: Dict[str, bool] = {}
        self._last_cycle: Optional[CycleReport] = None
        self._cycles_completed = 0

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        if sys.platform == "win32":
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGBREAK, self._signal_handler)
            return

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, self._signal_handler, signum, None)

    def _signal_handler(self, signum: int, frame) -> None:
        """Handle shutdown signals."""
        self.logger.info(
            "Received shutdown signal, finishing current dispatch before stopping",
            extra={"signal": signum},
        )
        self._shutdown_event.set()

    @with_error_handling(
        component="orchestrator",
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.CRITICAL,
        fallback_value=False,
        suppress_exceptions=True,
    )
    async def initialize(self) -> bool:
        """
        Initialize all system components.

        Returns:
            True if initialization successful, False otherwise.
        """
        self.logger.info("Initializing Kufar notifier...")

        if not await self._load_configuration():
            return False

        if not await self._initialize_components():
            return False

        await self._validate_components()

        self._startup_time = datetime.now()
        self.logger.info("System initialization completed successfully")
        return True

    @with_error_handling(
        component="orchestrator",
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        fallback_value=False,
        suppress_exceptions=True,
    )
    async def _load_configuration(self) -> bool:
        """Load and validate system configuration."""
        self._config_manager = ConfigurationManager(self.config_path)
        self._config = self._config_manager.load_config()
        self._component_health["config_manager"] = True

        setup_logging(self._config.logging.directory, self._config.logging.level)
        self.logger = get_logger("orchestrator")
        self.logger.info(
            "Configuration loaded and validated successfully",
            extra={"config_path": self._config_manager.config_path or "environment"},
        )
        return True

    @with_error_handling(
        component="orchestrator",
        category=ErrorCategory.STORAGE,
        severity=ErrorSeverity.CRITICAL,
        retry_config=RetryConfig(max_attempts=3, base_delay=1.0),
        fallback_value=False,
        suppress_exceptions=True,
    )
    async def _initialize_components(self) -> bool:
        """Initialize all system components in dependency order."""
        config = self._config

        self._store = SQLiteStore(config.storage)
        self._store.init_db()
        self._component_health["store"] = True
        self.logger.info("Store initialized")

        http_client = MarketplaceHttpClient(timeout=config.marketplace.request_timeout)
        resolver = ParameterMapResolver(
            http_client,
            ParameterMapCache(),
            listings_referer=config.marketplace.listings_referer,
        )
        builder = SearchQueryBuilder(
            api_url=config.marketplace.search_api_url,
            page_size=config.marketplace.page_size,
        )
        fetcher = ListingFetcher(http_client)
        tracker = DeliveryStateTracker(self._store)
        self.logger.info("Marketplace components initialized")

        self._message_dispatcher = TelegramDispatcher(
            bot_token=config.telegram.bot_token,
            formatter=AlertFormatter(config.sync.timezone),
            api_base_url=config.telegram.api_base_url,
            max_retries=config.telegram.max_retries,
            retry_delay=config.telegram.retry_delay,
        )
        self._component_health["message_dispatcher"] = True
        self.logger.info("Message dispatcher initialized")

        self._sync_loop = SyncLoop(
            store=self._store,
            resolver=resolver,
            builder=builder,
            fetcher=fetcher,
            tracker=tracker,
            dispatcher=self._message_dispatcher,
            max_concurrent_recipients=config.sync.max_concurrent_recipients,
            stop_event=self._shutdown_event,
        )
        self._component_health["sync_loop"] = True

        if config.telegram.commands_enabled:
            self._bot_handler = TelegramBotHandler(config.telegram.bot_token, self._store)
            self._component_health["bot_handler"] = True
            self.logger.info("Telegram bot handler initialized")

        return True

    async def _validate_components(self) -> None:
        """Check channel connectivity; the system runs on even if it fails."""
        loop = asyncio.get_running_loop()
        connected = await loop.run_in_executor(
            None, self._message_dispatcher.test_connection
        )
        if not connected:
            self.logger.warning("Message dispatcher connection test failed")
            self._component_health["message_dispatcher"] = False
            self.degradation_manager.degrade_component(
                "message_dispatcher",
                "Telegram connection test failed",
                "Deliveries fail and are retried next cycle",
                ErrorSeverity.HIGH,
            )

        healthy_components = sum(1 for health in self._component_health.values() if health)
        self.logger.info(
            f"Component health check: {healthy_components}/"
            f"{len(self._component_health)} components healthy"
        )

    async def run_cycle(self) -> Optional[CycleReport]:
        """Run one sync cycle; overlapping triggers wait for the running one."""
        if self._shutdown_event.is_set():
            return None

        async with self._cycle_lock:
            report = await self._sync_loop.run_cycle()

        self._last_cycle = report
        self._cycles_completed += 1
        return report

    async def _start_bot(self) -> None:
        try:
            await self._bot_handler.start_polling()
        except Exception as e:
            self.logger.error(f"Bot command surface unavailable: {e}", exc_info=True)
            self._component_health["bot_handler"] = False
            self.degradation_manager.degrade_component(
                "bot_handler",
                f"Polling failed to start: {e}",
                "Subscriptions cannot be changed until restart",
                ErrorSeverity.MEDIUM,
            )

    async def _wait_for_shutdown(self, timeout: Optional[float]) -> bool:
        """Wait until shutdown is requested or ``timeout`` elapses."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def _check_config_reload(self) -> None:
        """Apply log level changes from an edited configuration file."""
        if self._config_manager.reload_if_changed():
            new_config = self._config_manager.get_config()
            if new_config.logging.level != self._config.logging.level:
                setup_logging(new_config.logging.directory, new_config.logging.level)
                self.logger.info(
                    "Log level updated", extra={"level": new_config.logging.level}
                )
            self._config = new_config
            self.logger.info("Configuration reloaded; restart to apply other changes")

    async def start(self) -> None:
        """Run the startup cycle, then the schedule, until shutdown."""
        if self._running:
            self.logger.warning("System is already running")
            return

        self._running = True
        sync_config = self._config.sync
        self.logger.info(
            "Starting main application loop...",
            extra={"schedule_interval": sync_config.schedule_interval},
        )

        if self._bot_handler is not None:
            await self._start_bot()

        if sync_config.run_on_startup:
            await self.run_cycle()

        if sync_config.schedule_interval:
            while not await self._wait_for_shutdown(sync_config.schedule_interval):
                self._check_config_reload()
                await self.run_cycle()
        elif self._bot_handler is not None and self._bot_handler.is_polling:
            await self._wait_for_shutdown(None)

    async def shutdown(self) -> None:
        """Gracefully shutdown the system."""
        if not self._running:
            return

        self.logger.info("Initiating graceful shutdown...")
        self._running = False
        self._shutdown_event.set()

        if self._bot_handler is not None:
            await self._bot_handler.stop_polling()
            self.logger.info("Telegram bot stopped")

        uptime = datetime.now() - self._startup_time if self._startup_time else None
        self.logger.info(f"System shutdown complete. Uptime: {uptime}")

    def get_system_status(self) -> Dict[str, Any]:
        """Get current system status information."""
        return {
            "running": self._running,
            "startup_time": self._startup_time.isoformat()
            if self._startup_time
            else None,
            "uptime": str(datetime.now() - self._startup_time)
            if self._startup_time
            else None,
            "component_health": self._component_health.copy(),
            "cycles_completed": self._cycles_completed,
            "last_cycle": self._last_cycle.to_dict() if self._last_cycle else None,
            "errors": self.error_tracker.get_error_stats(),
            "degraded_components": self.degradation_manager.get_all_degraded(),
            "logging": get_logging_stats(),
            "config_loaded": self._config is not None,
        }

    async def run(self, once: bool = False) -> bool:
        """
        Run the complete application lifecycle.

        Args:
            once: Run a single sync cycle without the bot or schedule.

        Returns:
            False if initialization failed or the application crashed.
        """
        try:
            self._setup_signal_handlers()

            if not await self.initialize():
                self.logger.error("System initialization failed")
                return False

            if once:
                self._running = True
                await self.run_cycle()
            else:
                await self.start()
            return True

        except Exception as e:
            self.logger.error(f"Unexpected error in application: {e}", exc_info=True)
            return False
        finally:
            await self.shutdown()
