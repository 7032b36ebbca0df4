"""Polling loop with signal handling, exponential backoff and SIGHUP credential reload."""

from __future__ import annotations

import logging
import random
import signal
import time
from pathlib import Path
from types import FrameType

from .config import AppConfig, load_config
from .discovery.models import SeedAddress
from .exceptions import ConfigError
from .plugin import ECS, EcsDiscoveryPlugin

logger = logging.getLogger(__name__)


class Daemon:
    """Runs a discovery round every polling interval: ask the provider -> log seeds -> sleep."""

    def __init__(
        self,
        config: AppConfig,
        config_path: str | Path | None = None,
        plugin: EcsDiscoveryPlugin | None = None,
    ):
        self._config = config
        self._config_path = Path(config_path) if config_path else None
        self._plugin = plugin or EcsDiscoveryPlugin(config)
        self._provider = self._plugin.seed_hosts_providers()[ECS]()
        self._shutdown = False
        self._reload_requested = False
        self._consecutive_failures = 0
        self._last_seeds: list[SeedAddress] = []

    def run_once(self) -> list[SeedAddress]:
        """Execute a single discovery round."""
        return self._cycle()

    def run(self) -> None:
        """Run the polling loop until shutdown signal."""
        self._install_signal_handlers()
        logger.info("Daemon started, polling every %ds", self._config.polling.interval_seconds)

        attributes = self._plugin.node_attributes()
        if attributes:
            logger.info("Node attributes: %s", attributes)

        while not self._shutdown:
            if self._reload_requested:
                self._reload_requested = False
                self.reload()

            try:
                self._cycle()
                self._consecutive_failures = 0
            except Exception:
                self._consecutive_failures += 1
                logger.exception(
                    "Discovery round failed (consecutive failures: %d)",
                    self._consecutive_failures,
                    extra={"consecutive_failures": self._consecutive_failures},
                )

            sleep_time = self._calculate_sleep()
            logger.debug("Sleeping %.1fs before next round", sleep_time)
            self._interruptible_sleep(sleep_time)

        self.close()
        logger.info("Daemon stopped")

    def close(self) -> None:
        self._plugin.close()

    def reload(self) -> None:
        """Re-read the configuration file and hot-swap the ECS client settings."""
        if self._config_path is None:
            logger.warning("Reload requested but no configuration file is known")
            return
        try:
            config = load_config(self._config_path)
        except ConfigError as exc:
            logger.error("Keeping current ECS client settings, reload failed: %s", exc)
            return
        self._plugin.reload(config)

    def _cycle(self) -> list[SeedAddress]:
        seeds = self._provider.get_seed_addresses()
        if seeds != self._last_seeds:
            logger.info("Seed addresses: %s", ", ".join(str(s) for s in seeds) or "<none>",
                        extra={"seed_count": len(seeds)})
        self._last_seeds = seeds
        return seeds

    def _calculate_sleep(self) -> float:
        """Determine how long to sleep, applying backoff and jitter."""
        base = self._config.polling.interval_seconds

        if self._consecutive_failures > 0:
            base = min(
                self._config.polling.backoff_base_seconds * (2 ** (self._consecutive_failures - 1)),
                self._config.polling.max_backoff_seconds,
            )

        return base + random.uniform(0, self._config.polling.jitter_seconds)

    def _interruptible_sleep(self, seconds: float) -> None:
        """Sleep in short increments so we can respond to signals."""
        end = time.monotonic() + seconds
        while not self._shutdown and not self._reload_requested and time.monotonic() < end:
            remaining = end - time.monotonic()
            time.sleep(min(remaining, 1.0))

    def _install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)
        signal.signal(signal.SIGHUP, self._handle_reload)

    def _handle_shutdown(self, signum: int, frame: FrameType | None) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, shutting down", sig_name)
        self._shutdown = True

    def _handle_reload(self, signum: int, frame: FrameType | None) -> None:
        logger.info("Received SIGHUP, reloading ECS client settings")
        self._reload_requested = True
