#!/usr/bin/env python3
"""
Compliance Reporting Automation - Main Orchestrator
===================================================

Entry point for the compliance reporting engine.

This orchestrator:
1. Loads configuration
2. Configures logging
3. Builds the compliance engine (storage, collaborators, notifications)
4. Seeds schedules and runs the scheduler
5. Handles graceful shutdown on SIGINT/SIGTERM
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime, timezone
from typing import Any

from core.automation import ComplianceReportingAutomation
from core.config import ComplianceConfig, load_config
from core.exceptions import ConfigurationError
from core.logging_config import configure_logging


logger = logging.getLogger(__name__)


class ComplianceOrchestrator:
    """
    Main orchestrator for the compliance engine.

    Owns the engine lifecycle: initialize, run until a shutdown is
    requested, then stop the scheduler and flush notifications.
    """

    def __init__(self, config_path: str = "config.yaml"):
        self._config_path = config_path
        self._config: ComplianceConfig | None = None
        self._automation: ComplianceReportingAutomation | None = None
        self._shutdown_event = asyncio.Event()
        self._startup_time: datetime | None = None

    @property
    def automation(self) -> ComplianceReportingAutomation | None:
        return self._automation

    def initialize(self) -> None:
        """Load configuration and build the engine."""
        self._config = load_config(self._config_path)
        configure_logging(self._config.logging)

        logger.info("=" * 60)
        logger.info("COMPLIANCE REPORTING AUTOMATION - INITIALIZING")
        logger.info("=" * 60)

        self._startup_time = datetime.now(timezone.utc)

        if not self._config.enabled:
            logger.warning("Compliance automation is disabled in configuration")

        self._automation = ComplianceReportingAutomation.from_config(self._config)
        logger.info(
            f"Jurisdictions: {', '.join(self._config.reporting_jurisdictions)} | "
            f"storage: {self._config.persistence.backend} | "
            f"tick interval: {self._config.scheduler.tick_interval_seconds:.0f}s"
        )

    async def start(self) -> None:
        """Start the engine and block until shutdown is requested."""
        if self._automation is None or self._config is None:
            raise RuntimeError("Orchestrator not initialized")

        if not self._config.enabled:
            return

        await self._automation.start()

        stats = self._automation.get_stats()
        logger.info("=" * 60)
        logger.info("COMPLIANCE ENGINE STARTED")
        logger.info(f"  Schedules: {stats['scheduled_reports']}")
        logger.info(f"  Upcoming deadlines (30d): {stats['upcoming_deadlines']}")
        logger.info("=" * 60)

        try:
            await self._shutdown_event.wait()
        except asyncio.CancelledError:
            pass

    async def stop(self) -> None:
        """Stop the engine gracefully."""
        if self._automation is None:
            return

        logger.info("=" * 60)
        logger.info("COMPLIANCE REPORTING AUTOMATION - STOPPING")
        logger.info("=" * 60)

        await self._automation.stop()
        self._automation = None

        uptime = (datetime.now(timezone.utc) - self._startup_time).total_seconds() if self._startup_time else 0
        logger.info(f"Compliance engine stopped after {uptime:.0f}s")

    def request_shutdown(self) -> None:
        """Request graceful shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()

    def get_status(self) -> dict[str, Any]:
        return {
            "startup_time": self._startup_time.isoformat() if self._startup_time else None,
            "engine": self._automation.get_status() if self._automation else None,
        }


def setup_signal_handlers(orchestrator: ComplianceOrchestrator) -> None:
    """Set up signal handlers for graceful shutdown."""
    def handle_signal(sig, frame):
        logger.info(f"Received signal {sig}")
        orchestrator.request_shutdown()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compliance reporting automation engine")
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to the YAML configuration file (default: config.yaml)",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    orchestrator = ComplianceOrchestrator(config_path=args.config)

    try:
        orchestrator.initialize()
    except (FileNotFoundError, ConfigurationError) as e:
        logging.basicConfig(level=logging.ERROR)
        logger.error(f"Cannot start: {e}")
        return 1

    setup_signal_handlers(orchestrator)

    try:
        await orchestrator.start()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await orchestrator.stop()

    return 0


def run() -> None:
    """Console script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
