"""
Logging setup.

Configures loguru sinks for the CLI and the Dramatiq workers.
"""

import sys

from loguru import logger

from mlm_rewards.config.settings import settings


def setup_logging(component: str = "mlm_rewards", log_file: str | None = None) -> None:
    """
    Configure logger with console output and file rotation.

    Args:
        component: Name logged on startup
        log_file: File sink path (defaults to settings.log_file)
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        log_file or settings.log_file,
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        encoding="utf-8",
    )

    logger.info(f"Starting {component}...")
