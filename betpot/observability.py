"""Logfire observability initialization and instrumentation."""

import logging

import logfire

from betpot import __version__
from betpot.config import Settings

logger = logging.getLogger(__name__)


def initialize_logfire(settings: Settings) -> bool:
    """
    Initialize Logfire and bridge Python logging into it.

    Must be called ONCE at startup, before any engine operation runs.
    Without a token Logfire is still configured locally so that command
    spans are valid, but nothing leaves the process.

    Args:
        settings: Application settings containing the Logfire token

    Returns:
        True when cloud tracking is enabled.
    """
    if not settings.logfire_token:
        logfire.configure(
            send_to_logfire=False,
            console=False,
            service_name="betpot",
            service_version=__version__,
        )
        logger.debug("Logfire token not set - cloud observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="betpot",
            service_version=__version__,
        )

        # Bridge Python logging to Logfire
        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("✓ Logfire cloud tracking initialized")
        return True

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        # Continue running - observability is optional
        return False
