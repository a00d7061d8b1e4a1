"""Process-wide logging setup for the CLI and API entry points."""

import logging
from typing import Optional

from relayflow.config import config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once.

    Args:
        level: Log level name; defaults to RELAYFLOW_LOG_LEVEL (DEBUG when
            RELAYFLOW_DEBUG is set).
    """
    resolved = (level or ("DEBUG" if config.debug else config.log_level)).upper()
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
    logging.getLogger().setLevel(resolved)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(logging.WARNING, logging.getLogger().level))
