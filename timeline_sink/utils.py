"""
Clock and host identity helpers.
"""
import logging
import socket
from datetime import datetime

import pytz

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def current_millis() -> int:
    """
    Get the current UTC time in epoch milliseconds.

    Returns:
        int: Milliseconds since the epoch
    """
    return int(datetime.now(pytz.UTC).timestamp() * 1000)


def get_hostname() -> str:
    """
    Identify the local host the way collectors expect to see it.

    Returns:
        str: Fully qualified name when available, otherwise the short hostname

    Raises:
        ConfigurationError: If no hostname can be determined
    """
    try:
        hostname = socket.getfqdn() or socket.gethostname()
    except OSError as e:
        logger.error("Could not identify hostname.")
        raise ConfigurationError("Could not identify hostname.") from e

    if not hostname:
        logger.error("Could not identify hostname.")
        raise ConfigurationError("Could not identify hostname.")
    return hostname
