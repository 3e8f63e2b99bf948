"""
Parsing and resolution of collector addresses.
"""
import logging
import re
import socket
from typing import Callable, List, Optional, Tuple

from retrying import retry

from . import config
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

Server = Tuple[str, int]

_SEPARATORS = re.compile(r'[\s,]+')


def parse_servers(specs: Optional[str], default_port: int) -> List[Server]:
    """
    Parse a list of collector addresses.

    Entries are separated by commas or whitespace and may be ``host``,
    ``host:port`` or ``[ipv6]:port``. Entries without a port use ``default_port``.

    Args:
        specs (str): Address list, e.g. "c1.example.com:6188, c2.example.com"
        default_port (int): Port for entries that do not name one

    Returns:
        list: (host, port) tuples in the order given

    Raises:
        ConfigurationError: If an entry has an invalid port
    """
    servers: List[Server] = []
    if not specs:
        return servers

    for entry in _SEPARATORS.split(specs.strip()):
        if not entry:
            continue
        host, port = _split_host_port(entry, default_port)
        servers.append((host, port))
    return servers


def _split_host_port(entry: str, default_port: int) -> Server:
    if entry.startswith('['):
        end = entry.find(']')
        if end == -1:
            raise ConfigurationError(f"Invalid collector address: {entry}")
        host = entry[1:end]
        rest = entry[end + 1:]
        port_text = rest[1:] if rest.startswith(':') else None
        if rest and port_text is None:
            raise ConfigurationError(f"Invalid collector address: {entry}")
    elif entry.count(':') == 1:
        host, port_text = entry.split(':')
    else:
        # bare hostname, or an unbracketed IPv6 literal
        host, port_text = entry, None

    if not host:
        raise ConfigurationError(f"Invalid collector address: {entry}")
    if not port_text:
        return host, default_port

    try:
        port = int(port_text)
    except ValueError:
        raise ConfigurationError(f"Invalid port in collector address: {entry}")
    if not 0 < port < 65536:
        raise ConfigurationError(f"Invalid port in collector address: {entry}")
    return host, port


def _retry_if_lookup_error(exception: Exception) -> bool:
    """Return True if we should retry (in this case when the name lookup failed)"""
    return isinstance(exception, OSError)


def resolve_first(candidates: List[Server],
                  resolver: Optional[Callable] = None,
                  attempts: int = config.RESOLVE_ATTEMPTS,
                  delay: float = config.RESOLVE_DELAY) -> Server:
    """
    Pick the first collector address that resolves.

    Each candidate's lookup is retried ``attempts`` times before moving on to
    the next one. Only the chosen address is used afterwards; there is no
    failover to later candidates once the sink is running.

    Args:
        candidates (list): (host, port) tuples from ``parse_servers``
        resolver (callable, optional): Name lookup with the ``getaddrinfo`` signature. Defaults to socket.getaddrinfo.
        attempts (int): Lookup attempts per candidate
        delay (float): Seconds between attempts

    Returns:
        tuple: The chosen (host, port)

    Raises:
        ConfigurationError: If no candidate resolves
    """
    if not candidates:
        logger.error("No collector address configured")
        raise ConfigurationError("No collector address configured")

    resolver = resolver or socket.getaddrinfo

    @retry(
        retry_on_exception=_retry_if_lookup_error,
        stop_max_attempt_number=max(1, attempts),
        wait_fixed=int(delay * 1000)  # milliseconds
    )
    def _lookup(host, port):
        return resolver(host, port, 0, socket.SOCK_STREAM)

    for host, port in candidates:
        try:
            _lookup(host, port)
        except OSError as e:
            logger.warning("Could not resolve collector %s:%s: %s", host, port, e)
            continue
        logger.info("Using collector %s:%s", host, port)
        return host, port

    logger.error("None of the collector addresses could be resolved: %s", candidates)
    raise ConfigurationError(f"Could not resolve any collector address: {candidates}")
