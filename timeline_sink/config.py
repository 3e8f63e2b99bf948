"""
Configuration settings for the timeline metrics sink.
"""
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from .exceptions import ConfigurationError

# Collector configuration
COLLECTOR_HOST = os.getenv('TIMELINE_COLLECTOR_HOST', 'localhost')
COLLECTOR_PORT = int(os.getenv('TIMELINE_COLLECTOR_PORT', '6188'))
COLLECTOR_PROTOCOL = os.getenv('TIMELINE_COLLECTOR_PROTOCOL', 'http')
COLLECTOR_PATH = '/ws/v1/timeline/metrics'

# Cache configuration
MAX_ROW_CACHE_SIZE = int(os.getenv('TIMELINE_MAX_ROW_CACHE_SIZE', '10000'))  # samples per metric name
SEND_INTERVAL = int(os.getenv('TIMELINE_SEND_INTERVAL', '59000'))  # milliseconds

# HTTP client configuration
CONNECT_TIMEOUT = float(os.getenv('TIMELINE_CONNECT_TIMEOUT', '5'))  # seconds
READ_TIMEOUT = float(os.getenv('TIMELINE_READ_TIMEOUT', '10'))  # seconds
SKIPPED_FAILURES_TO_LOG = 100

# Collector resolution
RESOLVE_ATTEMPTS = int(os.getenv('TIMELINE_RESOLVE_ATTEMPTS', '3'))
RESOLVE_DELAY = float(os.getenv('TIMELINE_RESOLVE_DELAY', '1'))  # seconds

# Logging configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

# Property keys as they appear in the sink's properties/JSON file
PROPERTY_KEYS = {
    'collector': 'collector_host',
    'port': 'collector_port',
    'protocol': 'protocol',
    'maxRowCacheSize': 'max_row_cache_size',
    'sendInterval': 'send_interval',
    'connectTimeout': 'connect_timeout',
    'readTimeout': 'read_timeout',
    'resolveAttempts': 'resolve_attempts',
    'resolveDelay': 'resolve_delay',
}

SUPPORTED_PROTOCOLS = ('http', 'https')


@dataclass
class SinkConfig:
    """Resolved settings for one sink instance."""
    collector_host: str = COLLECTOR_HOST
    collector_port: int = COLLECTOR_PORT
    protocol: str = COLLECTOR_PROTOCOL
    max_row_cache_size: int = MAX_ROW_CACHE_SIZE
    send_interval: int = SEND_INTERVAL
    connect_timeout: float = CONNECT_TIMEOUT
    read_timeout: float = READ_TIMEOUT
    resolve_attempts: int = RESOLVE_ATTEMPTS
    resolve_delay: float = RESOLVE_DELAY

    def __post_init__(self):
        self.protocol = str(self.protocol).lower()
        if self.protocol not in SUPPORTED_PROTOCOLS:
            raise ConfigurationError(f"Unsupported collector protocol: {self.protocol}")
        if not self.collector_host:
            raise ConfigurationError("Collector host is not configured")
        for name in ('collector_port', 'max_row_cache_size', 'send_interval',
                     'connect_timeout', 'read_timeout', 'resolve_attempts'):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if self.resolve_delay < 0:
            raise ConfigurationError(f"resolve_delay must not be negative, got {self.resolve_delay}")

    @classmethod
    def from_mapping(cls, props: Optional[Mapping[str, Any]] = None) -> 'SinkConfig':
        """
        Build a config from a mapping of properties.

        Keys may be the sink's property names (``collector``, ``port``,
        ``maxRowCacheSize``, ``sendInterval``...) or the attribute names of
        this class. Unknown keys are ignored and missing keys keep their
        environment defaults.

        Args:
            props (Mapping, optional): Raw configuration values

        Returns:
            SinkConfig: The validated configuration

        Raises:
            ConfigurationError: If a value cannot be converted or is out of range
        """
        kwargs: Dict[str, Any] = {}
        types = {f.name: f.type for f in fields(cls)}

        for key, value in (props or {}).items():
            attr = PROPERTY_KEYS.get(key, key.replace('-', '_'))
            if attr not in types or value is None:
                continue
            kwargs[attr] = _coerce(attr, value, types[attr])

        return cls(**kwargs)


def _coerce(name: str, value: Any, target: Any) -> Any:
    # dataclass field types are plain classes here, or their names as strings
    target_name = getattr(target, '__name__', target)
    try:
        if target_name == 'int':
            if isinstance(value, float) and not value.is_integer():
                raise ValueError(value)
            return int(str(value).strip()) if isinstance(value, str) else int(value)
        if target_name == 'float':
            return float(value)
        return str(value).strip()
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid value for {name}: {value!r}")
