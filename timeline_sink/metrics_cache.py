"""
In-memory cache that buffers samples per metric name until they are due to be sent.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional

from . import config

logger = logging.getLogger(__name__)


class Sample(NamedTuple):
    """A single measurement."""
    timestamp: int
    value: float


@dataclass
class MetricSeries:
    """
    Buffered, not yet sent samples for one metric name.

    ``values`` maps timestamp to value; a repeated timestamp overwrites the
    earlier value. ``start_time`` is the timestamp of the first sample since the
    last flush and ``last_flush_time`` the cache clock at the last flush (or the
    first sample's timestamp for a series never flushed).
    """
    name: str
    last_flush_time: int
    start_time: Optional[int] = None
    values: Dict[int, float] = field(default_factory=dict)
    app_id: Optional[str] = None
    metric_type: Optional[str] = None

    @property
    def samples(self) -> List[Sample]:
        """Buffered samples in time order."""
        return [Sample(ts, value) for ts, value in sorted(self.values.items())]

    def __len__(self) -> int:
        return len(self.values)


class MetricCache:
    """
    Bounded per-name sample buffer that decides when a series is ready to send.

    A series is ready when its buffer is full or when more than
    ``eviction_interval_millis`` has passed on the cache clock since it was
    last flushed. The clock is the highest sample timestamp seen so far, so it
    only moves when samples arrive.

    Series creation is guarded by a registry lock; each series then has its own
    lock, so callers working on different names never block each other.
    """

    def __init__(self, max_samples_per_name: int = config.MAX_ROW_CACHE_SIZE,
                 eviction_interval_millis: int = config.SEND_INTERVAL):
        """
        Initialize the metric cache.

        Args:
            max_samples_per_name (int): Maximum buffered samples per metric name
            eviction_interval_millis (int): Age after which a series is flushed regardless of size

        Raises:
            ValueError: If either limit is not a positive integer
        """
        if max_samples_per_name <= 0:
            raise ValueError(f"max_samples_per_name must be positive, got {max_samples_per_name}")
        if eviction_interval_millis <= 0:
            raise ValueError(f"eviction_interval_millis must be positive, got {eviction_interval_millis}")

        self.max_samples_per_name = max_samples_per_name
        self.eviction_interval_millis = eviction_interval_millis
        self._series: Dict[str, MetricSeries] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._clock_lock = threading.Lock()
        self._clock: Optional[int] = None

    @property
    def clock(self) -> Optional[int]:
        """Highest sample timestamp seen, or None before the first sample."""
        return self._clock

    def _advance_clock(self, timestamp: int) -> None:
        with self._clock_lock:
            if self._clock is None or timestamp > self._clock:
                self._clock = timestamp

    def _get_or_create(self, name: str, timestamp: int):
        with self._registry_lock:
            series = self._series.get(name)
            if series is None:
                series = MetricSeries(name=name, last_flush_time=timestamp)
                self._series[name] = series
                self._locks[name] = threading.Lock()
                logger.debug("Started caching metric %s", name)
            return series, self._locks[name]

    def put_sample(self, name: str, timestamp: int, value: float,
                   app_id: Optional[str] = None, metric_type: Optional[str] = None) -> None:
        """
        Buffer a sample for a metric, creating its series on first use.

        At capacity the oldest sample is dropped to make room for a new
        timestamp. Callers must filter out non-numeric values beforehand.

        Args:
            name (str): Metric name
            timestamp (int): Sample time in epoch milliseconds
            value (float): Sample value
            app_id (str, optional): Component that reported the metric
            metric_type (str, optional): Numeric kind label for the collector
        """
        timestamp = int(timestamp)
        series, lock = self._get_or_create(name, timestamp)

        with lock:
            if timestamp not in series.values and len(series.values) >= self.max_samples_per_name:
                oldest = min(series.values)
                del series.values[oldest]
                logger.debug("Evicted sample %s of metric %s, buffer full", oldest, name)

            series.values[timestamp] = float(value)
            if series.start_time is None or timestamp < series.start_time:
                series.start_time = timestamp
            if app_id is not None:
                series.app_id = app_id
            # one Double sample makes the whole window Double
            if metric_type is not None and series.metric_type != 'Double':
                series.metric_type = metric_type

        self._advance_clock(timestamp)

    def _is_ready(self, series: MetricSeries) -> bool:
        if not series.values:
            return False
        if len(series.values) >= self.max_samples_per_name:
            return True
        return self._clock is not None and self._clock - series.last_flush_time > self.eviction_interval_millis

    def take_ready_series(self, name: str) -> Optional[MetricSeries]:
        """
        Take a metric's buffered samples if they are due to be sent.

        This reads and clears: a returned series is removed from the buffer and
        its flush time moves to the cache clock.

        Args:
            name (str): Metric name

        Returns:
            MetricSeries: Snapshot of the flushed series, or None if not ready
        """
        with self._registry_lock:
            series = self._series.get(name)
            lock = self._locks.get(name)
        if series is None:
            return None

        with lock:
            if not self._is_ready(series):
                return None

            snapshot = MetricSeries(
                name=series.name,
                last_flush_time=series.last_flush_time,
                start_time=series.start_time,
                values=dict(sorted(series.values.items())),
                app_id=series.app_id,
                metric_type=series.metric_type,
            )
            series.values.clear()
            series.start_time = None
            series.metric_type = None
            series.last_flush_time = self._clock
            return snapshot

    def buffered_count(self, name: str) -> int:
        """
        Get the number of samples buffered for a metric.

        Returns:
            int: Buffered sample count, 0 for unknown names
        """
        with self._registry_lock:
            series = self._series.get(name)
        return len(series) if series is not None else 0

    def names(self) -> List[str]:
        with self._registry_lock:
            return list(self._series)

    def clear(self) -> None:
        """Drop every series and reset the clock."""
        with self._registry_lock:
            self._series.clear()
            self._locks.clear()
        with self._clock_lock:
            self._clock = None

    def __contains__(self, name: str) -> bool:
        with self._registry_lock:
            return name in self._series

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._series)
