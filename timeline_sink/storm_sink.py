"""
Metrics consumer that forwards task metrics to the timeline collector.
"""
import logging
from typing import Any, Iterable, List, Mapping, Optional

from .config import SinkConfig
from .emitter import DeliveryResult, DeliveryStatus, TimelineMetricsEmitter
from .host import DataPoint, MetricsConsumer, TaskInfo
from .metrics import TimelineMetric, TimelineMetrics, is_number, metric_type, to_float
from .metrics_cache import MetricCache, MetricSeries
from .servers import parse_servers, resolve_first
from .utils import get_hostname

logger = logging.getLogger(__name__)


class TimelineMetricsSink(MetricsConsumer):
    """
    Buffers data points per metric name and sends the ones that are due.

    Each call to ``handle_data_points`` produces at most one request to the
    collector, carrying every series that became ready during that call.
    """

    def __init__(self):
        self.hostname: Optional[str] = None
        self.config: Optional[SinkConfig] = None
        self.metrics_cache: Optional[MetricCache] = None
        self.emitter: Optional[TimelineMetricsEmitter] = None

    def prepare(self, config: Optional[Mapping[str, Any]] = None, hostname: Optional[str] = None) -> None:
        """
        Resolve the host identity and collector, and create the cache.

        Args:
            config (Mapping, optional): Sink properties, see ``SinkConfig.from_mapping``
            hostname (str, optional): Local host identity. Detected if omitted.

        Raises:
            ConfigurationError: If the hostname or the collector cannot be resolved
        """
        logger.info("Preparing timeline metrics sink")
        self.hostname = hostname or get_hostname()
        self.config = config if isinstance(config, SinkConfig) else SinkConfig.from_mapping(config)

        if self.metrics_cache is None:
            self.metrics_cache = MetricCache(self.config.max_row_cache_size, self.config.send_interval)

        if self.emitter is None:
            candidates = parse_servers(self.config.collector_host, self.config.collector_port)
            host, port = resolve_first(
                candidates,
                attempts=self.config.resolve_attempts,
                delay=self.config.resolve_delay
            )
            self.emitter = TimelineMetricsEmitter(
                host,
                port,
                protocol=self.config.protocol,
                connect_timeout=self.config.connect_timeout,
                read_timeout=self.config.read_timeout
            )
        logger.info("Sending metrics from %s to %s", self.hostname, self.emitter.collector_uri)

    def handle_data_points(self, task_info: TaskInfo, data_points: Iterable[DataPoint]) -> Optional[DeliveryResult]:
        """
        Cache a tick's data points and send every series that became ready.

        Non-numeric values are skipped. Nothing raised here reaches the host.

        Args:
            task_info (TaskInfo): The reporting task
            data_points (Iterable[DataPoint]): This tick's measurements

        Returns:
            DeliveryResult: Outcome of the send, or None if nothing was due
        """
        try:
            metric_list = self._collect_ready(task_info, data_points)
            if not metric_list:
                return None
            return self._emit(TimelineMetrics(metric_list))
        except Exception:
            logger.exception("Failed to handle data points from %s", getattr(task_info, 'src_component_id', None))
            return None

    def _collect_ready(self, task_info: TaskInfo, data_points: Iterable[DataPoint]) -> List[TimelineMetric]:
        metric_list = []
        for data_point in data_points:
            try:
                series = self._cache_data_point(task_info, data_point)
            except Exception:
                # one bad point must not cost the series already taken this tick
                logger.exception("Skipping data point %s", getattr(data_point, 'name', data_point))
                continue
            if series is not None:
                metric_list.append(self._to_timeline_metric(series))
        return metric_list

    def _cache_data_point(self, task_info: TaskInfo, data_point: DataPoint) -> Optional[MetricSeries]:
        if not is_number(data_point.value):
            return None

        logger.debug("%s = %s", data_point.name, data_point.value)
        # Hold values in the cache until it is time to send them
        self.metrics_cache.put_sample(
            data_point.name,
            task_info.timestamp,
            to_float(data_point.value),
            app_id=task_info.src_component_id,
            metric_type=metric_type(data_point.value)
        )
        return self.metrics_cache.take_ready_series(data_point.name)

    def _to_timeline_metric(self, series: MetricSeries) -> TimelineMetric:
        return TimelineMetric(
            metric_name=series.name,
            app_id=series.app_id,
            host_name=self.hostname,
            start_time=series.start_time,
            type=series.metric_type or 'Double',
            metric_values=dict(series.values)
        )

    def _emit(self, metrics: TimelineMetrics) -> DeliveryResult:
        result = self.emitter.emit_metrics(metrics)

        if result.status is DeliveryStatus.TRANSIENT_FAILURE:
            # the emitter already reported the connection failure
            logger.debug("Dropped %s metrics, collector %s unreachable", len(metrics), result.url)
        elif result.status is DeliveryStatus.UNEXPECTED_FAILURE:
            logger.error("Unexpected error sending %s metrics to %s: %s", len(metrics), result.url, result.error)
        else:
            logger.debug("Delivered %s metrics", len(metrics))
        return result

    def cleanup(self) -> None:
        logger.info("Stopping timeline metrics sink")
        if self.metrics_cache is not None:
            self.metrics_cache.clear()
        if self.emitter is not None:
            self.emitter.close()

    def set_metrics_cache(self, metrics_cache: MetricCache) -> None:
        self.metrics_cache = metrics_cache

    def set_emitter(self, emitter: TimelineMetricsEmitter) -> None:
        self.emitter = emitter
