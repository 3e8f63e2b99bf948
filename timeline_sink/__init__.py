"""
Timeline metrics sink for forwarding task metrics to a timeline collector.
"""
from .config import SinkConfig
from .emitter import DeliveryResult, DeliveryStatus, TimelineMetricsEmitter
from .exceptions import ConfigurationError
from .host import DataPoint, MetricsConsumer, TaskInfo
from .metrics import TimelineMetric, TimelineMetrics
from .metrics_cache import MetricCache, MetricSeries, Sample
from .storm_sink import TimelineMetricsSink

__all__ = [
    'ConfigurationError',
    'DataPoint',
    'DeliveryResult',
    'DeliveryStatus',
    'MetricCache',
    'MetricSeries',
    'MetricsConsumer',
    'Sample',
    'SinkConfig',
    'TaskInfo',
    'TimelineMetric',
    'TimelineMetrics',
    'TimelineMetricsEmitter',
    'TimelineMetricsSink',
]
