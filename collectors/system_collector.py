import logging
from typing import Any, Dict, List

import psutil

from timeline_sink.host import DataPoint

logger = logging.getLogger(__name__)


class SystemCollector:
    """Collector for host CPU, memory and disk readings."""

    def __init__(self, disk_path: str = '/', prefix: str = 'system'):
        """
        Initialize the system collector.

        Args:
            disk_path (str): Mount point whose usage is reported
            prefix (str): Prefix for the reported metric names
        """
        self.disk_path = disk_path
        self.prefix = prefix

    @property
    def name(self) -> str:
        return self.__class__.__name__

    def collect(self) -> Dict[str, Any]:
        """Collect system readings.

        Returns:
            dict: Metric name suffix to reading
        """
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage(self.disk_path)
        load = psutil.getloadavg() if hasattr(psutil, 'getloadavg') else (None, None, None)

        return {
            'cpu.percent': psutil.cpu_percent(interval=None),
            'memory.percent': memory.percent,
            'memory.used': memory.used,
            'disk.percent': disk.percent,
            'load.1m': load[0],
            'process.count': len(psutil.pids()),
        }

    def safe_collect(self) -> Dict[str, Any]:
        """
        Safely collect readings, catching any exceptions.

        Returns:
            dict: The readings, or an empty dict if collection fails
        """
        try:
            return self.collect()
        except Exception as e:
            logger.error("Error collecting metrics from %s: %s", self.name, str(e))
            return {}

    def data_points(self) -> List[DataPoint]:
        """Readings as data points, the form the host framework hands to sinks."""
        return [
            DataPoint(f"{self.prefix}.{key}", value)
            for key, value in self.safe_collect().items()
        ]
