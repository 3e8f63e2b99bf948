"""
Types exchanged with the host stream-processing framework.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional


@dataclass(frozen=True)
class TaskInfo:
    """Identity of the task that reported a batch of data points."""
    src_component_id: str
    timestamp: int
    src_task_id: Optional[int] = None
    src_worker_host: Optional[str] = None
    src_worker_port: Optional[int] = None
    update_interval_secs: Optional[int] = None


@dataclass(frozen=True)
class DataPoint:
    """A named measurement. ``value`` is whatever the task registered and may not be numeric."""
    name: str
    value: Any


class MetricsConsumer(ABC):
    """
    Abstract base class for consumers of the host framework's metrics.

    The host calls the methods in this order:
    - prepare(): once, before any data arrives
    - handle_data_points(): once per reporting tick, from the task's thread
    - cleanup(): once, at shutdown
    """

    @abstractmethod
    def prepare(self, config: Optional[Mapping[str, Any]] = None, hostname: Optional[str] = None) -> None:
        """
        Set up the consumer.

        Args:
            config (Mapping, optional): Consumer settings
            hostname (str, optional): Local host identity. Detected if omitted.
        """

    @abstractmethod
    def handle_data_points(self, task_info: TaskInfo, data_points: Iterable[DataPoint]) -> Any:
        """
        Consume one tick's data points.

        Args:
            task_info (TaskInfo): The reporting task
            data_points (Iterable[DataPoint]): Measurements reported on this tick
        """

    @abstractmethod
    def cleanup(self) -> None:
        """Release resources."""
