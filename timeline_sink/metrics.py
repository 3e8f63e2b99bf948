"""
Timeline metric records as the collector's REST API expects them.

A ``TimelineMetric`` is one metric name's buffered series together with the
identity of the component and host that produced it. A ``TimelineMetrics``
wraps a list of them into the body of a single POST.
"""
import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Number):
        try:
            return float(value)
        except (TypeError, ValueError, OverflowError):
            # complex, or too large for a double
            return None
    if isinstance(value, (str, bytes)):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def is_number(value: Any) -> bool:
    """
    Check whether a data point value can be recorded.

    Booleans, ``None``, non-numeric strings, and NaN or infinite values are
    rejected because the collector stores finite doubles only.

    Args:
        value: Raw data point value

    Returns:
        bool: True if the value converts to a finite float
    """
    parsed = _parse_float(value)
    return parsed is not None and math.isfinite(parsed)


def to_float(value: Any) -> float:
    """
    Convert a value accepted by ``is_number`` to a float.

    Raises:
        ValueError: If the value is not numeric
    """
    parsed = _parse_float(value)
    if parsed is None or not math.isfinite(parsed):
        raise ValueError(f"Not a number: {value!r}")
    return parsed


def metric_type(value: Any) -> str:
    """
    Name the numeric kind of a value the way the collector labels it.

    Integers and integer strings are ``Long``; everything else is ``Double``.
    """
    if isinstance(value, numbers.Integral) and not isinstance(value, bool):
        return 'Long'
    if isinstance(value, (str, bytes)):
        try:
            int(value.strip())
            return 'Long'
        except ValueError:
            pass
    return 'Double'


@dataclass
class TimelineMetric:
    """One metric's samples for a single send."""
    metric_name: str
    app_id: Optional[str]
    host_name: str
    start_time: Optional[int]
    type: str = 'Double'
    metric_values: Dict[int, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to the collector's JSON shape.

        Timestamps become string keys because JSON object keys are strings.

        Returns:
            dict: The metric record
        """
        return {
            'metricName': self.metric_name,
            'appId': self.app_id,
            'hostName': self.host_name,
            'startTime': self.start_time,
            'type': self.type,
            'metricValues': {str(ts): value for ts, value in sorted(self.metric_values.items())},
        }


@dataclass
class TimelineMetrics:
    """Batch of metrics sent in one request."""
    metrics: List[TimelineMetric] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.metrics)

    def to_dict(self) -> Dict[str, Any]:
        return {'metrics': [metric.to_dict() for metric in self.metrics]}
