"""
HTTP delivery of metric batches to the timeline collector.
"""
import enum
import json
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import requests

from . import config
from .metrics import TimelineMetrics

logger = logging.getLogger(__name__)


class DeliveryStatus(enum.Enum):
    DELIVERED = 'delivered'
    TRANSIENT_FAILURE = 'transient_failure'
    UNEXPECTED_FAILURE = 'unexpected_failure'


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a single send attempt."""
    status: DeliveryStatus
    url: str
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED


class TimelineMetricsEmitter:
    """
    Posts metric batches to one collector endpoint.

    The endpoint is fixed for the emitter's lifetime. Every batch gets exactly
    one attempt: failures come back as a ``DeliveryResult`` and are never
    raised or retried, because the samples were already taken out of the
    cache and the caller must keep collecting.
    """

    def __init__(
        self,
        host: str,
        port: int,
        protocol: str = config.COLLECTOR_PROTOCOL,
        connect_timeout: float = config.CONNECT_TIMEOUT,
        read_timeout: float = config.READ_TIMEOUT,
        session: Optional[requests.Session] = None,
        skipped_failures_to_log: int = config.SKIPPED_FAILURES_TO_LOG
    ):
        """
        Initialize the emitter.

        Args:
            host (str): Collector host
            port (int): Collector port
            protocol (str): 'http' or 'https'
            connect_timeout (float): Seconds to wait for the connection
            read_timeout (float): Seconds to wait for the response
            session (requests.Session, optional): Session to post with. One is created if omitted.
            skipped_failures_to_log (int): Connection failures logged at DEBUG between two WARNINGs
        """
        self.host = host
        self.port = port
        self.collector_uri = f"{protocol}://{host}:{port}{config.COLLECTOR_PATH}"
        self.timeout: Tuple[float, float] = (connect_timeout, read_timeout)
        self.skipped_failures_to_log = skipped_failures_to_log
        self.failed_connections = 0
        self._owns_session = session is None
        self.session = session or requests.Session()

    def emit_metrics(self, metrics: TimelineMetrics) -> DeliveryResult:
        """
        Send a batch to the collector once.

        Args:
            metrics (TimelineMetrics): Non-empty batch to send

        Returns:
            DeliveryResult: DELIVERED, TRANSIENT_FAILURE when the collector
            could not be reached, or UNEXPECTED_FAILURE for anything else

        Raises:
            ValueError: If the batch is empty
        """
        if not metrics.metrics:
            raise ValueError("Refusing to send an empty metrics batch")

        headers = {'Content-Type': 'application/json'}

        try:
            body = json.dumps(metrics.to_dict(), allow_nan=False)
        except (TypeError, ValueError) as e:
            return self._unexpected(f"Could not serialize metrics: {e}")

        try:
            response = self.session.post(
                self.collector_uri,
                data=body,
                headers=headers,
                timeout=self.timeout
            )
        except requests.exceptions.ConnectionError as e:
            return self._connection_failed(e)
        except requests.exceptions.RequestException as e:
            return self._unexpected(f"{e.__class__.__name__}: {e}")
        except Exception as e:
            logger.debug("Unexpected exception posting metrics", exc_info=True)
            return self._unexpected(f"{e.__class__.__name__}: {e}")

        if not 200 <= response.status_code < 300:
            return self._unexpected(
                f"Collector responded with HTTP {response.status_code}",
                status_code=response.status_code
            )

        if self.failed_connections:
            logger.info("Collector %s reachable again after %s failed attempts",
                        self.collector_uri, self.failed_connections)
        self.failed_connections = 0
        logger.debug("Sent %s metrics to %s", len(metrics), self.collector_uri)
        return DeliveryResult(DeliveryStatus.DELIVERED, self.collector_uri, status_code=response.status_code)

    def _connection_failed(self, error: Exception) -> DeliveryResult:
        self.failed_connections += 1
        if (self.failed_connections - 1) % (self.skipped_failures_to_log + 1) == 0:
            logger.warning("Unable to connect to collector %s. The next %s failures will be logged at DEBUG: %s",
                           self.collector_uri, self.skipped_failures_to_log, error)
        else:
            logger.debug("Unable to connect to collector %s: %s", self.collector_uri, error)
        return DeliveryResult(DeliveryStatus.TRANSIENT_FAILURE, self.collector_uri, error=str(error))

    def _unexpected(self, message: str, status_code: Optional[int] = None) -> DeliveryResult:
        return DeliveryResult(DeliveryStatus.UNEXPECTED_FAILURE, self.collector_uri,
                              status_code=status_code, error=message)

    def close(self) -> None:
        """Close the HTTP session if this emitter created it."""
        if self._owns_session:
            self.session.close()
