#!/usr/bin/env python3
"""
CLI application that runs the timeline metrics sink against local system readings.
It plays the part of a stream-processing worker: every interval it reports one
batch of data points to the sink, which forwards them to the collector when due.
"""
import argparse
import json
import logging
import os
import time
from typing import Any, Dict

from collectors import SystemCollector
from timeline_sink import config as sink_config
from timeline_sink.config import PROPERTY_KEYS
from timeline_sink.emitter import DeliveryResult, DeliveryStatus
from timeline_sink.exceptions import ConfigurationError
from timeline_sink.host import TaskInfo
from timeline_sink.metrics import TimelineMetrics
from timeline_sink.storm_sink import TimelineMetricsSink
from timeline_sink.utils import current_millis

# Setup logging
logger = logging.getLogger(__name__)


class DryRunEmitter:
    """Emitter that logs batches instead of sending them."""

    collector_uri = 'dry-run'

    def emit_metrics(self, metrics: TimelineMetrics) -> DeliveryResult:
        logger.info("DRY RUN: Would send %s metrics: %s", len(metrics), json.dumps(metrics.to_dict()))
        return DeliveryResult(DeliveryStatus.DELIVERED, self.collector_uri)

    def close(self) -> None:
        pass


def setup_logging(log_level: str = sink_config.LOG_LEVEL) -> None:
    """
    Setup logging for the sink.

    urllib3 logs every new collector connection; it is kept at WARNING unless
    the sink itself runs at DEBUG.

    Args:
        log_level (str): Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {log_level}")

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logging.getLogger().setLevel(numeric_level)
    logging.getLogger('urllib3').setLevel(logging.DEBUG if numeric_level <= logging.DEBUG else logging.WARNING)


def load_config_from_file(config_file: str) -> Dict[str, Any]:
    """
    Load sink settings from a JSON file.

    The file holds one object. Keys are either command line option names
    (``collector-host``, ``send_interval``) or the sink's property names
    (``collector``, ``sendInterval``); both are returned as argument names.

    Args:
        config_file (str): Path to the JSON config file

    Returns:
        dict: Settings keyed by argument name, empty if the file is unusable
    """
    if not os.path.exists(config_file):
        logger.error("Config file not found: %s", config_file)
        return {}

    try:
        with open(config_file, 'r') as f:
            raw = json.load(f)
    except ValueError as e:
        logger.error("Error parsing config file %s: %s", config_file, e)
        return {}
    except OSError as e:
        logger.error("Could not read config file %s: %s", config_file, e)
        return {}

    if not isinstance(raw, dict):
        logger.error("Config file %s must hold a JSON object, got %s", config_file, type(raw).__name__)
        return {}

    config = {_argument_name(key): value for key, value in raw.items()}
    logger.debug("Loaded configuration from %s: %s", config_file, config)
    return config


def _argument_name(key: str) -> str:
    return PROPERTY_KEYS.get(key, key.replace('-', '_'))


def merge_config_with_args(config: Dict[str, Any], args: argparse.Namespace) -> argparse.Namespace:
    """
    Fill in options not given on the command line from file settings.

    Args:
        config (dict): Settings from ``load_config_from_file``
        args (argparse.Namespace): Command line arguments

    Returns:
        argparse.Namespace: Arguments with file settings applied underneath
    """
    merged = dict(vars(args))
    for key, value in config.items():
        arg_key = _argument_name(key)
        if merged.get(arg_key) is None:
            merged[arg_key] = value
    return argparse.Namespace(**merged)


def sink_properties(args: argparse.Namespace) -> Dict[str, Any]:
    """Pick the sink settings out of the parsed arguments, leaving unset ones to the defaults."""
    keys = ('collector_host', 'collector_port', 'protocol', 'max_row_cache_size', 'send_interval',
            'connect_timeout', 'read_timeout', 'resolve_attempts', 'resolve_delay')
    return {key: getattr(args, key) for key in keys if getattr(args, key, None) is not None}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Forward system metrics to a timeline metrics collector.',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Add config file argument again for help display
    parser.add_argument('--config-file', type=str,
                        help='Path to JSON configuration file')

    # General options
    parser.add_argument('--log-level', type=str, default=sink_config.LOG_LEVEL,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Log level')
    parser.add_argument('--interval', type=int, default=10,
                        help='Interval between reporting ticks in seconds')
    parser.add_argument('--count', type=int, default=0,
                        help='Number of reporting ticks (0 for infinite)')
    parser.add_argument('--component', type=str, default='system',
                        help='Component id reported as the metrics appId')
    parser.add_argument('--dry-run', action='store_true',
                        help='Do not send metrics to the collector, just log them')

    # Sink configuration
    parser.add_argument('--collector-host', type=str,
                        help='Collector address list, e.g. "c1:6188,c2" (default: %s)' % sink_config.COLLECTOR_HOST)
    parser.add_argument('--collector-port', type=int,
                        help='Default collector port (default: %s)' % sink_config.COLLECTOR_PORT)
    parser.add_argument('--protocol', type=str, choices=['http', 'https'],
                        help='Collector protocol (default: %s)' % sink_config.COLLECTOR_PROTOCOL)
    parser.add_argument('--max-row-cache-size', type=int,
                        help='Samples buffered per metric name (default: %s)' % sink_config.MAX_ROW_CACHE_SIZE)
    parser.add_argument('--send-interval', type=int,
                        help='Milliseconds a metric is held before it is sent (default: %s)' % sink_config.SEND_INTERVAL)
    parser.add_argument('--connect-timeout', type=float,
                        help='Connect timeout in seconds (default: %s)' % sink_config.CONNECT_TIMEOUT)
    parser.add_argument('--read-timeout', type=float,
                        help='Read timeout in seconds (default: %s)' % sink_config.READ_TIMEOUT)
    return parser


def run_rounds(sink: TimelineMetricsSink, collector: SystemCollector, component: str,
               interval: int, count: int) -> int:
    """
    Report collector readings to the sink on a fixed schedule.

    Returns:
        int: Number of rounds completed
    """
    round_count = 0
    next_collection_time = time.time()

    while count == 0 or round_count < count:
        current_time = time.time()

        # Ensure we're on schedule
        if current_time > next_collection_time:
            next_collection_time = current_time

        round_count += 1
        logger.info("Reporting round %s%s", round_count, ("/%s" % count if count > 0 else ""))

        task_info = TaskInfo(src_component_id=component, timestamp=current_millis())
        result = sink.handle_data_points(task_info, collector.data_points())
        if result is not None:
            logger.info("Send attempt: %s", result.status.value)

        if count == 0 or round_count < count:
            next_collection_time += interval
            wait_time = next_collection_time - time.time()

            if wait_time > 0:
                logger.debug("Waiting %.2f seconds until next round...", wait_time)
                time.sleep(wait_time)
            else:
                logger.warning("Round took longer than interval. Next round will start immediately.")

    return round_count


def main():
    """Main function to parse arguments and run the sink."""
    # Create first parser for early config file and log level
    early_parser = argparse.ArgumentParser(add_help=False)
    early_parser.add_argument('--config-file', type=str)
    early_parser.add_argument('--log-level', type=str, default=sink_config.LOG_LEVEL)
    early_args, _ = early_parser.parse_known_args()

    setup_logging(early_args.log_level)

    config = {}
    if early_args.config_file:
        logger.info("Loading configuration from %s", early_args.config_file)
        config = load_config_from_file(early_args.config_file)

    args = build_parser().parse_args()
    if config:
        args = merge_config_with_args(config, args)

    logging.getLogger().setLevel(args.log_level.upper())

    sink = TimelineMetricsSink()
    if args.dry_run:
        sink.set_emitter(DryRunEmitter())

    try:
        sink.prepare(sink_properties(args))
    except ConfigurationError as e:
        logger.error("Cannot start sink: %s", e)
        raise SystemExit(1)

    try:
        run_rounds(sink, SystemCollector(), args.component, args.interval, args.count)
    except KeyboardInterrupt:
        logger.info("Reporting interrupted by user.")
    finally:
        sink.cleanup()

    logger.info("Reporting completed.")


if __name__ == "__main__":
    main()
