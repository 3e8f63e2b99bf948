"""
Exceptions raised by the timeline metrics sink.
"""


class ConfigurationError(RuntimeError):
    """The sink cannot run with the given settings (no hostname, no reachable collector address, bad values)."""
