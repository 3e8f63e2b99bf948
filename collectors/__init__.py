"""
Collectors that stand in for a stream-processing host when running the sink from the command line.
"""
from .system_collector import SystemCollector

__all__ = ['SystemCollector']
