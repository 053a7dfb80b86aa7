"""
State handlers for pipeline execution.

Each handler implements logic for a specific pipeline state.
"""

from .base import StateHandler
from .streaming_handler import StreamingHandler, StreamStatisticsCollector
from .unfolding_handler import UnfoldingHandler

__all__ = [
    "StateHandler",
    "StreamingHandler",
    "StreamStatisticsCollector",
    "UnfoldingHandler",
]
