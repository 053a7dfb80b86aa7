"""
Aggregation services.

Binned yields and the running PID calibration sums.
"""

from .binned_aggregator import BinnedAggregator
from .calibration_accumulator import CalibrationAccumulator

__all__ = [
    "BinnedAggregator",
    "CalibrationAccumulator",
]
