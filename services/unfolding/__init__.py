"""
Unfolding services.

PID matrix correction and K/pi ratio construction.
"""

from .unfolding_engine import UnfoldingEngine
from .ratio_builder import RatioBuilder

__all__ = [
    "UnfoldingEngine",
    "RatioBuilder",
]
