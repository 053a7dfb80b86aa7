"""
Output services.

ROOT histogram writing, run summary JSON and ratio plots.
"""

from .result_writer import ResultWriter, to_th1d
from .ratio_plotter import RatioPlotter

__all__ = [
    "ResultWriter",
    "RatioPlotter",
    "to_th1d",
]
