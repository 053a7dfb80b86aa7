"""
Reading services.

Bounds-checked access to the strangeness event tree.
"""

from .record_reader import RecordReader
from . import schemas

__all__ = [
    "RecordReader",
    "schemas",
]
