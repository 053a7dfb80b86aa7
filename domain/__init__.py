"""
Domain models for the K/pi analysis.

Pure data structures with validation, no business logic.
"""

from .events import EventRecord, ParticleArrays
from .results import EventTags, ConfusionMatrix, UnfoldedResult, BinnedSeries
from .statistics import StreamStatistics
from .config import AnalysisConfig, SelectionConfig, parse_bool
from .errors import (
    AnalysisError,
    ConfigurationError,
    ContainerError,
    SchemaError,
    RecordOutOfRange,
    ReadError,
    CalibrationDegenerate,
    PhaseError,
)

__all__ = [
    "EventRecord",
    "ParticleArrays",
    "EventTags",
    "ConfusionMatrix",
    "UnfoldedResult",
    "BinnedSeries",
    "StreamStatistics",
    "AnalysisConfig",
    "SelectionConfig",
    "parse_bool",
    "AnalysisError",
    "ConfigurationError",
    "ContainerError",
    "SchemaError",
    "RecordOutOfRange",
    "ReadError",
    "CalibrationDegenerate",
    "PhaseError",
]
