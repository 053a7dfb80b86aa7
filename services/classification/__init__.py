"""
Classification services.

Per-event K/pi tagging strategies.
"""

from .track_classifier import (
    TrackClassifier,
    RecoTrackClassifier,
    GenTrackClassifier,
    create_classifier,
)

__all__ = [
    "TrackClassifier",
    "RecoTrackClassifier",
    "GenTrackClassifier",
    "create_classifier",
]
