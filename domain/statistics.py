"""
Statistics-related domain models.

Immutable snapshot of what happened while streaming events.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class StreamStatistics:
    """
    Counters collected during the streaming phase.

    Every entry that was scheduled ends up in exactly one bucket: read
    failure, rejected by one of the cuts, or selected.
    """

    # Counts
    total_entries: int
    entries_to_process: int
    read_failures: int
    selected_events: int

    # Rejections, by first failing cut
    rejected_energy: int = 0
    rejected_multiplicity: int = 0
    rejected_thrust: int = 0

    # Diagnostics
    clamped_events: int = 0
    overflow_tag_events: int = 0
    calibration_tracks: int = 0

    # Timing
    processing_time_sec: float = 0.0

    def __post_init__(self):
        """Validate stream statistics."""
        for name in (
            "total_entries", "entries_to_process", "read_failures", "selected_events",
            "rejected_energy", "rejected_multiplicity", "rejected_thrust",
            "clamped_events", "overflow_tag_events", "calibration_tracks",
        ):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")
        if self.entries_to_process > self.total_entries:
            raise ValueError(
                f"entries_to_process ({self.entries_to_process}) cannot exceed "
                f"total_entries ({self.total_entries})"
            )
        accounted = self.read_failures + self.selected_events + self.rejected_events
        if accounted != self.entries_to_process:
            raise ValueError(
                f"read_failures + selected + rejected ({accounted}) "
                f"must equal entries_to_process ({self.entries_to_process})"
            )
        if self.processing_time_sec < 0:
            raise ValueError(f"processing_time_sec must be non-negative, got {self.processing_time_sec}")

    @property
    def rejected_events(self) -> int:
        return self.rejected_energy + self.rejected_multiplicity + self.rejected_thrust

    @property
    def selection_efficiency(self) -> float:
        """Selected fraction of successfully read entries, as percentage."""
        read_ok = self.entries_to_process - self.read_failures
        if read_ok == 0:
            return 0.0
        return (self.selected_events / read_ok) * 100

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_entries": self.total_entries,
            "entries_to_process": self.entries_to_process,
            "read_failures": self.read_failures,
            "selected_events": self.selected_events,
            "selection_efficiency": f"{self.selection_efficiency:.1f}%",
            "rejected": {
                "energy": self.rejected_energy,
                "multiplicity": self.rejected_multiplicity,
                "thrust": self.rejected_thrust,
            },
            "clamped_events": self.clamped_events,
            "overflow_tag_events": self.overflow_tag_events,
            "calibration_tracks": self.calibration_tracks,
            "processing_time_sec": f"{self.processing_time_sec:.1f}",
        }
