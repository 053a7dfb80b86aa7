"""
Pipeline context.

Immutable context object passed between state handlers.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional

from domain.config import AnalysisConfig
from domain.results import UnfoldedResult
from domain.statistics import StreamStatistics
from services.aggregation.binned_aggregator import BinnedAggregator
from services.aggregation.calibration_accumulator import CalibrationAccumulator
from .states import PipelineState


KAON_NAME = "hK"
PION_NAME = "hPi"


@dataclass(frozen=True)
class PipelineContext:
    """
    Immutable context for one analysis run.

    The context itself is never mutated: each handler returns a new one.
    The aggregators and the calibration accumulator it references are the
    run's accumulator state and are filled only while STREAMING.
    """

    # Configuration
    config: AnalysisConfig

    # Current state
    current_state: PipelineState

    # Accumulators owned by the run
    kaon: BinnedAggregator
    pion: BinnedAggregator
    calibration: CalibrationAccumulator

    # Phases already handled, in order
    visited: tuple[PipelineState, ...] = ()

    # Execution metadata
    start_time: datetime = field(default_factory=datetime.now)

    # Results
    stream_stats: Optional[StreamStatistics] = None
    unfolded: Optional[UnfoldedResult] = None
    kaon_corrected: Optional[BinnedAggregator] = None
    pion_corrected: Optional[BinnedAggregator] = None
    raw_ratio: Optional[BinnedAggregator] = None
    corrected_ratio: Optional[BinnedAggregator] = None

    # Why the corrected series are absent, if they are
    calibration_issue: Optional[str] = None

    @classmethod
    def initial(cls, config: AnalysisConfig, titles: dict[str, str]) -> 'PipelineContext':
        """
        Fresh context in STREAMING with empty accumulators.

        Args:
            config: Analysis configuration
            titles: Histogram titles with keys 'kaon' and 'pion'
        """
        return cls(
            config=config,
            current_state=PipelineState.STREAMING,
            kaon=BinnedAggregator.for_max_tag(KAON_NAME, config.max_nch_tag, titles.get("kaon", "")),
            pion=BinnedAggregator.for_max_tag(PION_NAME, config.max_nch_tag, titles.get("pion", "")),
            calibration=CalibrationAccumulator(),
        )

    def with_state(self, new_state: PipelineState) -> 'PipelineContext':
        """
        Return new context in a new state, recording the phase just left.

        Args:
            new_state: New pipeline state

        Returns:
            New PipelineContext with updated state
        """
        return replace(
            self,
            current_state=new_state,
            visited=self.visited + (self.current_state,)
        )

    def with_stream_stats(self, stats: StreamStatistics) -> 'PipelineContext':
        """Return new context with streaming statistics."""
        return replace(self, stream_stats=stats)

    def with_unfolded(
        self,
        unfolded: UnfoldedResult,
        kaon_corrected: BinnedAggregator,
        pion_corrected: BinnedAggregator
    ) -> 'PipelineContext':
        """Return new context with the PID-corrected yields."""
        return replace(
            self,
            unfolded=unfolded,
            kaon_corrected=kaon_corrected,
            pion_corrected=pion_corrected
        )

    def with_ratios(
        self,
        raw_ratio: BinnedAggregator,
        corrected_ratio: Optional[BinnedAggregator] = None
    ) -> 'PipelineContext':
        """Return new context with the raw and (optional) corrected K/pi ratios."""
        return replace(self, raw_ratio=raw_ratio, corrected_ratio=corrected_ratio)

    def with_calibration_issue(self, issue: str) -> 'PipelineContext':
        """Return new context recording why no correction was applied."""
        return replace(self, calibration_issue=issue)

    @property
    def elapsed_time(self) -> float:
        """Get elapsed time in seconds."""
        return (datetime.now() - self.start_time).total_seconds()

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self.current_state.is_terminal()

    @property
    def has_corrected(self) -> bool:
        return self.unfolded is not None

    def has_visited(self, state: PipelineState) -> bool:
        return state in self.visited

    def get_summary(self) -> dict:
        """
        Get summary of pipeline execution.

        Returns:
            Dict with execution summary
        """
        return {
            "state": str(self.current_state),
            "phases": [str(s) for s in self.visited],
            "elapsed_time_sec": self.elapsed_time,
            "start_time": self.start_time.isoformat(),
            "selected_events": self.stream_stats.selected_events if self.stream_stats else 0,
            "kaon_yield": self.kaon.total(),
            "pion_yield": self.pion.total(),
            "pid_corrected": self.has_corrected,
            "calibration_issue": self.calibration_issue,
        }
