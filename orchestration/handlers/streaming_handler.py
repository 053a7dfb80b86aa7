"""
StreamingHandler - Handles the STREAMING state.

Reads every scheduled entry once, applies the event selection, classifies
the tracks of selected events and fills the raw yields and the
calibration sums.
"""

from contextlib import nullcontext
from datetime import datetime

from tqdm import tqdm

from domain.errors import ReadError
from domain.statistics import StreamStatistics
from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from services.classification.track_classifier import TrackClassifier
from services.reading.record_reader import RecordReader
from services.selection.event_selector import EventSelector, SelectionDecision
from .base import StateHandler


class StreamStatisticsCollector:
    """Helper class to count what happens to every streamed entry."""

    def __init__(self, total_entries: int, entries_to_process: int):
        self.total_entries = total_entries
        self.entries_to_process = entries_to_process
        self.read_failures = 0
        self.selected = 0
        self.rejected = {
            SelectionDecision.ENERGY: 0,
            SelectionDecision.MULTIPLICITY: 0,
            SelectionDecision.THRUST: 0,
        }
        self.clamped_events = 0
        self.overflow_tag_events = 0

    def record_failure(self):
        self.read_failures += 1

    def record_decision(self, decision: SelectionDecision):
        if decision.passed:
            self.selected += 1
        else:
            self.rejected[decision] += 1

    def build(self, calibration_tracks: int, time_sec: float) -> StreamStatistics:
        return StreamStatistics(
            total_entries=self.total_entries,
            entries_to_process=self.entries_to_process,
            read_failures=self.read_failures,
            selected_events=self.selected,
            rejected_energy=self.rejected[SelectionDecision.ENERGY],
            rejected_multiplicity=self.rejected[SelectionDecision.MULTIPLICITY],
            rejected_thrust=self.rejected[SelectionDecision.THRUST],
            clamped_events=self.clamped_events,
            overflow_tag_events=self.overflow_tag_events,
            calibration_tracks=calibration_tracks,
            processing_time_sec=time_sec,
        )


class StreamingHandler(StateHandler):
    """
    Handler for STREAMING state.

    Each selected event fills its N_ch^tag bin once per species with the
    per-event count as weight, so the bin error is sqrt(sum of count^2).
    """

    def __init__(
        self,
        reader: RecordReader,
        selector: EventSelector,
        classifier: TrackClassifier
    ):
        """
        Initialize handler.

        Args:
            reader: Opened event reader
            selector: Event selection
            classifier: Counting strategy for the run's mode
        """
        super().__init__()
        self.reader = reader
        self.selector = selector
        self.classifier = classifier

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        """
        Stream all scheduled entries.

        Args:
            context: Current pipeline context

        Returns:
            Tuple of (updated_context, UNFOLDING)
        """
        self._log_state_entry(context)

        config = context.config
        total_entries = self.reader.entry_count()
        n_entries = total_entries
        if config.max_events is not None:
            n_entries = min(total_entries, config.max_events)

        self.logger.info(f"Processing {n_entries} / {total_entries} entries from {self.reader.path}")

        calibration = context.calibration if self.classifier.accumulates_calibration else None
        collector = StreamStatisticsCollector(total_entries, n_entries)
        start_time = datetime.now()

        with self._create_progress_bar(n_entries, config.show_progress) as pbar:
            for index in range(n_entries):
                self._process_entry(index, context, calibration, collector)
                if pbar is not None:
                    pbar.update(1)

        elapsed = (datetime.now() - start_time).total_seconds()
        stats = collector.build(
            calibration_tracks=context.calibration.track_count,
            time_sec=elapsed
        )

        self.logger.info(
            f"Streaming complete: {stats.selected_events}/{stats.entries_to_process} events selected "
            f"({stats.selection_efficiency:.1f}%), {stats.read_failures} read failures"
        )
        self.logger.info(
            f"Rejected: energy={stats.rejected_energy}, multiplicity={stats.rejected_multiplicity}, "
            f"thrust={stats.rejected_thrust}"
        )
        if stats.clamped_events:
            self.logger.warning(f"{stats.clamped_events} events had collections clipped to capacity")
        if calibration is not None:
            self.logger.info(f"Calibration tracks accumulated: {stats.calibration_tracks}")

        updated_context = context.with_stream_stats(stats)
        next_state = PipelineState.UNFOLDING

        self._log_state_exit(context, next_state)
        return updated_context, next_state

    def _process_entry(self, index, context, calibration, collector: StreamStatisticsCollector):
        try:
            record = self.reader.read(index)
        except ReadError as e:
            self.logger.warning(f"{e}. Skipping event.")
            collector.record_failure()
            return

        if record.was_clamped:
            collector.clamped_events += 1

        decision = self.selector.evaluate(record)
        collector.record_decision(decision)
        if not decision.passed:
            return

        tags = self.classifier.classify(record, calibration)
        if tags.is_overflow:
            collector.overflow_tag_events += 1

        context.kaon.fill(tags.nch_tag, tags.n_kaon)
        context.pion.fill(tags.nch_tag, tags.n_pion)

    def _create_progress_bar(self, total: int, show_progress: bool):
        """Create progress bar or no-op context manager."""
        if show_progress:
            return tqdm(
                total=total,
                desc="Streaming events",
                unit="evt",
                dynamic_ncols=True,
                mininterval=1
            )
        else:
            return nullcontext()
