"""
PipelineExecutor - High-level analysis orchestrator.

Wires together the reader, selection, classification strategy,
unfolding engine and ratio builder, and executes the state machine.
Results are returned as an AnalysisResult; writing them is a separate
step so a run can be inspected before anything lands on disk.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from domain.config import AnalysisConfig
from domain.results import ConfusionMatrix
from domain.statistics import StreamStatistics
from orchestration import PipelineState, PipelineContext, StateMachine
from orchestration.handlers import StreamingHandler, UnfoldingHandler
from services.aggregation.binned_aggregator import BinnedAggregator
from services.classification.track_classifier import create_classifier
from services.output.ratio_plotter import RatioPlotter
from services.output.result_writer import ResultWriter
from services.reading.record_reader import RecordReader
from services.selection.event_selector import EventSelector
from services.unfolding.ratio_builder import RatioBuilder
from services.unfolding.unfolding_engine import UnfoldingEngine


@dataclass(frozen=True)
class AnalysisResult:
    """Read-only outcome of a finalized run."""

    config: AnalysisConfig
    kaon: BinnedAggregator
    pion: BinnedAggregator
    raw_ratio: BinnedAggregator
    stats: StreamStatistics
    kaon_corrected: Optional[BinnedAggregator] = None
    pion_corrected: Optional[BinnedAggregator] = None
    corrected_ratio: Optional[BinnedAggregator] = None
    matrix: Optional[ConfusionMatrix] = None
    calibration_issue: Optional[str] = None
    elapsed_time_sec: float = 0.0

    @classmethod
    def from_context(cls, context: PipelineContext) -> 'AnalysisResult':
        if context.current_state is not PipelineState.FINALIZED:
            raise ValueError(f"Results are only available once FINALIZED, got {context.current_state}")

        return cls(
            config=context.config,
            kaon=context.kaon,
            pion=context.pion,
            raw_ratio=context.raw_ratio,
            stats=context.stream_stats,
            kaon_corrected=context.kaon_corrected,
            pion_corrected=context.pion_corrected,
            corrected_ratio=context.corrected_ratio,
            matrix=context.unfolded.matrix if context.unfolded is not None else None,
            calibration_issue=context.calibration_issue,
            elapsed_time_sec=context.elapsed_time,
        )

    @property
    def corrected_available(self) -> bool:
        return self.kaon_corrected is not None and self.pion_corrected is not None

    def histograms(self) -> list[BinnedAggregator]:
        """Raw series first, then the corrected ones when they exist."""
        hists = [self.kaon, self.pion, self.raw_ratio]
        if self.corrected_available:
            hists += [self.kaon_corrected, self.pion_corrected]
            if self.corrected_ratio is not None:
                hists.append(self.corrected_ratio)
        return hists

    def to_dict(self) -> dict:
        """Run summary for JSON serialization."""
        return {
            "parameters": self.config.describe(),
            "statistics": self.stats.to_dict(),
            "histograms": [h.name for h in self.histograms()],
            "pid_corrected": self.corrected_available,
            "calibration_issue": self.calibration_issue,
            "pid_matrix": self.matrix.to_dict() if self.matrix is not None else None,
            "yields": {
                "kaon": self.kaon.total(),
                "pion": self.pion.total(),
                "kaon_corrected": self.kaon_corrected.total() if self.kaon_corrected else None,
                "pion_corrected": self.pion_corrected.total() if self.pion_corrected else None,
            },
            "elapsed_time_sec": round(self.elapsed_time_sec, 3),
        }


class PipelineExecutor:
    """
    High-level analysis executor.

    Responsible for:
    1. Creating all services with dependency injection
    2. Building the state machine with handlers
    3. Running the analysis
    4. Writing histograms, plots and the run summary
    """

    def __init__(self, config: AnalysisConfig):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

        self.classifier = create_classifier(config)
        self.selector = EventSelector(config.selection)
        self.engine = UnfoldingEngine()
        self.ratio_builder = RatioBuilder()
        self.writer = ResultWriter()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> AnalysisResult:
        """
        Execute the analysis and return its results.

        Every call starts from empty accumulators, so repeated runs on the
        same input give identical results.

        Raises:
            ContainerError: If the input cannot be opened
            SchemaError: If required branches are missing
        """
        self._log_parameters()

        with self._open_reader() as reader:
            state_machine = self._build_state_machine(reader)
            initial_context = PipelineContext.initial(self.config, self.classifier.titles())
            final_context = state_machine.run(initial_context)

        result = AnalysisResult.from_context(final_context)
        self._log_results(result)
        return result

    def check_input(self) -> int:
        """Open and validate the input without streaming; returns the entry count."""
        with self._open_reader() as reader:
            n_entries = reader.entry_count()
        self.logger.info(f"Input OK: {n_entries} entries in '{self.config.tree_name}' of {self.config.input_path}")
        return n_entries

    def write_outputs(self, result: AnalysisResult) -> list[str]:
        """
        Write the histograms and, when configured, plots and the run summary.

        Returns:
            Names of the written histograms

        Raises:
            ContainerError: If an output file cannot be created
        """
        written = self.writer.write(self.config.output_path, result.histograms())

        if not result.corrected_available:
            self.logger.info(
                f"PID-corrected histograms not written (reason: {result.calibration_issue})"
            )

        if self.config.plots_dir:
            plotter = RatioPlotter(self.config.plots_dir)
            plotter.plot_all(result.raw_ratio, result.corrected_ratio)

        if self.config.stats_json_path:
            self.writer.write_summary(self.config.stats_json_path, result.to_dict())

        return written

    def execute(self) -> AnalysisResult:
        """Run and write outputs."""
        result = self.run()
        self.write_outputs(result)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _open_reader(self) -> RecordReader:
        return RecordReader.open(
            self.config.input_path,
            tree_name=self.config.tree_name,
            collections=self.classifier.required_collections,
            batch_size=self.config.batch_size,
        )

    def _build_state_machine(self, reader: RecordReader) -> StateMachine:
        handlers = {
            PipelineState.STREAMING: StreamingHandler(
                reader=reader,
                selector=self.selector,
                classifier=self.classifier
            ),
            PipelineState.UNFOLDING: UnfoldingHandler(
                engine=self.engine,
                ratio_builder=self.ratio_builder,
                ratio_title=self.classifier.titles()["ratio"]
            ),
        }
        return StateMachine(handlers)

    def _log_parameters(self):
        self.logger.info("=" * 60)
        self.logger.info("K/pi vs N_ch^tag analysis")
        self.logger.info("=" * 60)
        for key, value in self.config.describe().items():
            self.logger.info(f"{key:20s}: {value}")

    def _log_results(self, result: AnalysisResult):
        self.logger.info("=" * 60)
        self.logger.info("Analysis Summary")
        self.logger.info("=" * 60)

        for key, value in result.stats.to_dict().items():
            self.logger.info(f"{key:30s}: {value}")

        self.logger.info(f"{'kaon_yield':30s}: {result.kaon.total():.6g}")
        self.logger.info(f"{'pion_yield':30s}: {result.pion.total():.6g}")
        if result.corrected_available:
            self.logger.info(f"{'kaon_yield_corrected':30s}: {result.kaon_corrected.total():.6g}")
            self.logger.info(f"{'pion_yield_corrected':30s}: {result.pion_corrected.total():.6g}")
        else:
            self.logger.info(f"{'pid_correction':30s}: omitted ({result.calibration_issue})")

        self.logger.info("=" * 60)
