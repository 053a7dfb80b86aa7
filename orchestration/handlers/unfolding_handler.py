"""
UnfoldingHandler - Handles the UNFOLDING state.

Single pass over all bins once the stream is exhausted: builds the raw
K/pi ratio and, in reco mode with correction enabled, the PID-corrected
yields and their ratio.
"""

from domain.errors import CalibrationDegenerate, PhaseError
from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from services.unfolding.ratio_builder import RatioBuilder
from services.unfolding.unfolding_engine import UnfoldingEngine
from .base import StateHandler


KAON_CORRECTED_NAME = "hKCorrected"
PION_CORRECTED_NAME = "hPiCorrected"
KAON_CORRECTED_TITLE = "PID-corrected K yield vs N_{ch}^{tag};N_{ch}^{tag};Corrected K yield"
PION_CORRECTED_TITLE = "PID-corrected #pi yield vs N_{ch}^{tag};N_{ch}^{tag};Corrected #pi yield"

# Reasons recorded when no correction is attempted
GEN_MODE = "gen_mode"
CORRECTION_DISABLED = "correction_disabled"


class UnfoldingHandler(StateHandler):
    """
    Handler for UNFOLDING state.

    A degenerate calibration is not fatal: the corrected series are
    omitted and the reason is kept on the context.
    """

    def __init__(
        self,
        engine: UnfoldingEngine,
        ratio_builder: RatioBuilder,
        ratio_title: str = ""
    ):
        """
        Initialize handler.

        Args:
            engine: Unfolding engine
            ratio_builder: K/pi ratio builder
            ratio_title: Title of the raw ratio histogram for the run's mode
        """
        super().__init__()
        self.engine = engine
        self.ratio_builder = ratio_builder
        self.ratio_title = ratio_title

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        """
        Build ratios and corrected yields.

        Args:
            context: Pipeline context after streaming

        Returns:
            Tuple of (updated_context, FINALIZED)

        Raises:
            PhaseError: If streaming has not completed
        """
        self._log_state_entry(context)

        if context.stream_stats is None or not context.has_visited(PipelineState.STREAMING):
            raise PhaseError("Unfolding requires a completed streaming phase")

        updated_context = self._correct(context)

        raw_ratio = self.ratio_builder.build_raw(context.kaon, context.pion, self.ratio_title)
        corrected_ratio = self.ratio_builder.build_corrected(
            updated_context.kaon_corrected, updated_context.pion_corrected
        )
        updated_context = updated_context.with_ratios(raw_ratio, corrected_ratio)

        next_state = PipelineState.FINALIZED
        self._log_state_exit(context, next_state)
        return updated_context, next_state

    def _correct(self, context: PipelineContext) -> PipelineContext:
        config = context.config

        if config.is_gen:
            self.logger.info("Generator-level mode: no PID correction applied")
            return context.with_calibration_issue(GEN_MODE)
        if not config.apply_pid_correction:
            self.logger.info("PID correction disabled: writing raw yields only")
            return context.with_calibration_issue(CORRECTION_DISABLED)

        try:
            unfolded = self.engine.unfold(context.kaon, context.pion, context.calibration)
        except CalibrationDegenerate as e:
            self.logger.warning(f"{e} Corrected outputs omitted.")
            return context.with_calibration_issue(e.reason)

        kaon_corrected = context.kaon.clone(KAON_CORRECTED_NAME, title=KAON_CORRECTED_TITLE, reset=True)
        pion_corrected = context.pion.clone(PION_CORRECTED_NAME, title=PION_CORRECTED_TITLE, reset=True)
        self.engine.fill_corrected(unfolded, kaon_corrected, pion_corrected)

        self.logger.info(
            f"PID-corrected yields: K={kaon_corrected.total():.6g}, pi={pion_corrected.total():.6g}"
        )
        return context.with_unfolded(unfolded, kaon_corrected, pion_corrected)
