"""
UnfoldingEngine - PID matrix correction of the tagged K/pi yields.

Per N_ch^tag bin the tagged counts are related to the true counts by the
average 2x2 confusion matrix::

    [ N(tag K)  ]   [ eKAsK   ePiAsK  ] [ N_true(K)  ]
    [ N(tag pi) ] = [ eKAsPi  ePiAsPi ] [ N_true(pi) ]

The matrix is inverted analytically. Negative estimates are floored at 0.
Errors are propagated as for a linear map with fixed coefficients, with
the tagged K and pi bin errors taken as uncorrelated.
"""

import logging

import numpy as np

from domain.errors import CalibrationDegenerate
from domain.results import ConfusionMatrix, UnfoldedResult
from services import consts
from services.aggregation.binned_aggregator import BinnedAggregator
from services.aggregation.calibration_accumulator import CalibrationAccumulator


class UnfoldingEngine:
    """Builds the average PID matrix and applies its inverse to every bin."""

    def __init__(self, min_determinant: float = consts.MIN_DETERMINANT):
        if min_determinant < 0:
            raise ValueError(f"min_determinant must be non-negative, got {min_determinant}")
        self.min_determinant = min_determinant
        self.logger = logging.getLogger(self.__class__.__name__)

    def unfold(
        self,
        kaon: BinnedAggregator,
        pion: BinnedAggregator,
        calibration: CalibrationAccumulator
    ) -> UnfoldedResult:
        """
        Correct the tagged yields with the accumulated calibration.

        Args:
            kaon: Tagged kaon yield per bin
            pion: Tagged pion yield per bin
            calibration: Calibration sums collected while streaming

        Returns:
            UnfoldedResult with corrected yields and errors

        Raises:
            CalibrationDegenerate: If no tracks were accumulated or the
                matrix is ill-conditioned
        """
        matrix = calibration.averages()

        self.logger.info("Average K/pi PID matrix (rows = tag K, tag pi; cols = true K, true pi)")
        self.logger.info(f"  [tagK]  KAsK={matrix.k_as_k:.6g}   PiAsK={matrix.pi_as_k:.6g}")
        self.logger.info(f"  [tagPi] KAsPi={matrix.k_as_pi:.6g}   PiAsPi={matrix.pi_as_pi:.6g}")
        self.logger.info(f"  det={matrix.determinant:.6g} from {calibration.track_count} tracks")

        return self.unfold_with_matrix(kaon, pion, matrix)

    def unfold_with_matrix(
        self,
        kaon: BinnedAggregator,
        pion: BinnedAggregator,
        matrix: ConfusionMatrix
    ) -> UnfoldedResult:
        """Apply the inverse of a given matrix to every bin."""
        if not kaon.same_binning(pion):
            raise ValueError(f"Kaon ({kaon.n_bins} bins) and pion ({pion.n_bins} bins) binnings differ")

        det = matrix.determinant
        if abs(det) < self.min_determinant:
            raise CalibrationDegenerate(
                CalibrationDegenerate.SINGULAR,
                f"PID 2x2 K/pi matrix determinant is tiny ({det:.3g}). "
                "Skipping efficiency/fake-rate correction."
            )

        tag_k, tag_pi = kaon.values(), pion.values()
        err_tag_k, err_tag_pi = kaon.errors(), pion.errors()

        true_k, true_pi = matrix.solve(tag_k, tag_pi)

        n_negative = int(np.count_nonzero(true_k < 0) + np.count_nonzero(true_pi < 0))
        if n_negative:
            self.logger.debug(f"Flooring {n_negative} negative corrected bin values at 0")
        true_k = np.maximum(true_k, 0.0)
        true_pi = np.maximum(true_pi, 0.0)

        err_true_k = np.sqrt(
            (matrix.pi_as_pi * err_tag_k / det) ** 2
            + (matrix.pi_as_k * err_tag_pi / det) ** 2
        )
        err_true_pi = np.sqrt(
            (matrix.k_as_pi * err_tag_k / det) ** 2
            + (matrix.k_as_k * err_tag_pi / det) ** 2
        )

        return UnfoldedResult(
            matrix=matrix,
            kaon_values=true_k,
            kaon_errors=err_true_k,
            pion_values=true_pi,
            pion_errors=err_true_pi,
        )

    @staticmethod
    def fill_corrected(
        result: UnfoldedResult,
        kaon_corrected: BinnedAggregator,
        pion_corrected: BinnedAggregator
    ):
        """Write corrected values and errors into (empty) aggregators."""
        if kaon_corrected.n_bins != result.n_bins or pion_corrected.n_bins != result.n_bins:
            raise ValueError("Corrected aggregators must match the unfolded binning")

        for ib in range(result.n_bins):
            kaon_corrected.set_bin(ib, result.kaon_values[ib], result.kaon_errors[ib])
            pion_corrected.set_bin(ib, result.pion_values[ib], result.pion_errors[ib])
