"""
CalibrationAccumulator - Running sums of per-track PID efficiencies.

The per-track RecoEfficiencyXAsY values come from MC calibration as a
function of track kinematics. The true species is unknown in data, so the
K/pi matrix is built from their average over all charged tracks.
"""

import numpy as np

from domain.errors import CalibrationDegenerate
from domain.results import ConfusionMatrix


class CalibrationAccumulator:
    """
    Accumulates K as K, K as pi, pi as K and pi as pi over charged tracks.

    Stateful; owned by one analysis run and never reset mid-stream.
    """

    def __init__(self):
        self._sum_k_as_k = 0.0
        self._sum_k_as_pi = 0.0
        self._sum_pi_as_k = 0.0
        self._sum_pi_as_pi = 0.0
        self._track_count = 0

    def add_track(self, k_as_k: float, k_as_pi: float, pi_as_k: float, pi_as_pi: float):
        """Add the calibration values of one charged track."""
        self._sum_k_as_k += k_as_k
        self._sum_k_as_pi += k_as_pi
        self._sum_pi_as_k += pi_as_k
        self._sum_pi_as_pi += pi_as_pi
        self._track_count += 1

    def add_tracks(self, k_as_k, k_as_pi, pi_as_k, pi_as_pi):
        """
        Add the calibration values of several charged tracks at once.

        Args:
            k_as_k, k_as_pi, pi_as_k, pi_as_pi: Parallel per-track arrays
        """
        n_tracks = len(k_as_k)
        if not (len(k_as_pi) == len(pi_as_k) == len(pi_as_pi) == n_tracks):
            raise ValueError("Calibration arrays must have the same length")
        if n_tracks == 0:
            return

        self._sum_k_as_k += float(np.sum(k_as_k))
        self._sum_k_as_pi += float(np.sum(k_as_pi))
        self._sum_pi_as_k += float(np.sum(pi_as_k))
        self._sum_pi_as_pi += float(np.sum(pi_as_pi))
        self._track_count += n_tracks

    @property
    def track_count(self) -> int:
        return self._track_count

    @property
    def sums(self) -> dict[str, float]:
        return {
            "KAsK": self._sum_k_as_k,
            "KAsPi": self._sum_k_as_pi,
            "PiAsK": self._sum_pi_as_k,
            "PiAsPi": self._sum_pi_as_pi,
        }

    def averages(self) -> ConfusionMatrix:
        """
        Average efficiencies as a confusion matrix.

        Raises:
            CalibrationDegenerate: If no track was accumulated
        """
        if self._track_count == 0:
            raise CalibrationDegenerate(
                CalibrationDegenerate.NO_TRACKS,
                "No tracks accumulated for efficiency calibration; "
                "PID-corrected yields will remain empty."
            )

        n = self._track_count
        return ConfusionMatrix(
            k_as_k=self._sum_k_as_k / n,
            k_as_pi=self._sum_k_as_pi / n,
            pi_as_k=self._sum_pi_as_k / n,
            pi_as_pi=self._sum_pi_as_pi / n,
        )
