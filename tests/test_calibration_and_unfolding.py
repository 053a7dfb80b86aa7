"""
Tests for CalibrationAccumulator and UnfoldingEngine services.
"""

import numpy as np
import pytest

from domain.errors import CalibrationDegenerate
from domain.results import ConfusionMatrix
from services.aggregation.binned_aggregator import BinnedAggregator
from services.aggregation.calibration_accumulator import CalibrationAccumulator
from services.unfolding.unfolding_engine import UnfoldingEngine


def _single_track_calibration(kk=0.9, kpi=0.05, pik=0.05, pipi=0.9) -> CalibrationAccumulator:
    calibration = CalibrationAccumulator()
    calibration.add_track(kk, kpi, pik, pipi)
    return calibration


def _yields(kaon_weights, pion_weights, max_tag=3, bin_index=1):
    kaon = BinnedAggregator.for_max_tag("hK", max_tag)
    pion = BinnedAggregator.for_max_tag("hPi", max_tag)
    for w in kaon_weights:
        kaon.fill(bin_index, w)
    for w in pion_weights:
        pion.fill(bin_index, w)
    return kaon, pion


class TestCalibrationAccumulator:
    """Tests for CalibrationAccumulator service."""

    def test_single_track_averages_equal_inputs(self):
        """Test that one track gives its own values as averages."""
        matrix = _single_track_calibration().averages()

        assert matrix == ConfusionMatrix(k_as_k=0.9, k_as_pi=0.05, pi_as_k=0.05, pi_as_pi=0.9)

    def test_add_tracks_matches_add_track(self):
        """Test that bulk and single-track accumulation agree."""
        bulk = CalibrationAccumulator()
        bulk.add_tracks(np.array([0.8, 0.6]), np.array([0.1, 0.3]), np.array([0.2, 0.0]), np.array([0.7, 0.9]))

        single = CalibrationAccumulator()
        single.add_track(0.8, 0.1, 0.2, 0.7)
        single.add_track(0.6, 0.3, 0.0, 0.9)

        assert bulk.track_count == single.track_count == 2
        assert bulk.sums == pytest.approx(single.sums)

    def test_empty_add_tracks_is_no_op(self):
        """Test that an event without charged tracks changes nothing."""
        calibration = CalibrationAccumulator()
        calibration.add_tracks([], [], [], [])
        assert calibration.track_count == 0

    def test_mismatched_lengths_fail(self):
        """Test that per-track arrays must be parallel."""
        with pytest.raises(ValueError, match="same length"):
            CalibrationAccumulator().add_tracks([0.9], [0.1, 0.1], [0.1], [0.9])

    def test_no_tracks_is_degenerate(self):
        """Test that averaging zero tracks is reported, not a division by zero."""
        with pytest.raises(CalibrationDegenerate) as exc_info:
            CalibrationAccumulator().averages()
        assert exc_info.value.reason == CalibrationDegenerate.NO_TRACKS


class TestUnfoldingEngine:
    """Tests for UnfoldingEngine service."""

    def test_recovers_pure_kaon_sample(self):
        """Test that folded counts (9, 0.5) of 10 true kaons unfold to (10, 0)."""
        calibration = _single_track_calibration()
        tag_k, tag_pi = calibration.averages().fold(10.0, 0.0)
        assert (tag_k, tag_pi) == pytest.approx((9.0, 0.5))

        kaon = BinnedAggregator.for_max_tag("hK", 3)
        pion = BinnedAggregator.for_max_tag("hPi", 3)
        kaon.set_bin(2, tag_k, 3.0)
        pion.set_bin(2, tag_pi, 1.0)

        result = UnfoldingEngine().unfold(kaon, pion, calibration)

        assert result.kaon_values[2] == pytest.approx(10.0)
        assert result.pion_values[2] == pytest.approx(0.0, abs=1e-9)

    def test_analytic_inversion(self):
        """Test the closed-form solution for tagK=9, tagPi=1."""
        kaon, pion = _yields([9], [1])
        result = UnfoldingEngine().unfold(kaon, pion, _single_track_calibration())

        det = 0.9 * 0.9 - 0.05 * 0.05
        assert result.kaon_values[1] == pytest.approx((0.9 * 9 - 0.05 * 1) / det)
        assert result.pion_values[1] == pytest.approx((-0.05 * 9 + 0.9 * 1) / det)

    def test_error_propagation(self):
        """Test linear error propagation with uncorrelated tagged errors."""
        kaon, pion = _yields([3, 4], [6, 2, 1])  # variances 25 and 41
        matrix = ConfusionMatrix(k_as_k=0.8, k_as_pi=0.15, pi_as_k=0.1, pi_as_pi=0.85)
        result = UnfoldingEngine().unfold_with_matrix(kaon, pion, matrix)

        det = matrix.determinant
        e_k, e_pi = 5.0, np.sqrt(41.0)
        expected_k = np.sqrt((0.85 * e_k / det) ** 2 + (0.1 * e_pi / det) ** 2)
        expected_pi = np.sqrt((0.15 * e_k / det) ** 2 + (0.8 * e_pi / det) ** 2)

        assert result.kaon_errors[1] == pytest.approx(expected_k)
        assert result.pion_errors[1] == pytest.approx(expected_pi)

    def test_negative_solutions_floored_at_zero(self):
        """Test that corrected yields are never negative."""
        # Many kaon tags, few pion tags: the pion solution goes negative
        kaon, pion = _yields([20], [0])
        matrix = ConfusionMatrix(k_as_k=0.9, k_as_pi=0.05, pi_as_k=0.05, pi_as_pi=0.9)
        result = UnfoldingEngine().unfold_with_matrix(kaon, pion, matrix)

        assert result.pion_values[1] == 0.0
        assert result.kaon_values[1] > 0.0
        assert np.all(result.kaon_values >= 0)
        assert np.all(result.pion_values >= 0)

    def test_empty_bins_stay_zero(self):
        """Test that bins without tags unfold to 0 with error 0."""
        kaon, pion = _yields([2], [5])
        result = UnfoldingEngine().unfold(kaon, pion, _single_track_calibration())

        assert result.kaon_values[0] == 0.0
        assert result.kaon_errors[0] == 0.0
        assert result.pion_values[3] == 0.0

    def test_degenerate_matrix(self):
        """Test that |det| < 1e-8 raises CalibrationDegenerate."""
        kaon, pion = _yields([2], [5])
        calibration = _single_track_calibration(kk=0.5, kpi=0.5, pik=0.5, pipi=0.5)

        with pytest.raises(CalibrationDegenerate) as exc_info:
            UnfoldingEngine().unfold(kaon, pion, calibration)
        assert exc_info.value.reason == CalibrationDegenerate.SINGULAR
        assert "determinant" in str(exc_info.value)

    def test_no_calibration_tracks(self):
        """Test that unfolding without calibration tracks is degenerate."""
        kaon, pion = _yields([2], [5])
        with pytest.raises(CalibrationDegenerate) as exc_info:
            UnfoldingEngine().unfold(kaon, pion, CalibrationAccumulator())
        assert exc_info.value.reason == CalibrationDegenerate.NO_TRACKS

    def test_fill_corrected(self):
        """Test writing the corrected values into empty aggregators."""
        kaon, pion = _yields([9], [1])
        engine = UnfoldingEngine()
        result = engine.unfold(kaon, pion, _single_track_calibration())

        kaon_corrected = kaon.clone("hKCorrected", reset=True)
        pion_corrected = pion.clone("hPiCorrected", reset=True)
        engine.fill_corrected(result, kaon_corrected, pion_corrected)

        np.testing.assert_allclose(kaon_corrected.values(), result.kaon_values)
        np.testing.assert_allclose(pion_corrected.errors(), result.pion_errors)

    def test_binning_mismatch_fails(self):
        """Test that kaon and pion yields must share a binning."""
        kaon = BinnedAggregator.for_max_tag("hK", 3)
        pion = BinnedAggregator.for_max_tag("hPi", 4)
        with pytest.raises(ValueError):
            UnfoldingEngine().unfold_with_matrix(kaon, pion, ConfusionMatrix(1.0, 0.0, 0.0, 1.0))
