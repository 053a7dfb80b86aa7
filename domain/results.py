"""
Result domain models.

Immutable values produced by classification, unfolding and aggregation.
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class EventTags:
    """Per-event classification outcome used for the yield fill."""

    nch_tag: int  # already clamped to the last bin
    n_kaon: int
    n_pion: int
    raw_nch_tag: int  # before clamping

    def __post_init__(self):
        """Validate event tags."""
        if self.nch_tag < 0:
            raise ValueError(f"nch_tag must be non-negative, got {self.nch_tag}")
        if self.n_kaon < 0 or self.n_pion < 0:
            raise ValueError(f"tag counts must be non-negative, got K={self.n_kaon} pi={self.n_pion}")

    @property
    def is_overflow(self) -> bool:
        return self.raw_nch_tag > self.nch_tag


@dataclass(frozen=True)
class ConfusionMatrix:
    """
    Average 2x2 K/pi PID matrix.

    Rows are the tag categories, columns the true species::

        [ N(tag K)  ]   [ k_as_k   pi_as_k  ] [ N_true(K)  ]
        [ N(tag pi) ] = [ k_as_pi  pi_as_pi ] [ N_true(pi) ]
    """

    k_as_k: float
    k_as_pi: float
    pi_as_k: float
    pi_as_pi: float

    @property
    def determinant(self) -> float:
        return self.k_as_k * self.pi_as_pi - self.pi_as_k * self.k_as_pi

    def fold(self, true_k: float, true_pi: float) -> tuple[float, float]:
        """Expected tagged counts for given true counts."""
        tag_k = self.k_as_k * true_k + self.pi_as_k * true_pi
        tag_pi = self.k_as_pi * true_k + self.pi_as_pi * true_pi
        return tag_k, tag_pi

    def solve(self, tag_k, tag_pi):
        """
        Invert the matrix analytically.

        Works on scalars and numpy arrays alike. No clamping and no
        conditioning check is done here.

        Returns:
            Tuple of (true_k, true_pi)
        """
        det = self.determinant
        true_k = (self.pi_as_pi * tag_k - self.pi_as_k * tag_pi) / det
        true_pi = (-self.k_as_pi * tag_k + self.k_as_k * tag_pi) / det
        return true_k, true_pi

    def to_dict(self) -> dict:
        return {
            "KAsK": self.k_as_k,
            "KAsPi": self.k_as_pi,
            "PiAsK": self.pi_as_k,
            "PiAsPi": self.pi_as_pi,
            "determinant": self.determinant,
        }


def _frozen_array(values) -> np.ndarray:
    array = np.array(values, dtype=np.float64)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class UnfoldedResult:
    """
    PID-corrected kaon and pion yields per N_ch^tag bin.

    Arrays are read-only copies; the result never changes after creation.
    """

    matrix: ConfusionMatrix
    kaon_values: np.ndarray
    kaon_errors: np.ndarray
    pion_values: np.ndarray
    pion_errors: np.ndarray

    def __post_init__(self):
        """Validate and freeze the per-bin arrays."""
        arrays = {}
        for name in ("kaon_values", "kaon_errors", "pion_values", "pion_errors"):
            arrays[name] = _frozen_array(getattr(self, name))
            object.__setattr__(self, name, arrays[name])

        lengths = {len(a) for a in arrays.values()}
        if len(lengths) != 1:
            raise ValueError(f"All per-bin arrays must have the same length, got {sorted(lengths)}")
        if np.any(self.kaon_values < 0) or np.any(self.pion_values < 0):
            raise ValueError("Corrected yields must be non-negative")

    @property
    def n_bins(self) -> int:
        return len(self.kaon_values)


@dataclass(frozen=True, eq=False)
class BinnedSeries:
    """A named output series of (bin center, value, standard error) points."""

    name: str
    title: str
    centers: np.ndarray
    values: np.ndarray
    errors: np.ndarray

    def __post_init__(self):
        if not (len(self.centers) == len(self.values) == len(self.errors)):
            raise ValueError(f"Series '{self.name}' has mismatched array lengths")
