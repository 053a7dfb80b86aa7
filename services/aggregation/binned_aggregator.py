"""
BinnedAggregator - Weighted yields per N_ch^tag bin.

Each bin keeps the sum of weights and the sum of squared weights, so the
standard error of a bin is sqrt(sumw2). Bins are unit-width and centered on
the integers 0..max_index.
"""

import numpy as np

from domain.results import BinnedSeries


class BinnedAggregator:
    """
    Fixed-binning accumulator with sum / sum-of-squares per bin.

    The aggregator does not clamp: callers put overflow into the last bin
    themselves and an out-of-range index is an error.
    """

    def __init__(self, name: str, n_bins: int, title: str = ""):
        if n_bins <= 0:
            raise ValueError(f"n_bins must be positive, got {n_bins}")

        self.name = name
        self.title = title
        self.n_bins = n_bins
        self.entries = 0
        self._sumw = np.zeros(n_bins, dtype=np.float64)
        self._sumw2 = np.zeros(n_bins, dtype=np.float64)

    @classmethod
    def for_max_tag(cls, name: str, max_tag: int, title: str = "") -> 'BinnedAggregator':
        """Aggregator with one bin per tag value 0..max_tag."""
        return cls(name=name, n_bins=max_tag + 1, title=title)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def fill(self, bin_index: int, weight: float = 1.0):
        """
        Add a weight to a bin.

        Args:
            bin_index: Bin index in [0, max_index], already clamped by the caller
            weight: Weight to add; its square goes into the variance sum

        Raises:
            IndexError: If bin_index is outside [0, max_index]
        """
        index = self._check_index(bin_index)
        self._sumw[index] += weight
        self._sumw2[index] += weight * weight
        self.entries += 1

    def set_bin(self, bin_index: int, value: float, error: float):
        """Overwrite a bin with a value and its standard error."""
        index = self._check_index(bin_index)
        self._sumw[index] = value
        self._sumw2[index] = error * error
        self.entries += 1

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def max_index(self) -> int:
        return self.n_bins - 1

    @property
    def edges(self) -> np.ndarray:
        return np.arange(self.n_bins + 1, dtype=np.float64) - 0.5

    @property
    def centers(self) -> np.ndarray:
        return np.arange(self.n_bins, dtype=np.float64)

    @property
    def is_empty(self) -> bool:
        """True when no bin was ever filled or set."""
        return self.entries == 0 and not np.any(self._sumw) and not np.any(self._sumw2)

    def values(self) -> np.ndarray:
        return self._sumw.copy()

    def variances(self) -> np.ndarray:
        return self._sumw2.copy()

    def errors(self) -> np.ndarray:
        return np.sqrt(self._sumw2)

    def value(self, bin_index: int) -> float:
        return float(self._sumw[self._check_index(bin_index)])

    def error(self, bin_index: int) -> float:
        return float(np.sqrt(self._sumw2[self._check_index(bin_index)]))

    def total(self) -> float:
        return float(np.sum(self._sumw))

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def clone(self, name: str, title: str = None, reset: bool = False) -> 'BinnedAggregator':
        """Copy with a new name; ``reset=True`` gives an empty aggregator with the same binning."""
        copy = BinnedAggregator(name=name, n_bins=self.n_bins, title=self.title if title is None else title)
        if not reset:
            copy._sumw[:] = self._sumw
            copy._sumw2[:] = self._sumw2
            copy.entries = self.entries
        return copy

    def divide(self, other: 'BinnedAggregator', name: str, title: str = "") -> 'BinnedAggregator':
        """
        Bin-wise ratio self / other.

        Relative variances add (numerator and denominator uncorrelated)::

            r = a / b
            var(r) = (var(a) * b^2 + var(b) * a^2) / b^4
                   = r^2 * (var(a)/a^2 + var(b)/b^2)

        Bins with an empty denominator get value 0 and error 0.

        Raises:
            ValueError: If the binnings differ
        """
        if not self.same_binning(other):
            raise ValueError(
                f"Cannot divide '{self.name}' ({self.n_bins} bins) by "
                f"'{other.name}' ({other.n_bins} bins)"
            )

        ratio = BinnedAggregator(name=name, n_bins=self.n_bins, title=title)

        a, b = self._sumw, other._sumw
        var_a, var_b = self._sumw2, other._sumw2
        valid = b != 0

        values = np.zeros(self.n_bins, dtype=np.float64)
        variances = np.zeros(self.n_bins, dtype=np.float64)
        values[valid] = a[valid] / b[valid]
        b2 = b[valid] * b[valid]
        variances[valid] = (var_a[valid] * b2 + var_b[valid] * a[valid] * a[valid]) / (b2 * b2)

        ratio._sumw[:] = values
        ratio._sumw2[:] = variances
        ratio.entries = self.entries
        return ratio

    def same_binning(self, other: 'BinnedAggregator') -> bool:
        return self.n_bins == other.n_bins

    def to_series(self) -> BinnedSeries:
        return BinnedSeries(
            name=self.name,
            title=self.title,
            centers=self.centers,
            values=self.values(),
            errors=self.errors(),
        )

    def _check_index(self, bin_index: int) -> int:
        index = int(bin_index)
        if index != bin_index or not 0 <= index <= self.max_index:
            raise IndexError(f"Bin index {bin_index} outside [0, {self.max_index}] for '{self.name}'")
        return index

    def __repr__(self) -> str:
        return f"BinnedAggregator(name={self.name!r}, n_bins={self.n_bins}, entries={self.entries})"
