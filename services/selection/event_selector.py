"""
EventSelector service - Event-level cuts.

Pure predicate over one EventRecord. Cuts, in order:
  1. sum(reco E) / E_ref > min_energy_fraction
  2. Nch >= min_multiplicity
  3. min_theta < acos(ThrustZ) < max_theta
"""

import math
from enum import Enum

import numpy as np

from domain.config import SelectionConfig
from domain.events import EventRecord


class SelectionDecision(Enum):
    """Outcome of the event selection: passed, or the first cut that failed."""

    PASSED = "passed"
    ENERGY = "energy"
    MULTIPLICITY = "multiplicity"
    THRUST = "thrust"

    @property
    def passed(self) -> bool:
        return self is SelectionDecision.PASSED


class EventSelector:
    """
    Applies the event-level cuts.

    Stateless: the same record always yields the same decision.
    """

    def __init__(self, config: SelectionConfig):
        self.config = config
        self._min_theta = config.min_theta
        self._max_theta = config.max_theta

    def evaluate(self, record: EventRecord) -> SelectionDecision:
        """
        Evaluate all cuts on a record.

        Returns:
            SelectionDecision.PASSED, or the first failing cut
        """
        if self.energy_fraction(record, self.config.reference_energy) <= self.config.min_energy_fraction:
            return SelectionDecision.ENERGY

        if record.nch < self.config.min_multiplicity:
            return SelectionDecision.MULTIPLICITY

        theta = self.thrust_theta(record.thrust_z)
        # NaN (unphysical ThrustZ) fails both comparisons
        if not (self._min_theta < theta < self._max_theta):
            return SelectionDecision.THRUST

        return SelectionDecision.PASSED

    @staticmethod
    def energy_fraction(record: EventRecord, reference_energy: float) -> float:
        """Visible reconstructed energy over the reference energy."""
        return float(np.sum(record.reco.energy)) / reference_energy

    @staticmethod
    def thrust_theta(thrust_z: float) -> float:
        """Thrust-axis polar angle in radians, NaN if |ThrustZ| > 1."""
        try:
            return math.acos(thrust_z)
        except ValueError:
            return math.nan
