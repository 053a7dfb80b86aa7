"""
Event-related domain models.

One EventRecord is materialized per read. Particle collections are
per-event owned numpy sequences, already clamped to capacity.
"""

from dataclasses import dataclass, field
from typing import Mapping

import numpy as np


@dataclass(frozen=True, eq=False)
class ParticleArrays:
    """
    Parallel per-particle columns of one collection in one event.

    Columns are accessed as attributes, e.g. ``record.reco.pid_kaon``.
    All columns have the same length.
    """

    name: str
    columns: Mapping[str, np.ndarray] = field(default_factory=dict)

    def __post_init__(self):
        """Validate that all columns are parallel."""
        lengths = {len(values) for values in self.columns.values()}
        if len(lengths) > 1:
            raise ValueError(
                f"Columns of collection '{self.name}' have different lengths: {sorted(lengths)}"
            )

    def __len__(self) -> int:
        for values in self.columns.values():
            return len(values)
        return 0

    def __getattr__(self, item: str) -> np.ndarray:
        if item in ("name", "columns") or item.startswith("__"):
            raise AttributeError(item)
        try:
            return self.columns[item]
        except KeyError:
            raise AttributeError(
                f"Collection '{self.name}' has no column '{item}' "
                f"(loaded: {sorted(self.columns.keys())})"
            ) from None

    @property
    def is_loaded(self) -> bool:
        """Whether the collection was read from the store."""
        return bool(self.columns)

    @classmethod
    def from_dict(cls, name: str, columns: Mapping[str, object]) -> 'ParticleArrays':
        """
        Build a collection from plain sequences.

        Args:
            name: Collection name (e.g. "reco")
            columns: Column name to sequence of values

        Returns:
            ParticleArrays with numpy columns
        """
        return cls(name=name, columns={key: np.asarray(values) for key, values in columns.items()})


def _empty(name: str):
    return field(default_factory=lambda: ParticleArrays(name))


@dataclass(frozen=True)
class EventRecord:
    """
    One entry of the event tree.

    Scalars mirror the tree's event-level branches. Collections that were
    not requested from the store are empty and not loaded.
    """

    entry: int = 0

    # Event-level scalars
    ecm: float = 0.0
    nch: int = 0
    run: int = 0
    event: int = 0
    fill: int = 0
    good_nch: int = 0
    good_nneu: int = 0
    total_ech: float = 0.0
    total_eneu: float = 0.0
    pass_nch: int = 0
    pass_thrust: int = 0
    pass_total_e: int = 0
    pass_all: int = 0
    thrust: float = 0.0
    thrust_x: float = 0.0
    thrust_y: float = 0.0
    thrust_z: float = 0.0
    thrust_theta: float = 0.0

    # Particle collections
    gen: ParticleArrays = _empty("gen")
    reco: ParticleArrays = _empty("reco")
    sim: ParticleArrays = _empty("sim")
    kshort: ParticleArrays = _empty("kshort")
    phi: ParticleArrays = _empty("phi")

    # Collections whose stored count exceeded capacity and were clipped
    overflows: tuple[str, ...] = ()

    def __post_init__(self):
        """Validate the event record."""
        if self.entry < 0:
            raise ValueError(f"entry must be non-negative, got {self.entry}")

    @property
    def was_clamped(self) -> bool:
        """Whether any collection was clipped to capacity."""
        return len(self.overflows) > 0
