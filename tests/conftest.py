"""
Shared fixtures and helpers for the test suite.

Synthetic event trees are written with uproot into pytest's tmp_path, so
reader and pipeline tests run against real ROOT files.
"""

import awkward as ak
import numpy as np
import pytest
import uproot

from domain.config import AnalysisConfig
from domain.events import EventRecord, ParticleArrays
from services.reading import schemas


def reco_tracks(n, pid_kaon=0, pid_pion=0, pid_proton=0, energy=10.0, charge=1, **columns) -> dict:
    """
    Column dict for n identical reco tracks.

    Any reco column can be overridden with a scalar or a length-n sequence.
    """
    base = {
        "energy": energy,
        "charge": charge,
        "pid_kaon": pid_kaon,
        "pid_pion": pid_pion,
        "pid_proton": pid_proton,
    }
    base.update(columns)
    return {key: np.broadcast_to(np.asarray(value), (n,)).copy() for key, value in base.items()}


def make_record(reco=None, gen=None, nch=10, thrust_z=0.0, **scalars) -> EventRecord:
    """EventRecord built in memory, without a file."""
    return EventRecord(
        nch=nch,
        thrust_z=thrust_z,
        reco=ParticleArrays.from_dict("reco", reco or {}),
        gen=ParticleArrays.from_dict("gen", gen or {}),
        **scalars
    )


def write_event_tree(path, events, collections=("reco",), tree_name="Tree", counts=None, replace=None):
    """
    Write a tree with the full branch layout of the given collections.

    Args:
        path: Output file path
        events: List of dicts; scalar attributes by EventRecord name (e.g.
            "nch", "thrust_z") and collections as {column: values}
        collections: Collections whose branches are written
        tree_name: Name of the tree
        counts: Optional {collection: [count per event]} to store counter
            values that differ from the list lengths
        replace: Optional {branch: array} stored instead of the generated
            branch, e.g. to change its shape

    Returns:
        The path, as a string
    """
    branches = {}

    for branch, attr in schemas.SCALAR_BRANCHES.items():
        dtype = np.int32 if branch in schemas.INTEGER_SCALARS else np.float64
        branches[branch] = np.array([event.get(attr, 0) for event in events], dtype=dtype)

    for name in collections:
        layout = schemas.COLLECTIONS[name]
        per_event = [event.get(name, {}) for event in events]
        lengths = [max((len(v) for v in cols.values()), default=0) for cols in per_event]

        stored_counts = (counts or {}).get(name, lengths)
        branches[layout["count"]] = np.array(stored_counts, dtype=np.int32)

        for branch, column in layout["fields"].items():
            dtype = np.int32 if branch in layout["integer_fields"] else np.float64
            pieces = [
                np.asarray(cols.get(column, np.zeros(n)), dtype=dtype)
                for cols, n in zip(per_event, lengths)
            ]
            flat = np.concatenate(pieces) if pieces else np.zeros(0, dtype=dtype)
            branches[branch] = ak.unflatten(flat.astype(dtype), np.array(lengths, dtype=np.int64))

    branches.update(replace or {})

    with uproot.recreate(str(path)) as output_file:
        output_file[tree_name] = branches

    return str(path)


def selected_event(reco, **scalars) -> dict:
    """Event dict that passes the default selection (energy, Nch, thrust)."""
    event = {"ecm": 91.2, "nch": 10, "thrust_z": 0.0, "reco": reco}
    event.update(scalars)
    return event


@pytest.fixture
def make_config(tmp_path):
    """Factory for AnalysisConfig pointing into tmp_path."""
    def _make(input_path, **overrides):
        params = dict(
            input_path=str(input_path),
            output_path=str(tmp_path / "out" / "KtoPi.root"),
            show_progress=False,
        )
        params.update(overrides)
        return AnalysisConfig(**params)
    return _make
