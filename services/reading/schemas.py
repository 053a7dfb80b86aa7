"""
Branch layout of the strangeness event tree.

Maps every branch of the tree onto an EventRecord attribute. Scalars are
one value per entry; each collection has a counter branch, a capacity and
a set of parallel per-particle branches read as one variable-length list
per entry.
"""

# Event-level scalars: branch -> EventRecord attribute
SCALAR_BRANCHES = {
    "Ecm": "ecm",
    "Nch": "nch",
    "Run": "run",
    "Event": "event",
    "Fill": "fill",
    "GoodNch": "good_nch",
    "GoodNneu": "good_nneu",
    "TotalEch": "total_ech",
    "TotalEneu": "total_eneu",
    "PassNch": "pass_nch",
    "PassThrust": "pass_thrust",
    "PassTotalE": "pass_total_e",
    "PassAll": "pass_all",
    "Thrust": "thrust",
    "ThrustX": "thrust_x",
    "ThrustY": "thrust_y",
    "ThrustZ": "thrust_z",
    "ThrustTheta": "thrust_theta",
}

# Scalars stored as integers in the tree
INTEGER_SCALARS = {
    "Nch", "Run", "Event", "Fill", "GoodNch", "GoodNneu",
    "PassNch", "PassThrust", "PassTotalE", "PassAll",
}

# Upper bounds on the per-entry particle counts
CAPACITIES = {
    "gen": 10000,
    "reco": 10000,
    "sim": 10000,
    "kshort": 4096,
    "phi": 4096,
}

# Per-collection layout:
# - "count": counter branch holding the number of particles in the entry
# - "fields": per-particle branch -> column name on ParticleArrays
# - "integer_fields": per-particle branches read as integers
COLLECTIONS = {
    "gen": {
        "count": "NGen",
        "fields": {
            "GenPx": "px",
            "GenPy": "py",
            "GenPz": "pz",
            "GenE": "energy",
            "GenM": "mass",
            "GenID": "pdg_id",
            "GenStatus": "status",
            "GenParent": "parent",
            "GenMatchIndex": "match_index",
            "GenMatchAngle": "match_angle",
        },
        "integer_fields": {"GenID", "GenStatus", "GenParent", "GenMatchIndex"},
    },
    "reco": {
        "count": "NReco",
        "fields": {
            "RecoPx": "px",
            "RecoPy": "py",
            "RecoPz": "pz",
            "RecoE": "energy",
            "RecoCharge": "charge",
            "RecoID": "id",
            "RecoTrackLength": "track_length",
            "RecoTrackD0": "track_d0",
            "RecoTrackZ0": "track_z0",
            "RecoPIDElectron": "pid_electron",
            "RecoPIDProton": "pid_proton",
            "RecoPIDKaon": "pid_kaon",
            "RecoPIDPion": "pid_pion",
            "RecoPIDHeavy": "pid_heavy",
            "RecoPIDQProton": "pid_q_proton",
            "RecoPIDQKaon": "pid_q_kaon",
            "RecoMuID": "mu_id",
            "RecoEleID": "ele_id",
            "RecoConversionID": "conversion_id",
            "RecoGoodTrack": "good_track",
            "RecoGoodNeutral": "good_neutral",
            "RecoEfficiencyKAsK": "eff_k_as_k",
            "RecoEfficiencyKAsPi": "eff_k_as_pi",
            "RecoEfficiencyKAsP": "eff_k_as_p",
            "RecoEfficiencyPiAsK": "eff_pi_as_k",
            "RecoEfficiencyPiAsPi": "eff_pi_as_pi",
            "RecoEfficiencyPiAsP": "eff_pi_as_p",
            "RecoEfficiencyPAsK": "eff_p_as_k",
            "RecoEfficiencyPAsPi": "eff_p_as_pi",
            "RecoEfficiencyPAsP": "eff_p_as_p",
        },
        "integer_fields": {
            "RecoID", "RecoPIDElectron", "RecoPIDProton", "RecoPIDKaon",
            "RecoPIDPion", "RecoPIDHeavy", "RecoMuID", "RecoEleID",
            "RecoConversionID", "RecoGoodTrack", "RecoGoodNeutral",
        },
    },
    "sim": {
        "count": "NSim",
        "fields": {
            "SimPx": "px",
            "SimPy": "py",
            "SimPz": "pz",
            "SimE": "energy",
            "SimID": "pdg_id",
        },
        "integer_fields": {"SimID"},
    },
    "kshort": {
        "count": "NKShort",
        "fields": {
            "KShortPx": "px",
            "KShortPy": "py",
            "KShortPz": "pz",
            "KShortE": "energy",
            "KShortSim1ID": "sim1_id",
            "KShortSim2ID": "sim2_id",
            "KShortReco1ID": "reco1_id",
            "KShortReco2ID": "reco2_id",
            "KShortReco1Angle": "reco1_angle",
            "KShortReco2Angle": "reco2_angle",
            "KShortRecoPx": "reco_px",
            "KShortRecoPy": "reco_py",
            "KShortRecoPz": "reco_pz",
            "KShortRecoE": "reco_energy",
        },
        "integer_fields": {"KShortSim1ID", "KShortSim2ID", "KShortReco1ID", "KShortReco2ID"},
    },
    "phi": {
        "count": "NPhi",
        "fields": {
            "PhiPx": "px",
            "PhiPy": "py",
            "PhiPz": "pz",
            "PhiE": "energy",
            "PhiGen1ID": "gen1_id",
            "PhiGen2ID": "gen2_id",
            "PhiReco1ID": "reco1_id",
            "PhiReco2ID": "reco2_id",
            "PhiReco1Angle": "reco1_angle",
            "PhiReco2Angle": "reco2_angle",
            "PhiRecoPx": "reco_px",
            "PhiRecoPy": "reco_py",
            "PhiRecoPz": "reco_pz",
            "PhiRecoE": "reco_energy",
        },
        "integer_fields": {"PhiGen1ID", "PhiGen2ID", "PhiReco1ID", "PhiReco2ID"},
    },
}

ALL_COLLECTIONS = tuple(COLLECTIONS.keys())


def get_collection_layout(name: str) -> dict:
    """
    Get the branch layout of a collection.

    Raises:
        KeyError: If the collection name is unknown
    """
    if name not in COLLECTIONS:
        raise KeyError(f"Unknown collection '{name}'. Available: {list(COLLECTIONS.keys())}")
    return COLLECTIONS[name]


def required_branches(collections=ALL_COLLECTIONS) -> set[str]:
    """
    All branches that must exist in the tree to read the given collections.

    Scalars are always required.
    """
    branches = set(SCALAR_BRANCHES.keys())
    for name in collections:
        layout = get_collection_layout(name)
        branches.add(layout["count"])
        branches.update(layout["fields"].keys())
    return branches


def flat_branches(collections=ALL_COLLECTIONS) -> set[str]:
    """Branches holding one value per entry: the scalars and the counters."""
    branches = set(SCALAR_BRANCHES.keys())
    for name in collections:
        branches.add(get_collection_layout(name)["count"])
    return branches


def list_branches(collections=ALL_COLLECTIONS) -> set[str]:
    """Branches holding one variable-length list per entry."""
    branches = set()
    for name in collections:
        branches.update(get_collection_layout(name)["fields"].keys())
    return branches
