"""
Track classifiers - Turn one selected event into K/pi tag counts.

One strategy per counting mode, chosen once per run:
  - RecoTrackClassifier: K/pi counts from reco PID decisions, feeds the
    calibration sums
  - GenTrackClassifier: K/pi counts from generator-level PDG ids

Both define N_ch^tag from reconstructed tracks: a track counts if its
kaon, pion or proton PID level is at or above PID_TAG_LEVEL.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from domain.config import AnalysisConfig
from domain.events import EventRecord, ParticleArrays
from domain.results import EventTags
from services import consts
from services.aggregation.calibration_accumulator import CalibrationAccumulator


class TrackClassifier(ABC):
    """Base class for the per-event K/pi counting strategies."""

    mode: str = ""
    required_collections: tuple[str, ...] = ("reco",)
    accumulates_calibration: bool = False

    def __init__(self, max_nch_tag: int):
        if max_nch_tag < 0:
            raise ValueError(f"max_nch_tag must be non-negative, got {max_nch_tag}")
        self.max_nch_tag = max_nch_tag
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def classify(
        self,
        record: EventRecord,
        calibration: Optional[CalibrationAccumulator] = None
    ) -> EventTags:
        """
        Classify the tracks of one selected event.

        Args:
            record: Event that passed the selection
            calibration: Running calibration sums, fed only by strategies
                that accumulate calibration

        Returns:
            EventTags with N_ch^tag clamped to max_nch_tag
        """
        pass

    @abstractmethod
    def titles(self) -> dict[str, str]:
        """Histogram titles for the kaon, pion and ratio series in this mode."""
        pass

    @staticmethod
    def multiplicity_tag(reco: ParticleArrays) -> int:
        """Number of reco tracks tagged as kaon, pion or proton (non-exclusive)."""
        tagged = (
            (reco.pid_kaon >= consts.PID_TAG_LEVEL)
            | (reco.pid_pion >= consts.PID_TAG_LEVEL)
            | (reco.pid_proton >= consts.PID_TAG_LEVEL)
        )
        return int(np.count_nonzero(tagged))

    def _make_tags(self, raw_nch_tag: int, n_kaon: int, n_pion: int) -> EventTags:
        # Overflow goes into the last bin
        return EventTags(
            nch_tag=min(raw_nch_tag, self.max_nch_tag),
            n_kaon=n_kaon,
            n_pion=n_pion,
            raw_nch_tag=raw_nch_tag,
        )


class RecoTrackClassifier(TrackClassifier):
    """
    Counts PID-tagged kaons and pions among reconstructed tracks.

    A track can be kaon-tagged and pion-tagged at the same time. Every
    charged track contributes its calibration values, whatever its tags.
    """

    mode = "reco"
    required_collections = ("reco",)
    accumulates_calibration = True

    def classify(
        self,
        record: EventRecord,
        calibration: Optional[CalibrationAccumulator] = None
    ) -> EventTags:
        reco = record.reco

        kaon_tagged = reco.pid_kaon >= consts.PID_TAG_LEVEL
        pion_tagged = reco.pid_pion >= consts.PID_TAG_LEVEL

        if calibration is not None:
            charged = reco.charge != 0
            calibration.add_tracks(
                reco.eff_k_as_k[charged],
                reco.eff_k_as_pi[charged],
                reco.eff_pi_as_k[charged],
                reco.eff_pi_as_pi[charged],
            )

        return self._make_tags(
            raw_nch_tag=self.multiplicity_tag(reco),
            n_kaon=int(np.count_nonzero(kaon_tagged)),
            n_pion=int(np.count_nonzero(pion_tagged)),
        )

    def titles(self) -> dict[str, str]:
        return {
            "kaon": "Kaon candidates vs N_{ch}^{tag};N_{ch}^{tag};Yield (sum over events)",
            "pion": "Pion candidates vs N_{ch}^{tag};N_{ch}^{tag};Yield (sum over events)",
            "ratio": "K/#pi yield ratio vs N_{ch}^{tag};N_{ch}^{tag};K/#pi (reco)",
        }


class GenTrackClassifier(TrackClassifier):
    """
    Counts generator-level charged kaons and pions by |PDG id|.

    N_ch^tag still comes from reconstructed tracks. No calibration is
    accumulated in this mode.
    """

    mode = "gen"
    required_collections = ("reco", "gen")
    accumulates_calibration = False

    def classify(
        self,
        record: EventRecord,
        calibration: Optional[CalibrationAccumulator] = None
    ) -> EventTags:
        abs_pdg = np.abs(record.gen.pdg_id)

        return self._make_tags(
            raw_nch_tag=self.multiplicity_tag(record.reco),
            n_kaon=int(np.count_nonzero(abs_pdg == consts.KAON_PDG_ID)),
            n_pion=int(np.count_nonzero(abs_pdg == consts.PION_PDG_ID)),
        )

    def titles(self) -> dict[str, str]:
        return {
            "kaon": "Generator-level kaons vs N_{ch}^{tag};N_{ch}^{tag};N_{K}^{gen}",
            "pion": "Generator-level pions vs N_{ch}^{tag};N_{ch}^{tag};N_{#pi}^{gen}",
            "ratio": "Generator-level K/#pi yield ratio vs N_{ch}^{tag};N_{ch}^{tag};K/#pi (gen)",
        }


def create_classifier(config: AnalysisConfig) -> TrackClassifier:
    """Pick the counting strategy for a run."""
    if config.is_gen:
        return GenTrackClassifier(max_nch_tag=config.max_nch_tag)
    return RecoTrackClassifier(max_nch_tag=config.max_nch_tag)
