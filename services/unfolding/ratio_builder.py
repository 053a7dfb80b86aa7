"""
RatioBuilder - K/pi ratio series from kaon and pion yields.
"""

from typing import Optional

from services.aggregation.binned_aggregator import BinnedAggregator


RAW_RATIO_NAME = "hKoverPi"
CORRECTED_RATIO_NAME = "hKoverPiCorrected"
CORRECTED_RATIO_TITLE = "K/#pi vs N_{ch}^{tag};N_{ch}^{tag};K/#pi (PID-corrected)"


class RatioBuilder:
    """Divides kaon by pion yields bin by bin, propagating relative variances."""

    def build(
        self,
        kaon: BinnedAggregator,
        pion: BinnedAggregator,
        name: str,
        title: str = ""
    ) -> BinnedAggregator:
        return kaon.divide(pion, name=name, title=title)

    def build_raw(self, kaon: BinnedAggregator, pion: BinnedAggregator, title: str = "") -> BinnedAggregator:
        return self.build(kaon, pion, RAW_RATIO_NAME, title)

    def build_corrected(
        self,
        kaon_corrected: Optional[BinnedAggregator],
        pion_corrected: Optional[BinnedAggregator]
    ) -> Optional[BinnedAggregator]:
        """
        Corrected ratio, or None when the correction was not applied.

        An empty corrected aggregator means unfolding was skipped; no ratio
        is produced for it rather than a series of zeros.
        """
        if kaon_corrected is None or pion_corrected is None:
            return None
        if kaon_corrected.is_empty and pion_corrected.is_empty:
            return None
        return self.build(kaon_corrected, pion_corrected, CORRECTED_RATIO_NAME, CORRECTED_RATIO_TITLE)
