"""
Ratio plotter.

Draws the K/pi ratio versus N_ch^tag as error-bar plots, one PNG per
series (raw, and PID-corrected when available).
"""

import logging
from pathlib import Path
from typing import Optional

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for servers
import matplotlib.pyplot as plt

from services.aggregation.binned_aggregator import BinnedAggregator
from services.output.result_writer import split_title


class RatioPlotter:
    """Creates ratio plots from binned K/pi series."""

    COLORS = {
        'raw': '#2980b9',
        'corrected': '#e74c3c',
        'text_dark': '#2c3e50',
    }

    def __init__(self, output_dir: str):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.logger = logging.getLogger(self.__class__.__name__)

    def plot_ratio(
        self,
        ratio: BinnedAggregator,
        save_name: str,
        color: str = COLORS['raw']
    ) -> Path:
        """
        Plot one ratio series.

        Empty-denominator bins (value 0, error 0) are left out of the plot.

        Returns:
            Path of the written PNG
        """
        series = ratio.to_series()
        main_title, x_title, y_title = split_title(series.title)

        centers, values, errors = series.centers, series.values, series.errors
        shown = (values != 0) | (errors != 0)

        fig, ax = plt.subplots(figsize=(10, 6))
        ax.errorbar(
            centers[shown], values[shown], yerr=errors[shown],
            xerr=0.5, fmt='o', markersize=4, capsize=2, color=color,
            label=series.name
        )
        ax.set_title(_latex(main_title) or series.name, fontsize=14, fontweight='bold',
                     color=self.COLORS['text_dark'])
        ax.set_xlabel(_latex(x_title))
        ax.set_ylabel(_latex(y_title))
        ax.set_xlim(ratio.edges[0], ratio.edges[-1])
        ax.grid(True, alpha=0.3)
        ax.legend(loc='best')

        output_path = self.output_dir / save_name
        plt.savefig(output_path, dpi=150, bbox_inches='tight', facecolor='white')
        plt.close(fig)

        self.logger.info(f"Saved ratio plot: {output_path}")
        return output_path

    def plot_all(
        self,
        raw_ratio: BinnedAggregator,
        corrected_ratio: Optional[BinnedAggregator] = None
    ) -> list[Path]:
        """Plot the raw ratio and, if present, the corrected one."""
        paths = [self.plot_ratio(raw_ratio, "KoverPi_raw.png", self.COLORS['raw'])]
        if corrected_ratio is not None:
            paths.append(
                self.plot_ratio(corrected_ratio, "KoverPi_corrected.png", self.COLORS['corrected'])
            )
        return paths


def _latex(label: str) -> str:
    """Convert a ROOT TLatex label to matplotlib mathtext, word by word."""
    return " ".join(
        f"${word.replace('#', chr(92))}$" if any(c in word for c in "#{^_") else word
        for word in label.split(" ")
    )
