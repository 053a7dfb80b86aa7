"""
ResultWriter - Persist the binned series as TH1D histograms.

Histograms are written with uproot. Each one carries its per-bin sum of
squared weights (fSumw2), so errors survive the round trip. Titles
follow the ROOT "title;x title;y title" convention and are split into the
histogram and axis titles.
"""

import json
import logging
from pathlib import Path
from typing import Iterable

import numpy as np
import uproot
from uproot.writing.identify import to_TAxis, to_TH1x

from domain.errors import ContainerError
from services.aggregation.binned_aggregator import BinnedAggregator


def split_title(title: str) -> tuple[str, str, str]:
    """Split 'main;x;y' into its three parts, missing parts empty."""
    parts = title.split(";")
    parts += [""] * (3 - len(parts))
    return parts[0], parts[1], parts[2]


def to_th1d(aggregator: BinnedAggregator):
    """
    Build an uproot TH1D model from an aggregator.

    Underflow and overflow bins are empty; every tag value lands in a
    regular bin.
    """
    n_bins = aggregator.n_bins
    values = aggregator.values()
    variances = aggregator.variances()
    centers = aggregator.centers
    edges = aggregator.edges

    data = np.zeros(n_bins + 2, dtype=np.float64)
    data[1:-1] = values
    sumw2 = np.zeros(n_bins + 2, dtype=np.float64)
    sumw2[1:-1] = variances

    main_title, x_title, y_title = split_title(aggregator.title)

    return to_TH1x(
        fName=aggregator.name,
        fTitle=main_title,
        data=data,
        fEntries=float(aggregator.entries),
        fTsumw=float(np.sum(values)),
        fTsumw2=float(np.sum(variances)),
        fTsumwx=float(np.sum(values * centers)),
        fTsumwx2=float(np.sum(values * centers * centers)),
        fSumw2=sumw2,
        fXaxis=to_TAxis(
            fName="xaxis",
            fTitle=x_title,
            fNbins=n_bins,
            fXmin=float(edges[0]),
            fXmax=float(edges[-1]),
        ),
        fYaxis=to_TAxis(
            fName="yaxis",
            fTitle=y_title,
            fNbins=1,
            fXmin=0.0,
            fXmax=1.0,
        ),
    )


class ResultWriter:
    """Writes the analysis histograms and the run summary."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def write(self, path: str, histograms: Iterable[BinnedAggregator]) -> list[str]:
        """
        Write histograms to a new ROOT file, replacing any existing one.

        Args:
            path: Output file path
            histograms: Aggregators to write, keyed in the file by their name

        Returns:
            Names of the written histograms

        Raises:
            ContainerError: If the output file cannot be created
        """
        output_path = Path(path)
        try:
            if output_path.parent and not output_path.parent.exists():
                output_path.parent.mkdir(parents=True, exist_ok=True)
            output_file = uproot.recreate(str(output_path))
        except OSError as e:
            raise ContainerError(str(path), str(e)) from e

        written = []
        with output_file:
            for hist in histograms:
                output_file[hist.name] = to_th1d(hist)
                written.append(hist.name)
                self.logger.debug(f"Wrote {hist.name} ({hist.n_bins} bins, {hist.entries} entries)")

        self.logger.info(f"Output written to: {path} ({', '.join(written)})")
        return written

    def write_summary(self, path: str, summary: dict) -> Path:
        """
        Write the run summary as JSON.

        Raises:
            ContainerError: If the file cannot be written
        """
        summary_path = Path(path)
        try:
            summary_path.parent.mkdir(parents=True, exist_ok=True)
            with open(summary_path, "w") as f:
                json.dump(summary, f, indent=2)
        except OSError as e:
            raise ContainerError(str(path), str(e)) from e

        self.logger.info(f"Run summary written to: {summary_path}")
        return summary_path
