"""
Tests for ResultWriter service.
"""

import numpy as np
import pytest
import uproot

from domain.errors import ContainerError
from services.aggregation.binned_aggregator import BinnedAggregator
from services.output.result_writer import ResultWriter, split_title


class TestSplitTitle:
    """Tests for ROOT title splitting."""

    def test_full_title(self):
        """Test 'main;x;y' titles."""
        assert split_title("K/#pi;N_{ch}^{tag};Ratio") == ("K/#pi", "N_{ch}^{tag}", "Ratio")

    def test_plain_title(self):
        """Test a title without axis labels."""
        assert split_title("hK") == ("hK", "", "")


class TestResultWriter:
    """Tests for ResultWriter service."""

    def test_write_and_read_back(self, tmp_path):
        """Test that values, errors, titles and entries survive the round trip."""
        hist = BinnedAggregator.for_max_tag("hK", 4, title="Kaons;N_{ch}^{tag};Yield")
        hist.fill(2, 3)
        hist.fill(2, 1)
        hist.fill(4, 2)

        path = tmp_path / "out.root"
        written = ResultWriter().write(str(path), [hist])

        assert written == ["hK"]
        with uproot.open(path) as f:
            read = f["hK"]
            np.testing.assert_allclose(read.values(), [0.0, 0.0, 4.0, 0.0, 2.0])
            np.testing.assert_allclose(read.errors(), np.sqrt([0.0, 0.0, 10.0, 0.0, 4.0]))
            assert read.member("fTitle") == "Kaons"
            assert read.member("fEntries") == 3.0
            assert read.member("fXaxis").member("fTitle") == "N_{ch}^{tag}"

    def test_recreate_replaces_existing_file(self, tmp_path):
        """Test that rewriting drops histograms of an earlier run."""
        path = str(tmp_path / "out.root")
        writer = ResultWriter()
        writer.write(path, [BinnedAggregator("hK", 3), BinnedAggregator("hKCorrected", 3)])
        writer.write(path, [BinnedAggregator("hK", 3)])

        with uproot.open(path) as f:
            assert f.keys(cycle=False) == ["hK"]

    def test_unwritable_output_is_container_error(self, tmp_path):
        """Test that an output path that cannot be created names the path."""
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        path = str(blocker / "out.root")

        with pytest.raises(ContainerError) as exc_info:
            ResultWriter().write(path, [BinnedAggregator("hK", 3)])
        assert path in str(exc_info.value)

    def test_write_summary(self, tmp_path):
        """Test the run summary JSON."""
        path = ResultWriter().write_summary(str(tmp_path / "logs" / "stats.json"), {"selected_events": 3})
        assert path.read_text().strip().startswith("{")
