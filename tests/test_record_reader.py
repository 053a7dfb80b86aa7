"""
Tests for RecordReader service.

Integration tests against small ROOT files written with uproot.
"""

import logging
from unittest.mock import patch

import awkward as ak
import numpy as np
import pytest
import uproot

from domain.errors import ContainerError, SchemaError, RecordOutOfRange, ReadError
from services.reading import schemas
from services.reading.record_reader import RecordReader
from conftest import write_event_tree, reco_tracks, selected_event


def _three_events():
    return [
        selected_event(reco_tracks(2, pid_kaon=[2, 0], energy=30.0), run=1, event=11),
        selected_event(reco_tracks(0), run=1, event=12, nch=0),
        selected_event(reco_tracks(3, pid_pion=2, energy=20.0), run=2, event=13, thrust_z=0.5),
    ]


class TestRecordReaderOpen:
    """Tests for opening and validating the event tree."""

    def test_open_valid_tree(self, tmp_path):
        """Test opening a tree with the full reco layout."""
        path = write_event_tree(tmp_path / "events.root", _three_events())

        with RecordReader.open(path, collections=("reco",)) as reader:
            assert reader.entry_count() == 3
            assert reader.path == path

    def test_missing_file_is_container_error(self, tmp_path):
        """Test that an unopenable input names the path."""
        missing = str(tmp_path / "does_not_exist.root")

        with pytest.raises(ContainerError) as exc_info:
            RecordReader.open(missing)
        assert missing in str(exc_info.value)

    def test_missing_tree_is_container_error(self, tmp_path):
        """Test that a file without the requested tree cannot be used."""
        path = write_event_tree(tmp_path / "events.root", _three_events(), tree_name="Other")

        with pytest.raises(ContainerError, match="tree 'Tree' not found"):
            RecordReader.open(path, collections=("reco",))

    def test_missing_branches_is_schema_error(self, tmp_path):
        """Test that a missing required branch aborts before any read."""
        path = str(tmp_path / "partial.root")
        with uproot.recreate(path) as output_file:
            output_file["Tree"] = {"Ecm": np.array([91.2]), "Nch": np.array([10], dtype=np.int32)}

        with pytest.raises(SchemaError) as exc_info:
            RecordReader.open(path, collections=("reco",))

        assert "NReco" in exc_info.value.missing
        assert "RecoPIDKaon" in exc_info.value.missing
        assert "Ecm" not in exc_info.value.missing

    def test_gen_branches_required_only_when_requested(self, tmp_path):
        """Test that collections not requested need not be present."""
        path = write_event_tree(tmp_path / "events.root", _three_events(), collections=("reco",))

        with pytest.raises(SchemaError) as exc_info:
            RecordReader.open(path, collections=("reco", "gen"))
        assert "GenID" in exc_info.value.missing

    def test_list_branch_stored_per_entry_is_schema_error(self, tmp_path):
        """Test that a per-particle branch holding one value per entry is refused at open."""
        path = write_event_tree(
            tmp_path / "events.root", _three_events(),
            replace={"RecoPIDKaon": np.array([2, 0, 0], dtype=np.int32)}
        )

        with pytest.raises(SchemaError) as exc_info:
            RecordReader.open(path, collections=("reco",))

        assert exc_info.value.missing == ()
        assert list(exc_info.value.mismatched) == ["RecoPIDKaon"]
        assert "per-particle list" in str(exc_info.value)
        assert path in str(exc_info.value)

    def test_counter_stored_as_list_is_schema_error(self, tmp_path):
        """Test that a jagged counter branch is refused at open."""
        path = write_event_tree(
            tmp_path / "events.root", _three_events(),
            replace={"NReco": ak.Array([[2], [0], [3]])}
        )

        with pytest.raises(SchemaError) as exc_info:
            RecordReader.open(path, collections=("reco",))

        assert "NReco" in exc_info.value.mismatched
        assert "one value per entry" in exc_info.value.mismatched["NReco"]

    def test_scalar_stored_as_list_is_schema_error(self, tmp_path):
        """Test that a jagged event scalar is refused at open."""
        path = write_event_tree(
            tmp_path / "events.root", _three_events(),
            replace={"ThrustZ": ak.Array([[0.1], [], [0.5, 0.2]])}
        )

        with pytest.raises(SchemaError) as exc_info:
            RecordReader.open(path, collections=("reco",))
        assert list(exc_info.value.mismatched) == ["ThrustZ"]

    def test_unknown_collection(self, tmp_path):
        """Test that an unknown collection name is rejected."""
        path = write_event_tree(tmp_path / "events.root", _three_events())
        with pytest.raises(KeyError):
            RecordReader.open(path, collections=("muons",))


class TestRecordReaderRead:
    """Tests for per-entry reads."""

    def test_read_scalars_and_collections(self, tmp_path):
        """Test that an entry round-trips into an EventRecord."""
        path = write_event_tree(tmp_path / "events.root", _three_events())

        with RecordReader.open(path, collections=("reco",)) as reader:
            record = reader.read(2)

        assert record.entry == 2
        assert record.run == 2
        assert record.event == 13
        assert record.thrust_z == pytest.approx(0.5)
        assert len(record.reco) == 3
        np.testing.assert_array_equal(record.reco.pid_pion, [2, 2, 2])
        np.testing.assert_allclose(record.reco.energy, [20.0, 20.0, 20.0])
        assert not record.gen.is_loaded
        assert not record.was_clamped

    def test_integer_fields_are_read_as_integers(self, tmp_path):
        """Test that PID decisions stored as floats come back as integers."""
        path = write_event_tree(
            tmp_path / "events.root", _three_events(),
            replace={"RecoPIDKaon": ak.Array([[2.0, 0.0], [], [0.0, 1.0, 0.0]])}
        )

        with RecordReader.open(path, collections=("reco",)) as reader:
            record = reader.read(0)

        assert record.reco.pid_kaon.dtype == np.int64
        np.testing.assert_array_equal(record.reco.pid_kaon, [2, 0])
        assert record.reco.energy.dtype == np.float64

    def test_empty_collection(self, tmp_path):
        """Test an entry with zero reco tracks."""
        path = write_event_tree(tmp_path / "events.root", _three_events())

        with RecordReader.open(path, collections=("reco",)) as reader:
            record = reader.read(1)

        assert len(record.reco) == 0
        assert record.nch == 0

    def test_reads_are_repeatable_in_any_order(self, tmp_path):
        """Test random access across chunk boundaries."""
        path = write_event_tree(tmp_path / "events.root", _three_events())

        with RecordReader.open(path, collections=("reco",), batch_size=2) as reader:
            last = reader.read(2)
            first = reader.read(0)
            last_again = reader.read(2)

        assert first.event == 11
        np.testing.assert_array_equal(first.reco.pid_kaon, [2, 0])
        np.testing.assert_array_equal(last.reco.pid_pion, last_again.reco.pid_pion)

    def test_record_arrays_are_owned_copies(self, tmp_path):
        """Test that modifying one record does not affect a later read."""
        path = write_event_tree(tmp_path / "events.root", _three_events())

        with RecordReader.open(path, collections=("reco",)) as reader:
            record = reader.read(0)
            record.reco.pid_kaon[0] = 99
            again = reader.read(0)

        assert again.reco.pid_kaon[0] == 2

    @pytest.mark.parametrize("index", [-1, 3, 100])
    def test_out_of_range(self, tmp_path, index):
        """Test that indices outside [0, N) raise RecordOutOfRange."""
        path = write_event_tree(tmp_path / "events.root", _three_events())

        with RecordReader.open(path, collections=("reco",)) as reader:
            with pytest.raises(RecordOutOfRange):
                reader.read(index)

    def test_count_above_capacity_is_clamped(self, tmp_path, caplog):
        """Test that a count beyond capacity is clipped with one diagnostic."""
        path = write_event_tree(tmp_path / "events.root", _three_events())

        with RecordReader.open(path, collections=("reco",), capacities={"reco": 2}) as reader:
            with caplog.at_level(logging.WARNING, logger="RecordReader"):
                record = reader.read(2)

        assert len(record.reco) == 2
        assert record.overflows == ("reco",)
        assert record.was_clamped
        warnings = [r for r in caplog.records if "capacity" in r.getMessage()]
        assert len(warnings) == 1
        assert "NReco = 3 > capacity 2 at entry 2" in warnings[0].getMessage()

    def test_count_larger_than_stored_values_is_read_error(self, tmp_path):
        """Test that a counter pointing past the stored values fails the entry."""
        path = write_event_tree(
            tmp_path / "events.root", _three_events(), counts={"reco": [2, 0, 5]}
        )

        with RecordReader.open(path, collections=("reco",)) as reader:
            assert len(reader.read(0).reco) == 2
            with pytest.raises(ReadError, match="short read"):
                reader.read(2)

    def test_full_layout(self, tmp_path):
        """Test reading every collection of the tree."""
        events = _three_events()
        events[0]["gen"] = {"pdg_id": [321, -211]}
        events[0]["kshort"] = {"px": [1.5]}
        path = write_event_tree(tmp_path / "events.root", events, collections=schemas.ALL_COLLECTIONS)

        with RecordReader.open(path) as reader:
            record = reader.read(0)

        np.testing.assert_array_equal(record.gen.pdg_id, [321, -211])
        np.testing.assert_allclose(record.kshort.px, [1.5])
        assert len(record.phi) == 0
        assert record.phi.is_loaded


class TestRecordReaderFailures:
    """Tests for store failures during reads."""

    def test_failing_entry_raises_read_error(self, tmp_path):
        """Test that a store failure surfaces as ReadError for that entry."""
        path = write_event_tree(tmp_path / "events.root", _three_events())

        with RecordReader.open(path, collections=("reco",)) as reader:
            with patch.object(reader, "_load_chunk", side_effect=OSError("corrupt basket")):
                with pytest.raises(ReadError) as exc_info:
                    reader.read(1)

        assert exc_info.value.index == 1
        assert "corrupt basket" in str(exc_info.value)

    def test_failed_chunk_falls_back_to_single_entries(self, tmp_path):
        """Test that one bad entry only costs that entry."""
        path = write_event_tree(tmp_path / "events.root", _three_events())
        original = RecordReader._load_chunk

        def flaky(self, entry_start, entry_stop):
            if entry_start <= 1 < entry_stop:
                raise OSError("corrupt basket")
            return original(self, entry_start, entry_stop)

        with RecordReader.open(path, collections=("reco",)) as reader:
            with patch.object(RecordReader, "_load_chunk", flaky):
                first = reader.read(0)
                with pytest.raises(ReadError):
                    reader.read(1)
                last = reader.read(2)

        assert first.event == 11
        assert last.event == 13
