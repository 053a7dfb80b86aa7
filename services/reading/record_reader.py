"""
RecordReader service - Bounds-checked access to the event tree.

Opens the ROOT file with uproot, validates the branch layout up front and
materializes one EventRecord per read. Entries are fetched from the tree
in chunks; a failing chunk falls back to single-entry reads so one bad
entry only costs that entry.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import awkward as ak
import numpy as np
import uproot

from domain.errors import ContainerError, SchemaError, RecordOutOfRange, ReadError
from domain.events import EventRecord, ParticleArrays
from services.reading import schemas


@dataclass
class _Chunk:
    """Decoded block of consecutive entries."""

    start: int
    length: int
    columns: dict  # branch -> values, or (flat values, offsets) for lists

    def covers(self, index: int) -> bool:
        return self.start <= index < self.start + self.length


class RecordReader:
    """
    Reader for the strangeness event tree.

    Use ``RecordReader.open`` to create one; it validates that every branch
    needed for the requested collections is present before anything is read.
    """

    def __init__(
        self,
        root_file,
        tree,
        path: str,
        tree_name: str,
        collections: tuple[str, ...],
        capacities: dict[str, int],
        batch_size: int
    ):
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")

        self.path = path
        self.tree_name = tree_name
        self.collections = collections
        self.capacities = capacities
        self.batch_size = batch_size
        self.logger = logging.getLogger(self.__class__.__name__)

        self._file = root_file
        self._tree = tree
        self._branches = sorted(schemas.required_branches(collections))
        self._chunk: Optional[_Chunk] = None
        self._failed_chunk_starts: set[int] = set()

    @classmethod
    def open(
        cls,
        path: str,
        tree_name: str = "Tree",
        collections: Iterable[str] = schemas.ALL_COLLECTIONS,
        capacities: Optional[dict[str, int]] = None,
        batch_size: int = 10_000
    ) -> 'RecordReader':
        """
        Open an event tree.

        Args:
            path: Path to the ROOT file
            tree_name: Name of the event tree inside the file
            collections: Particle collections to load (scalars are always loaded)
            capacities: Optional per-collection capacity overrides
            batch_size: Number of entries decoded per chunk

        Returns:
            RecordReader attached to the tree

        Raises:
            ContainerError: If the file or the tree cannot be opened
            SchemaError: If required branches are missing, or a branch holds
                lists where one value per entry is expected (or the reverse)
        """
        collections = tuple(collections)
        for name in collections:
            schemas.get_collection_layout(name)

        merged_capacities = dict(schemas.CAPACITIES)
        merged_capacities.update(capacities or {})

        try:
            root_file = uproot.open(path)
        except Exception as e:
            raise ContainerError(path, str(e)) from e

        try:
            available_trees = {key.split(";")[0] for key in root_file.keys()}
            if tree_name not in available_trees:
                raise ContainerError(path, f"tree '{tree_name}' not found (available: {sorted(available_trees)})")
            tree = root_file[tree_name]

            missing = schemas.required_branches(collections) - set(tree.keys())
            if missing:
                raise SchemaError(missing, path=path, tree_name=tree_name)

            mismatched = cls._shape_mismatches(tree, collections)
            if mismatched:
                raise SchemaError((), path=path, tree_name=tree_name, mismatched=mismatched)
        except Exception:
            root_file.close()
            raise

        reader = cls(
            root_file=root_file,
            tree=tree,
            path=path,
            tree_name=tree_name,
            collections=collections,
            capacities=merged_capacities,
            batch_size=batch_size
        )
        reader.logger.info(
            f"Opened '{tree_name}' in {path}: {reader.entry_count()} entries, "
            f"collections={list(collections)}"
        )
        return reader

    @classmethod
    def _shape_mismatches(cls, tree, collections: tuple[str, ...]) -> dict[str, str]:
        """Branches stored with the wrong shape: branch -> description."""
        mismatched = {}
        for branch in sorted(schemas.flat_branches(collections)):
            if not cls._is_flat(tree[branch]):
                mismatched[branch] = f"expected one value per entry, found '{tree[branch].typename}'"
        for branch in sorted(schemas.list_branches(collections)):
            if not cls._is_list(tree[branch]):
                mismatched[branch] = f"expected a per-particle list, found '{tree[branch].typename}'"
        return mismatched

    @staticmethod
    def _is_flat(branch) -> bool:
        interpretation = branch.interpretation
        return (
            isinstance(interpretation, uproot.interpretation.numerical.Numerical)
            and interpretation.to_dtype.shape == ()
        )

    @staticmethod
    def _is_list(branch) -> bool:
        return isinstance(
            branch.interpretation,
            (uproot.interpretation.jagged.AsJagged, uproot.interpretation.objects.AsObjects)
        )

    def entry_count(self) -> int:
        """Number of entries in the tree."""
        return int(self._tree.num_entries)

    def read(self, index: int) -> EventRecord:
        """
        Materialize one entry.

        Args:
            index: Entry index

        Returns:
            EventRecord for the entry

        Raises:
            RecordOutOfRange: If index < 0 or index >= entry_count()
            ReadError: If the entry cannot be read (skip it and continue)
        """
        n_entries = self.entry_count()
        if index < 0 or index >= n_entries:
            raise RecordOutOfRange(index, n_entries)

        chunk = self._chunk_for(index)
        row = index - chunk.start
        return self._build_record(chunk, row, index)

    def close(self):
        """Release the file handle."""
        self._chunk = None
        self._file.close()

    def __enter__(self) -> 'RecordReader':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Chunk handling
    # ------------------------------------------------------------------

    def _chunk_for(self, index: int) -> _Chunk:
        if self._chunk is not None and self._chunk.covers(index):
            return self._chunk

        chunk_start = (index // self.batch_size) * self.batch_size
        if chunk_start not in self._failed_chunk_starts:
            chunk_stop = min(chunk_start + self.batch_size, self.entry_count())
            try:
                self._chunk = self._load_chunk(chunk_start, chunk_stop)
            except Exception as e:
                self.logger.warning(
                    f"Error reading entries {chunk_start}-{chunk_stop}: {e}. "
                    "Falling back to single-entry reads."
                )
                self._failed_chunk_starts.add(chunk_start)
                self._chunk = None

            if self._chunk is not None and self._chunk.covers(index):
                return self._chunk
            if self._chunk is not None:
                self.logger.warning(
                    f"Short read: got {self._chunk.length} entries from {chunk_start}, "
                    f"expected {chunk_stop - chunk_start}. Falling back to single-entry reads."
                )
                self._failed_chunk_starts.add(chunk_start)

        try:
            self._chunk = self._load_chunk(index, index + 1)
        except Exception as e:
            raise ReadError(index, str(e)) from e

        if not self._chunk.covers(index):
            raise ReadError(index, "store returned no data")
        return self._chunk

    def _load_chunk(self, entry_start: int, entry_stop: int) -> _Chunk:
        arrays = self._tree.arrays(
            self._branches,
            entry_start=entry_start,
            entry_stop=entry_stop,
            library="ak"
        )

        columns = {}
        for branch in arrays.fields:
            values = arrays[branch]
            if values.ndim > 1:
                counts = ak.to_numpy(ak.num(values, axis=1))
                offsets = np.zeros(len(counts) + 1, dtype=np.int64)
                np.cumsum(counts, out=offsets[1:])
                columns[branch] = (ak.to_numpy(ak.flatten(values, axis=1)), offsets)
            else:
                columns[branch] = ak.to_numpy(values)

        return _Chunk(start=entry_start, length=len(arrays), columns=columns)

    # ------------------------------------------------------------------
    # Record construction
    # ------------------------------------------------------------------

    def _build_record(self, chunk: _Chunk, row: int, index: int) -> EventRecord:
        scalars = {}
        for branch, attr in schemas.SCALAR_BRANCHES.items():
            value = chunk.columns[branch]
            if isinstance(value, tuple):
                raise ReadError(index, f"scalar branch '{branch}' holds a list")
            scalars[attr] = int(value[row]) if branch in schemas.INTEGER_SCALARS else float(value[row])

        collections = {}
        overflows = []
        for name in self.collections:
            layout = schemas.COLLECTIONS[name]
            count_branch = layout["count"]
            count = int(chunk.columns[count_branch][row])
            capacity = self.capacities[name]

            if count < 0:
                raise ReadError(index, f"negative count {count_branch} = {count}")

            n_particles = count
            if count > capacity:
                self.logger.warning(
                    f"{count_branch} = {count} > capacity {capacity} at entry {index}. "
                    f"Clipping to {capacity}."
                )
                overflows.append(name)
                n_particles = capacity

            columns = {}
            for branch, column in layout["fields"].items():
                dtype = np.int64 if branch in layout["integer_fields"] else np.float64
                values = self._slice(chunk.columns[branch], row, n_particles, branch, index)
                columns[column] = values.astype(dtype)
            collections[name] = ParticleArrays(name=name, columns=columns)

        return EventRecord(entry=index, overflows=tuple(overflows), **scalars, **collections)

    @staticmethod
    def _slice(column, row: int, n_particles: int, branch: str, index: int) -> np.ndarray:
        if not isinstance(column, tuple):
            raise ReadError(index, f"branch '{branch}' is not a per-particle list")

        flat, offsets = column
        start, stop = int(offsets[row]), int(offsets[row + 1])
        if stop - start < n_particles:
            raise ReadError(
                index,
                f"short read on '{branch}': {stop - start} values stored, {n_particles} expected"
            )
        return flat[start:start + n_particles]
