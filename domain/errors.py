"""
Exceptions for the K/pi analysis.

All analysis-specific failures derive from AnalysisError so callers can
catch them with a single except clause. Fatal vs. recoverable is decided
by the caller: schema and container errors abort the run, read errors and
degenerate calibrations are logged and skipped.
"""

from typing import Iterable, Mapping, Optional


class AnalysisError(Exception):
    """Base exception for all analysis errors."""
    pass


class ConfigurationError(AnalysisError):
    """Raised when a configuration value cannot be interpreted."""
    pass


class ContainerError(AnalysisError):
    """
    Raised when an input or output container cannot be opened.

    Always fatal. The message names the failing path.
    """

    def __init__(self, path: str, reason: str = ""):
        self.path = str(path)
        self.reason = reason
        message = f"Cannot open container '{self.path}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class SchemaError(AnalysisError):
    """
    Raised when required branches are absent from the input tree or are
    stored with the wrong shape.

    Always fatal, raised before any event is streamed.
    """

    def __init__(
        self,
        missing: Iterable[str],
        path: Optional[str] = None,
        tree_name: Optional[str] = None,
        mismatched: Optional[Mapping[str, str]] = None
    ):
        self.missing = tuple(sorted(missing))
        self.mismatched = dict(mismatched or {})
        self.path = path
        self.tree_name = tree_name

        location = f"tree '{tree_name}'" if tree_name else "input tree"
        if path:
            location += f" in file: {path}"

        problems = []
        if self.missing:
            shown = ", ".join(self.missing[:10])
            if len(self.missing) > 10:
                shown += f", ... ({len(self.missing) - 10} more)"
            problems.append(f"Missing {len(self.missing)} required branches in {location}: {shown}")
        if self.mismatched:
            shown = "; ".join(f"{branch} ({reason})" for branch, reason in sorted(self.mismatched.items()))
            problems.append(f"Wrong shape for {len(self.mismatched)} branches in {location}: {shown}")
        super().__init__(". ".join(problems))


class RecordOutOfRange(AnalysisError, IndexError):
    """Raised when a record index is negative or past the last entry."""

    def __init__(self, index: int, entry_count: int):
        self.index = index
        self.entry_count = entry_count
        super().__init__(f"Entry {index} out of range [0, {entry_count})")


class ReadError(AnalysisError):
    """Raised when a single record fails to materialize. The event is skipped."""

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Failed to read entry {index}: {reason}")


class CalibrationDegenerate(AnalysisError):
    """
    Raised when the PID matrix correction cannot be applied.

    Either no charged tracks were accumulated or the 2x2 confusion matrix
    is ill-conditioned. Raw outputs are unaffected.
    """

    NO_TRACKS = "no_tracks"
    SINGULAR = "singular_matrix"

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class PhaseError(AnalysisError, RuntimeError):
    """Raised on an invalid pipeline phase transition or phase re-entry."""
    pass
