"""
Configuration domain models.

Validated configuration objects for the K/pi analysis.
"""

import math
from dataclasses import dataclass, field
from typing import Optional, Union

from .errors import ConfigurationError


TRUE_STRINGS = ("1", "true", "yes")
FALSE_STRINGS = ("0", "false", "no")


def parse_bool(value: Union[str, bool, int]) -> bool:
    """
    Interpret a boolean option value.

    Accepts booleans, 0/1 and the case-insensitive strings
    true/false, yes/no, 1/0.

    Raises:
        ConfigurationError: If the value is not a recognized spelling
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)

    text = str(value).strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise ConfigurationError(f"Cannot interpret '{value}' as a boolean (use true/false, yes/no or 1/0)")


@dataclass(frozen=True)
class SelectionConfig:
    """Event-level cut thresholds."""

    reference_energy: float = 91.2
    min_energy_fraction: float = 0.5
    min_multiplicity: int = 7
    min_theta_deg: float = 30.0
    max_theta_deg: float = 150.0

    def __post_init__(self):
        """Validate selection thresholds."""
        if self.reference_energy <= 0:
            raise ValueError(f"reference_energy must be positive, got {self.reference_energy}")
        if self.min_energy_fraction < 0:
            raise ValueError(f"min_energy_fraction must be non-negative, got {self.min_energy_fraction}")
        if not 0.0 <= self.min_theta_deg <= 180.0:
            raise ValueError(f"min_theta_deg must be within [0, 180], got {self.min_theta_deg}")
        if not 0.0 <= self.max_theta_deg <= 180.0:
            raise ValueError(f"max_theta_deg must be within [0, 180], got {self.max_theta_deg}")
        if self.min_theta_deg >= self.max_theta_deg:
            raise ValueError(
                f"min_theta_deg ({self.min_theta_deg}) must be less than "
                f"max_theta_deg ({self.max_theta_deg})"
            )

    @property
    def min_theta(self) -> float:
        """Minimum thrust polar angle in radians."""
        return math.radians(self.min_theta_deg)

    @property
    def max_theta(self) -> float:
        """Maximum thrust polar angle in radians."""
        return math.radians(self.max_theta_deg)


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Complete analysis configuration.

    Immutable configuration object validated at creation.
    """

    # Paths
    input_path: str
    output_path: str
    tree_name: str = "Tree"

    # Binning
    max_nch_tag: int = 60

    # Stream control
    max_events: Optional[int] = None  # None = all entries
    batch_size: int = 10_000

    # Selection
    selection: SelectionConfig = field(default_factory=SelectionConfig)

    # Modes
    is_gen: bool = False
    apply_pid_correction: bool = True

    # Presentation
    show_progress: bool = True
    plots_dir: Optional[str] = None
    stats_json_path: Optional[str] = None

    def __post_init__(self):
        """Validate analysis configuration."""
        if not self.input_path:
            raise ValueError("input_path cannot be empty")
        if not self.output_path:
            raise ValueError("output_path cannot be empty")
        if not self.tree_name:
            raise ValueError("tree_name cannot be empty")
        if self.max_nch_tag < 0:
            raise ValueError(f"max_nch_tag must be non-negative, got {self.max_nch_tag}")
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.max_events is not None and self.max_events <= 0:
            # -1 and 0 both mean "process everything"
            object.__setattr__(self, "max_events", None)

    @property
    def n_bins(self) -> int:
        """Number of N_ch^tag bins, 0..max_nch_tag inclusive."""
        return self.max_nch_tag + 1

    @property
    def corrects_pid(self) -> bool:
        """Whether the PID matrix correction runs for this configuration."""
        return self.apply_pid_correction and not self.is_gen

    def describe(self) -> dict:
        """Parameter block logged at startup."""
        return {
            "Input": self.input_path,
            "Output": self.output_path,
            "Tree": self.tree_name,
            "MaxNchTag": self.max_nch_tag,
            "MaxEvents": self.max_events if self.max_events is not None else -1,
            "EcmRef": self.selection.reference_energy,
            "MinEnergyFraction": self.selection.min_energy_fraction,
            "MinNch": self.selection.min_multiplicity,
            "MinThetaDeg": self.selection.min_theta_deg,
            "MaxThetaDeg": self.selection.max_theta_deg,
            "IsGen": "true" if self.is_gen else "false",
            "PIDCorrection": "true" if self.corrects_pid else "false",
        }

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'AnalysisConfig':
        """
        Create AnalysisConfig from a dictionary (e.g., loaded from YAML).

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            Validated AnalysisConfig instance
        """
        input_dict = config_dict.get("input", {})
        output_dict = config_dict.get("output", {})
        selection_dict = config_dict.get("selection", {})
        binning_dict = config_dict.get("binning", {})
        run_dict = config_dict.get("run", {})

        if "path" not in input_dict:
            raise ConfigurationError("input.path is required")
        if "path" not in output_dict:
            raise ConfigurationError("output.path is required")

        selection = SelectionConfig(
            reference_energy=float(selection_dict.get("reference_energy", 91.2)),
            min_energy_fraction=float(selection_dict.get("min_energy_fraction", 0.5)),
            min_multiplicity=int(selection_dict.get("min_multiplicity", 7)),
            min_theta_deg=float(selection_dict.get("min_theta_deg", 30.0)),
            max_theta_deg=float(selection_dict.get("max_theta_deg", 150.0)),
        )

        max_events = run_dict.get("max_events")

        return cls(
            input_path=str(input_dict["path"]),
            output_path=str(output_dict["path"]),
            tree_name=input_dict.get("tree_name", "Tree"),
            max_nch_tag=int(binning_dict.get("max_nch_tag", 60)),
            max_events=int(max_events) if max_events is not None else None,
            batch_size=int(input_dict.get("batch_size", 10_000)),
            selection=selection,
            is_gen=parse_bool(run_dict.get("is_gen", False)),
            apply_pid_correction=parse_bool(run_dict.get("apply_pid_correction", True)),
            show_progress=parse_bool(run_dict.get("show_progress", True)),
            plots_dir=output_dict.get("plots_dir"),
            stats_json_path=output_dict.get("stats_json"),
        )
