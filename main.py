#!/usr/bin/env python3
"""
Main entry point for the K/pi vs N_ch^tag analysis.

Reads the strangeness event tree, fills kaon and pion yields versus the
tagged charged multiplicity, and writes raw and PID-corrected yields and
K/pi ratios as TH1D histograms.

Configuration comes from an optional YAML file; command line options
override its values.
"""

import sys
import logging
import argparse
import yaml

from domain.config import AnalysisConfig, parse_bool
from domain.errors import AnalysisError
from pipeline.executor import PipelineExecutor


def setup_logging(level: str = "INFO"):
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def load_config(config_path: str) -> dict:
    """Load configuration from YAML file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f) or {}


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="K/pi yields vs tagged charged multiplicity",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reco-level analysis with PID matrix correction
  python main.py --input sample/merged_mc_v2.root --output output/KtoPi.root

  # Generator-level counting, first 100k events
  python main.py --config config.yaml --is-gen true --max-events 100000

  # Validate configuration and input layout without streaming
  python main.py --config config.yaml --dry-run
        """
    )

    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to YAML configuration file"
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="Validate configuration and input without running the analysis"
    )

    io_group = parser.add_argument_group("Input / Output")
    io_group.add_argument("--input", type=str, default=None, help="Input ROOT file")
    io_group.add_argument("--output", type=str, default=None, help="Output ROOT file")
    io_group.add_argument("--tree", type=str, default=None, help="Input tree name (default: Tree)")
    io_group.add_argument("--plots-dir", type=str, default=None, help="Directory for K/pi ratio plots")
    io_group.add_argument("--stats-json", type=str, default=None, help="Path of the run summary JSON")

    ana_group = parser.add_argument_group("Analysis")
    ana_group.add_argument("--max-nch-tag", type=int, default=None, help="Last N_ch^tag bin (default: 60)")
    ana_group.add_argument("--max-events", type=int, default=None, help="Event cap, <= 0 for all (default: all)")
    ana_group.add_argument("--ecm-ref", type=float, default=None, help="Reference energy in GeV (default: 91.2)")
    ana_group.add_argument("--min-nch", type=int, default=None, help="Minimum good charged tracks (default: 7)")
    ana_group.add_argument("--min-theta-deg", type=float, default=None, help="Thrust axis lower bound (default: 30)")
    ana_group.add_argument("--max-theta-deg", type=float, default=None, help="Thrust axis upper bound (default: 150)")
    ana_group.add_argument(
        "--is-gen", type=str, default=None,
        help="Count generator-level K/pi (true/false, yes/no, 1/0)"
    )
    ana_group.add_argument(
        "--raw-only", action="store_true",
        help="Skip the PID matrix correction"
    )
    ana_group.add_argument(
        "--no-progress", action="store_true",
        help="Disable the progress bar"
    )

    return parser.parse_args(argv)


def apply_overrides(config_dict: dict, args) -> dict:
    """
    Merge command line values into the YAML configuration.

    Only options given on the command line override.
    """
    config_dict = dict(config_dict)
    for section in ("input", "output", "selection", "binning", "run"):
        config_dict[section] = dict(config_dict.get(section) or {})

    overrides = [
        ("input", "path", args.input),
        ("input", "tree_name", args.tree),
        ("output", "path", args.output),
        ("output", "plots_dir", args.plots_dir),
        ("output", "stats_json", args.stats_json),
        ("binning", "max_nch_tag", args.max_nch_tag),
        ("run", "max_events", args.max_events),
        ("selection", "reference_energy", args.ecm_ref),
        ("selection", "min_multiplicity", args.min_nch),
        ("selection", "min_theta_deg", args.min_theta_deg),
        ("selection", "max_theta_deg", args.max_theta_deg),
    ]
    for section, key, value in overrides:
        if value is not None:
            config_dict[section][key] = value

    if args.is_gen is not None:
        config_dict["run"]["is_gen"] = parse_bool(args.is_gen)
    if args.raw_only:
        config_dict["run"]["apply_pid_correction"] = False
    if args.no_progress:
        config_dict["run"]["show_progress"] = False

    return config_dict


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        config_dict = {}
        if args.config:
            logger.info(f"Loading configuration from: {args.config}")
            config_dict = load_config(args.config)

        config = AnalysisConfig.from_dict(apply_overrides(config_dict, args))
        logger.info("Configuration loaded and validated successfully")

        executor = PipelineExecutor(config)

        if args.dry_run:
            executor.check_input()
            logger.info("Dry run mode - configuration and input are valid, exiting")
            return 0

        result = executor.execute()

        if result.corrected_available:
            logger.info("✓ Analysis completed successfully")
        else:
            logger.info(f"✓ Analysis completed (raw outputs only: {result.calibration_issue})")
        return 0

    except (AnalysisError, ValueError) as e:
        logger.error(f"✗ {e}")
        return 1
    except OSError as e:
        logger.error(f"✗ I/O error: {e}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
