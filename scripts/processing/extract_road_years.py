#!/usr/bin/env python3
"""Estimate the construction year of unpaved roads from CanLaD products.

For each road, long segments are first shortened by 90 m at both ends (to
avoid sampling the clearing of perpendicular roads), then the 5th percentile
of the CanLaD disturbance years within a 30 m buffer is extracted from:
  - CanLaD 1965-1984 harvest year  -> yod_canlad_65
  - CanLaD 1985-2020 harvest year  -> yod_canlad_85

The output table has one row per road with columns
  id, yod_canlad_65, yod_canlad_85
where roads without any disturbed pixel in a product get an empty cell.

Usage:
    # Run with the default configuration
    python scripts/processing/extract_road_years.py

    # Explicit inputs
    python scripts/processing/extract_road_years.py \\
        --roads data/raw/unpaved_roads.gpkg \\
        --raster-65 data/raw/canlad_1965_1984_harvest_year.tif \\
        --raster-85 data/raw/canlad_1985_2020_harvest_year.tif \\
        --output-dir data/processed/logging_roads

    # Quick test on the first 10 roads, with 4 worker threads
    python scripts/processing/extract_road_years.py -n 10 --workers 4 --verbose

    # Study area config merged over the defaults
    python scripts/processing/extract_road_years.py --override-config configs/quebec.yaml
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to path for imports
# __file__ is scripts/processing/extract_road_years.py
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from roadyear.pipeline import run_pipeline
from roadyear.utils.config import load_config, merge_configs
from roadyear.utils.logging import add_file_handler, set_package_level, setup_logger

logger = setup_logger(__name__, level="INFO")

DEFAULT_CONFIG = project_root / "configs" / "default.yaml"


def print_header():
    """Print clean header with timestamp."""
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print("\n" + "=" * 70)
    print("ROAD CONSTRUCTION YEAR EXTRACTION (CanLaD)")
    print("=" * 70)
    print(f"Started: {now}")
    print()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Estimate unpaved road construction years from CanLaD "
                    "disturbance-year rasters (5th percentile in a road buffer)."
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG,
        help=f"YAML configuration (default: {DEFAULT_CONFIG})",
    )
    parser.add_argument(
        "--override-config",
        type=Path,
        default=None,
        help="Study-area YAML merged over --config (e.g., other road and raster paths)",
    )
    parser.add_argument(
        "--roads",
        type=Path,
        default=None,
        help="Road lines (Shapefile, GeoPackage, GeoJSON) with an 'id' field",
    )
    parser.add_argument(
        "--raster-65",
        type=Path,
        default=None,
        help="CanLaD 1965-1984 harvest year raster",
    )
    parser.add_argument(
        "--raster-85",
        type=Path,
        default=None,
        help="CanLaD 1985-2020 harvest year raster",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Export folder (default: from config)",
    )
    parser.add_argument(
        "--file-prefix",
        type=str,
        default=None,
        help="Export file name without extension (default: from config)",
    )
    parser.add_argument(
        "--format",
        type=str,
        default=None,
        choices=["csv", "json"],
        help="Export format (default: from config)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads used to sample roads (default: from config)",
    )
    parser.add_argument(
        "--limit", "-n",
        type=int,
        default=None,
        help="Limit to first N roads (useful for testing before full run)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write the log to this file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging",
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Dotted config overrides for the flags that were given."""
    mapping = {
        "roads.path": args.roads,
        "rasters.canlad_65.path": args.raster_65,
        "rasters.canlad_85.path": args.raster_85,
        "export.output_dir": args.output_dir,
        "export.file_prefix": args.file_prefix,
        "export.format": args.format,
        "sampling.n_workers": args.workers,
        "roads.limit": args.limit,
    }
    return {
        key: str(value) if isinstance(value, Path) else value
        for key, value in mapping.items()
        if value is not None
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Main extraction script."""
    args = build_parser().parse_args(argv)

    if args.verbose:
        set_package_level("DEBUG")
        set_package_level("DEBUG", package=__name__)
    if args.log_file is not None:
        file_level = "DEBUG" if args.verbose else "INFO"
        # Module loggers propagate to the package logger
        add_file_handler(logging.getLogger("roadyear"), args.log_file, level=file_level)
        add_file_handler(logger, args.log_file, level=file_level)

    print_header()

    try:
        overrides = overrides_from_args(args)
        if args.override_config is not None:
            cfg = merge_configs(args.config, args.override_config, overrides=overrides)
        else:
            cfg = load_config(args.config, overrides=overrides)
        result = run_pipeline(cfg, show_progress=True)
    except Exception as e:
        logger.error(f"Extraction failed: {e}")
        if args.verbose:
            logger.exception("Traceback:")
        return 1

    table = result.table
    now = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print("\n" + "=" * 70)
    print("EXTRACTION COMPLETE")
    print("=" * 70)
    print(f"Completed: {now}")
    print(f"Roads: {len(table)}")
    for column in table.columns[1:]:
        print(f"  {column}: {int(table[column].notna().sum())} with a year")
    print(f"Output: {result.output_path}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
