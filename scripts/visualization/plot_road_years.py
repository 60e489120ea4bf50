#!/usr/bin/env python3
"""Quick-look map of estimated road construction years.

Joins the exported table back to the road lines and draws each road
coloured by its estimated year on the 1965-2020 CanLaD range. The earliest
of yod_canlad_65 / yod_canlad_85 is used; roads without any estimate are
drawn in grey.

Usage:
    python scripts/visualization/plot_road_years.py \\
        --roads data/raw/unpaved_roads.gpkg \\
        --table data/processed/logging_roads/canlad_years_unpaved_roads.csv \\
        --output figures/road_years.png

    # Interactive display
    python scripts/visualization/plot_road_years.py --roads ... --table ... --show
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

import geopandas as gpd
import matplotlib.pyplot as plt
import pandas as pd
from matplotlib.colors import LinearSegmentedColormap, Normalize

project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from roadyear.data.exporter import read_table
from roadyear.utils.logging import setup_logger

logger = setup_logger(__name__, level="INFO")

# CanLaD year of disturbance palette (violet -> red)
YEAR_PALETTE = ['#9400D3', '#4B0082', '#0000FF', '#00FF00', '#FFFF00', '#FF7F00', '#FF0000']
YEAR_MIN = 1965
YEAR_MAX = 2020
MISSING_COLOR = '#bdbdbd'


def construction_year(table: pd.DataFrame) -> pd.Series:
    """Earliest available estimate per road (NaN when both are absent)."""
    return table[['yod_canlad_65', 'yod_canlad_85']].min(axis=1, skipna=True)


def plot_road_years(
    roads: gpd.GeoDataFrame,
    table: pd.DataFrame,
    id_field: str = 'id',
    output_path: Optional[Path] = None,
    show: bool = False,
) -> None:
    """Draw roads coloured by construction year."""
    years = table.assign(year=construction_year(table))[[id_field, 'year']]
    merged = roads.merge(years, on=id_field, how='left')

    cmap = LinearSegmentedColormap.from_list('canlad', YEAR_PALETTE)
    norm = Normalize(vmin=YEAR_MIN, vmax=YEAR_MAX)

    fig, ax = plt.subplots(figsize=(10, 10))

    missing = merged[merged['year'].isna()]
    dated = merged[merged['year'].notna()]
    if len(missing):
        missing.plot(ax=ax, color=MISSING_COLOR, linewidth=0.8, label='No estimate')
    if len(dated):
        dated.plot(ax=ax, column='year', cmap=cmap, norm=norm, linewidth=1.2)

    sm = plt.cm.ScalarMappable(cmap=cmap, norm=norm)
    sm.set_array([])
    fig.colorbar(sm, ax=ax, shrink=0.6, label='Estimated construction year')

    ax.set_title(
        f'Unpaved roads: {len(dated)} dated, {len(missing)} without estimate'
    )
    ax.set_axis_off()

    if output_path is not None:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(output_path, dpi=200, bbox_inches='tight')
        logger.info(f"Saved figure to {output_path}")
    if show:
        plt.show()
    plt.close(fig)


def main() -> int:
    parser = argparse.ArgumentParser(description="Map estimated road construction years")
    parser.add_argument('--roads', type=Path, required=True, help="Road lines with an 'id' field")
    parser.add_argument('--table', type=Path, required=True, help="Exported years table (csv/json)")
    parser.add_argument('--id-field', type=str, default='id', help="Road id column (default: id)")
    parser.add_argument('--output', type=Path, default=None, help="Output figure path")
    parser.add_argument('--show', action='store_true', help="Display the figure")
    args = parser.parse_args()

    if args.output is None and not args.show:
        logger.error("Nothing to do: give --output and/or --show")
        return 1

    roads = gpd.read_file(args.roads)
    table = read_table(args.table)
    # Ids read back from csv may be numeric while the vector layer stores text
    table[args.id_field] = table[args.id_field].astype(roads[args.id_field].dtype)

    plot_road_years(roads, table, args.id_field, args.output, args.show)
    return 0


if __name__ == "__main__":
    sys.exit(main())
