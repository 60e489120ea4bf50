"""Attach road statistics and export the selected columns.

The export is a plain table (no geometry), one row per road, restricted to
the configured selectors (by default ``id``, ``yod_canlad_65``,
``yod_canlad_85`` in that order).
"""

import os
import tempfile
from pathlib import Path
from typing import Sequence, Union

import geopandas as gpd
import pandas as pd

from roadyear.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SELECTORS = ["id", "yod_canlad_65", "yod_canlad_85"]

EXTENSIONS = {
    "csv": ".csv",
    "json": ".json",
}


def attach_statistics(roads: gpd.GeoDataFrame, stats: pd.DataFrame) -> gpd.GeoDataFrame:
    """Return a copy of ``roads`` with the statistic columns added.

    Args:
        roads: Normalized roads
        stats: Output of ZonalStatisticsExtractor.extract, indexed like roads

    Raises:
        ValueError: If the two frames do not describe the same roads
    """
    if len(stats) != len(roads) or not stats.index.equals(roads.index):
        raise ValueError(
            f"Statistics ({len(stats)} rows) do not match roads ({len(roads)} rows)"
        )

    overwritten = [col for col in stats.columns if col in roads.columns]
    if overwritten:
        logger.warning(f"Overwriting existing road properties: {overwritten}")

    result = roads.copy()
    for column in stats.columns:
        result[column] = stats[column]
    return result


def _whole_numbers(column: pd.Series) -> bool:
    values = column.dropna()
    return pd.api.types.is_float_dtype(column) and bool((values == values.round()).all())


def select_columns(
    frame: pd.DataFrame,
    selectors: Sequence[str] = DEFAULT_SELECTORS,
) -> pd.DataFrame:
    """Project ``frame`` to exactly ``selectors``, in order.

    Float columns that only hold whole numbers (years) become nullable
    integers so they are written as ``1978`` rather than ``1978.0``.

    Raises:
        KeyError: If a selector is not a column of ``frame``
    """
    selectors = list(selectors)
    missing = [col for col in selectors if col not in frame.columns]
    if missing:
        raise KeyError(f"Columns not found for export: {missing}")

    table = pd.DataFrame(frame[selectors]).reset_index(drop=True)
    for column in selectors:
        if _whole_numbers(table[column]):
            table[column] = table[column].astype("Int64")
    return table


def export_table(
    table: pd.DataFrame,
    output_dir: Union[str, Path],
    file_prefix: str,
    file_format: str = "csv",
) -> Path:
    """Write ``table`` to ``output_dir/file_prefix.<ext>``.

    Absent values are written as empty cells (csv) or null (json). The table
    is first written to a temporary file in ``output_dir`` and then renamed,
    so an interrupted export never leaves a partial file behind.

    Returns:
        Path of the written file

    Raises:
        ValueError: If the format is not supported
    """
    if file_format not in EXTENSIONS:
        raise ValueError(
            f"Unsupported export format '{file_format}', use one of {list(EXTENSIONS)}"
        )

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / f"{file_prefix}{EXTENSIONS[file_format]}"

    fd, tmp_name = tempfile.mkstemp(prefix=f".{file_prefix}.", suffix=".tmp", dir=output_dir)
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        if file_format == "csv":
            table.to_csv(tmp_path, index=False)
        else:
            table.to_json(tmp_path, orient="records", indent=2)
        os.replace(tmp_path, output_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    logger.info(f"Exported {len(table)} rows ({', '.join(table.columns)}) to {output_path}")
    return output_path


def read_table(path: Union[str, Path]) -> pd.DataFrame:
    """Read an exported table back (csv or json)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Export not found: {path}")
    if path.suffix == ".json":
        return pd.read_json(path, orient="records", dtype=False)
    return pd.read_csv(path)
