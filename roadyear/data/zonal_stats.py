"""Zonal statistics of disturbance rasters around roads.

For every road, the geometry is buffered once and each disturbance layer is
reduced over the pixels of that buffer. The default reducer is the 5th
percentile: a low percentile of the disturbance years found along the road is
taken as the year the road was built, while ignoring a few spurious early
pixels.

A region without any valid pixel yields an absent statistic (None / NaN), not
an error. Errors raised by the raster source propagate unchanged and no
partial table is returned.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Optional

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry.base import BaseGeometry
from tqdm import tqdm

from roadyear.data.raster_catalog import DisturbanceLayer
from roadyear.data.raster_source import RasterSource
from roadyear.utils.logging import get_logger

logger = get_logger(__name__)

Aggregator = Callable[[np.ndarray], Optional[float]]


class Percentile:
    """Percentile reducer over a sample of pixel values.

    Uses the nearest-rank definition, so the result is always one of the
    sampled values (a whole year for CanLaD) and does not depend on the
    order pixels were read in.

    Args:
        percentile: Percentile in [0, 100] (default: 5)
    """

    def __init__(self, percentile: float = 5.0):
        if not 0 <= percentile <= 100:
            raise ValueError(f"Percentile must be within [0, 100], got {percentile}")
        self.percentile = percentile

    @property
    def name(self) -> str:
        return f"p{self.percentile:g}"

    def __call__(self, values: np.ndarray) -> Optional[float]:
        values = np.asarray(values)
        if values.size == 0:
            return None
        return float(np.percentile(values, self.percentile, method="inverted_cdf"))

    def __repr__(self) -> str:
        return f"Percentile({self.percentile:g})"


def zonal_statistic(
    source: RasterSource,
    layer: DisturbanceLayer,
    region: BaseGeometry,
    resolution: float,
    aggregator: Aggregator,
) -> Optional[float]:
    """Reduce the valid pixels of ``layer`` inside ``region``.

    Returns:
        The aggregated value, or None when no valid pixel intersects the region
    """
    return aggregator(source.sample(layer, region, resolution))


class ZonalStatisticsExtractor:
    """Compute one statistic per disturbance layer for each road.

    Args:
        source: Open raster source serving ``layers``
        layers: Disturbance layers, in output column order
        buffer_radius: Buffer around each road in CRS units (default: 30)
        resolution: Pixel size the rasters are sampled at (default: 30)
        aggregator: Reducer applied to the pixel values (default: 5th percentile)
        n_workers: Threads used to process roads (default: 1 = sequential)
        show_progress: Show a tqdm progress bar

    Example:
        >>> with RasterioRasterSource(catalog, region_crs=roads.crs) as source:
        ...     extractor = ZonalStatisticsExtractor(source, catalog)
        ...     stats = extractor.extract(roads)
    """

    def __init__(
        self,
        source: RasterSource,
        layers: Iterable[DisturbanceLayer],
        buffer_radius: float = 30.0,
        resolution: float = 30.0,
        aggregator: Optional[Aggregator] = None,
        n_workers: int = 1,
        show_progress: bool = False,
    ):
        self.source = source
        self.layers = list(layers)
        self.buffer_radius = buffer_radius
        self.resolution = resolution
        self.aggregator = aggregator if aggregator is not None else Percentile(5)
        self.n_workers = max(1, n_workers)
        self.show_progress = show_progress

    @property
    def columns(self) -> List[str]:
        return [layer.property_name for layer in self.layers]

    def extract_feature(self, geometry: BaseGeometry) -> Dict[str, Optional[float]]:
        """Statistics of every layer for a single road geometry."""
        region = self.source.buffer_region(geometry, self.buffer_radius)
        return {
            layer.property_name: zonal_statistic(
                self.source, layer, region, self.resolution, self.aggregator
            )
            for layer in self.layers
        }

    def extract(self, roads: gpd.GeoDataFrame) -> pd.DataFrame:
        """Statistics for every road.

        Args:
            roads: Normalized roads

        Returns:
            DataFrame indexed like ``roads`` with one float column per layer
            (``property_name``); absent statistics are NaN
        """
        geometries = list(roads.geometry)
        logger.info(
            f"Extracting {self.aggregator!r} of {len(self.layers)} layers for "
            f"{len(geometries)} roads ({self.buffer_radius}m buffer, "
            f"{self.resolution}m pixels, {self.n_workers} worker(s))"
        )

        if self.n_workers > 1:
            with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
                results = executor.map(self.extract_feature, geometries)
                rows = list(self._progress(results, len(geometries)))
        else:
            rows = [
                self.extract_feature(geom)
                for geom in self._progress(geometries, len(geometries))
            ]

        stats = pd.DataFrame(rows, index=roads.index, columns=self.columns).astype("float64")

        for layer in self.layers:
            column = stats[layer.property_name]
            n_absent = int(column.isna().sum())
            logger.info(
                f"  {layer.property_name}: {len(column) - n_absent} values, {n_absent} absent"
            )
            outside = column.dropna().map(lambda v: not layer.contains_year(v))
            if outside.any():
                logger.warning(
                    f"  {layer.property_name}: {int(outside.sum())} values outside "
                    f"{layer.year_range}"
                )

        return stats

    def _progress(self, iterable, total: int):
        if self.show_progress:
            return tqdm(iterable, total=total, desc="Sampling roads", unit="road")
        return iterable
