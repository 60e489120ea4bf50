"""Raster query capability used by the zonal statistics extractor.

A ``RasterSource`` answers two questions: what region should be sampled
around a road (``buffer_region``), and which valid pixel values fall inside
that region at a given resolution (``sample``). Sources are context managers:
datasets are acquired on enter and always released on exit.

``RasterioRasterSource`` reads local GeoTIFFs. Tests substitute fake sources
returning fixed pixel distributions.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import rasterio
from rasterio.crs import CRS
from rasterio.enums import Resampling
from rasterio.errors import RasterioIOError
from rasterio.features import geometry_mask
from rasterio.transform import Affine
from rasterio.warp import transform_geom
from rasterio.windows import Window
from shapely.geometry import mapping, shape
from shapely.geometry.base import BaseGeometry

from roadyear.data.raster_catalog import DisturbanceLayer
from roadyear.utils.logging import get_logger

logger = get_logger(__name__)


class RasterSourceError(Exception):
    """Raised when a raster cannot be opened or queried."""
    pass


class RasterSource(ABC):
    """Abstract raster query capability."""

    def __enter__(self) -> "RasterSource":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def open(self) -> None:
        """Acquire the underlying datasets (no-op by default)."""

    def close(self) -> None:
        """Release the underlying datasets (no-op by default)."""

    def buffer_region(self, geometry: BaseGeometry, radius: float) -> BaseGeometry:
        """Isotropic buffer of ``geometry`` by ``radius`` CRS units."""
        return geometry.buffer(radius)

    @abstractmethod
    def sample(
        self,
        layer: DisturbanceLayer,
        region: BaseGeometry,
        resolution: float,
    ) -> np.ndarray:
        """Return the valid pixel values of ``layer`` inside ``region``.

        Nodata pixels are excluded. An empty array means no valid pixel
        intersects the region.
        """


class RasterioRasterSource(RasterSource):
    """Read disturbance layers from local raster files with rasterio.

    Pixels are selected when their centre falls inside the region, after
    resampling the covering window to ``resolution`` (nearest neighbour).

    Args:
        layers: Layers this source serves
        region_crs: CRS of the regions passed to ``sample``. When it differs
            from a raster's CRS the region is reprojected. None assumes both
            are the same.

    Example:
        >>> with RasterioRasterSource(catalog, region_crs="EPSG:3979") as source:
        ...     region = source.buffer_region(road.geometry, 30)
        ...     years = source.sample(catalog["canlad_65"], region, 30)
    """

    def __init__(
        self,
        layers: Iterable[DisturbanceLayer],
        region_crs: Optional[str] = None,
    ):
        self.layers = list(layers)
        self.region_crs = CRS.from_user_input(region_crs) if region_crs else None
        self._datasets: Dict[str, rasterio.DatasetReader] = {}
        # rasterio dataset handles must not be read from concurrently
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return bool(self._datasets)

    def open(self) -> None:
        for layer in self.layers:
            try:
                ds = rasterio.open(layer.path)
            except RasterioIOError as e:
                self.close()
                raise RasterSourceError(f"Cannot open {layer.name} raster {layer.path}: {e}") from e

            if layer.band > ds.count:
                ds.close()
                self.close()
                raise RasterSourceError(
                    f"{layer.name}: band {layer.band} requested but {layer.path} "
                    f"has {ds.count} band(s)"
                )

            self._datasets[layer.name] = ds
            logger.info(f"Opened {layer.name}: {layer.path}")
            logger.debug(
                f"  CRS: {ds.crs}, resolution: {ds.res}, nodata: {ds.nodata}, "
                f"bounds: {tuple(ds.bounds)}"
            )

    def close(self) -> None:
        for name, ds in self._datasets.items():
            ds.close()
            logger.debug(f"Closed {name}")
        self._datasets = {}

    def _dataset(self, layer: DisturbanceLayer) -> rasterio.DatasetReader:
        if not self._datasets:
            raise RasterSourceError("Raster source is not open, use it as a context manager")
        try:
            return self._datasets[layer.name]
        except KeyError:
            raise RasterSourceError(f"Layer '{layer.name}' is not served by this source")

    def _to_raster_crs(self, region: BaseGeometry, raster_crs: Optional[CRS]) -> BaseGeometry:
        if self.region_crs is None or raster_crs is None or self.region_crs == raster_crs:
            return region
        return shape(transform_geom(self.region_crs, raster_crs, mapping(region)))

    @staticmethod
    def _window(
        ds: rasterio.DatasetReader,
        bounds: Tuple[float, float, float, float],
    ) -> Optional[Window]:
        """Pixel window covering ``bounds``, clipped to the raster. None if disjoint."""
        left, bottom, right, top = bounds
        row_start, col_start = ds.index(left, top)
        row_stop, col_stop = ds.index(right, bottom)

        row_start = max(int(row_start), 0)
        col_start = max(int(col_start), 0)
        row_stop = min(int(row_stop) + 1, ds.height)
        col_stop = min(int(col_stop) + 1, ds.width)

        if row_start >= row_stop or col_start >= col_stop:
            return None
        return Window.from_slices((row_start, row_stop), (col_start, col_stop))

    def sample(
        self,
        layer: DisturbanceLayer,
        region: BaseGeometry,
        resolution: float,
    ) -> np.ndarray:
        ds = self._dataset(layer)
        region = self._to_raster_crs(region, ds.crs)

        if region.is_empty:
            return np.array([], dtype=np.float64)

        window = self._window(ds, region.bounds)
        if window is None:
            return np.array([], dtype=np.float64)

        # Resample the window so that each output pixel is `resolution` wide
        x_res, y_res = ds.res
        out_height = max(1, int(round(window.height * y_res / resolution)))
        out_width = max(1, int(round(window.width * x_res / resolution)))

        with self._lock:
            data = ds.read(
                layer.band,
                window=window,
                out_shape=(out_height, out_width),
                resampling=Resampling.nearest,
            )
            window_transform = ds.window_transform(window)

        transform = window_transform * Affine.scale(
            window.width / out_width, window.height / out_height
        )
        inside = geometry_mask(
            [mapping(region)],
            out_shape=(out_height, out_width),
            transform=transform,
            invert=True,
        )

        values = data[inside]

        nodata = layer.nodata if layer.nodata is not None else ds.nodata
        valid = np.ones(values.shape, dtype=bool)
        if np.issubdtype(values.dtype, np.floating):
            valid &= np.isfinite(values)
        if nodata is not None and not np.isnan(nodata):
            valid &= values != nodata
        values = values[valid]

        if layer.dtype is not None:
            values = self._cast(layer, values)

        return values

    @staticmethod
    def _cast(layer: DisturbanceLayer, values: np.ndarray) -> np.ndarray:
        """Cast to ``layer.dtype``, dropping values the type cannot hold."""
        dtype = np.dtype(layer.dtype)
        if np.issubdtype(dtype, np.integer):
            info = np.iinfo(dtype)
            representable = (values >= info.min) & (values <= info.max)
            if not representable.all():
                logger.warning(
                    f"{layer.name}: dropping {int((~representable).sum())} pixel values "
                    f"outside the {dtype} range [{info.min}, {info.max}]"
                )
                values = values[representable]
        return values.astype(dtype)
