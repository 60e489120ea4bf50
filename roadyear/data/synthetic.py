"""
Synthetic roads and CanLaD-like rasters for testing the pipeline.

Each synthetic road is given a construction year. The pixels under a corridor
around the road are written with that year into the matching product
(1965-1984 or 1985-2020); the other product stays nodata there. Scattered
later disturbances (e.g., harvests next to the road) are added so the low
percentile, not the minimum or the mean, recovers the construction year.
"""

from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import geopandas as gpd
import numpy as np
import rasterio
from rasterio.features import rasterize
from rasterio.transform import from_origin
from shapely.geometry import LineString

CANLAD_NODATA = 0


def write_disturbance_raster(
    path: Union[str, Path],
    years: np.ndarray,
    origin: Tuple[float, float] = (0.0, 0.0),
    pixel_size: float = 30.0,
    crs: str = "EPSG:3979",
    nodata: Optional[float] = CANLAD_NODATA,
    dtype: str = "uint16",
) -> Path:
    """Write a single-band disturbance-year GeoTIFF.

    Args:
        path: Output file
        years: (rows, cols) array of years, ``nodata`` where undisturbed
        origin: (x, y) of the upper-left corner
        pixel_size: Square pixel size in CRS units
        crs: Raster CRS
        nodata: Nodata value stored in the file (None for no nodata)
        dtype: Pixel data type

    Returns:
        Path to the written raster
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    height, width = years.shape
    profile = {
        "driver": "GTiff",
        "height": height,
        "width": width,
        "count": 1,
        "dtype": dtype,
        "crs": crs,
        "transform": from_origin(origin[0], origin[1], pixel_size, pixel_size),
        "nodata": nodata,
    }
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(years.astype(dtype), 1)

    return path


class SyntheticDataGenerator:
    """
    Generate synthetic unpaved roads with known construction years.

    Args:
        n_roads: Number of roads
        extent: Side of the square study area in metres
        pixel_size: Raster pixel size in metres
        crs: CRS of roads and rasters
        seed: Random seed for reproducibility
    """

    def __init__(
        self,
        n_roads: int = 20,
        extent: float = 6000.0,
        pixel_size: float = 30.0,
        crs: str = "EPSG:3979",
        seed: int = 42,
    ):
        self.n_roads = n_roads
        self.extent = extent
        self.pixel_size = pixel_size
        self.crs = crs
        self.seed = seed

    @property
    def shape(self) -> Tuple[int, int]:
        n = int(np.ceil(self.extent / self.pixel_size))
        return n, n

    def generate_roads(self) -> gpd.GeoDataFrame:
        """
        Generate roads as two-segment lines of 60 to 900 m.

        Returns:
            GeoDataFrame with columns id, construction_year and geometry
        """
        rng = np.random.RandomState(self.seed)

        margin = 1000.0
        lines = []
        for _ in range(self.n_roads):
            start = rng.uniform(margin, self.extent - margin, 2)
            total = rng.uniform(60, 900)
            heading = rng.uniform(0, 2 * np.pi)
            bend = heading + rng.uniform(-0.6, 0.6)
            first = total * rng.uniform(0.3, 0.7)
            middle = start + first * np.array([np.cos(heading), np.sin(heading)])
            end = middle + (total - first) * np.array([np.cos(bend), np.sin(bend)])
            lines.append(LineString([tuple(start), tuple(middle), tuple(end)]))

        years = rng.randint(1965, 2021, self.n_roads)

        return gpd.GeoDataFrame(
            {
                "id": [f"R{i + 1}" for i in range(self.n_roads)],
                "construction_year": years,
                "geometry": lines,
            },
            crs=self.crs,
        )

    def generate_rasters(
        self,
        roads: gpd.GeoDataFrame,
        corridor_width: float = 45.0,
        n_later_patches: int = 40,
    ) -> Dict[str, np.ndarray]:
        """
        Rasterize the road corridors into the two CanLaD products.

        Args:
            roads: Output of generate_roads
            corridor_width: Half-width of the disturbed corridor (m)
            n_later_patches: Number of later disturbance patches

        Returns:
            Dictionary with 'canlad_65' and 'canlad_85' (rows, cols) uint16 arrays
        """
        rng = np.random.RandomState(self.seed + 1)
        transform = from_origin(0.0, self.extent, self.pixel_size, self.pixel_size)

        products = {
            "canlad_65": np.full(self.shape, CANLAD_NODATA, dtype=np.uint16),
            "canlad_85": np.full(self.shape, CANLAD_NODATA, dtype=np.uint16),
        }

        for geom, year in zip(roads.geometry, roads["construction_year"]):
            key = "canlad_65" if year <= 1984 else "canlad_85"
            burned = rasterize(
                [(geom.buffer(corridor_width), 1)],
                out_shape=self.shape,
                transform=transform,
                fill=0,
                dtype="uint8",
            ).astype(bool)
            # Older roads win where corridors cross
            current = products[key]
            products[key] = np.where(
                burned & ((current == CANLAD_NODATA) | (current > year)), year, current
            ).astype(np.uint16)

        # Small later harvests that must not drag the estimate upwards
        for _ in range(n_later_patches):
            row, col = rng.randint(0, self.shape[0] - 3, 2)
            year = rng.randint(1985, 2021)
            patch = products["canlad_85"][row:row + 3, col:col + 3]
            products["canlad_85"][row:row + 3, col:col + 3] = np.where(
                patch == CANLAD_NODATA, year, patch
            )

        return products

    def save(self, output_dir: Union[str, Path]) -> Dict[str, Path]:
        """
        Write roads (GeoPackage) and both rasters (GeoTIFF) to ``output_dir``.

        Returns:
            Dictionary with 'roads', 'canlad_65' and 'canlad_85' paths
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        roads = self.generate_roads()
        products = self.generate_rasters(roads)

        paths = {"roads": output_dir / "unpaved_roads.gpkg"}
        roads.to_file(paths["roads"], driver="GPKG")

        for key, years in products.items():
            paths[key] = write_disturbance_raster(
                output_dir / f"{key}.tif",
                years,
                origin=(0.0, self.extent),
                pixel_size=self.pixel_size,
                crs=self.crs,
            )

        return paths
