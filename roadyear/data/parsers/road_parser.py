"""Vector parser for unpaved road segments.

Reads road lines from any format geopandas understands (Shapefile,
GeoPackage, GeoJSON), projects them to a metric CRS and attaches the
load-time ``length`` attribute used by the normalizer.
"""

from pathlib import Path
from typing import Optional, Union

import geopandas as gpd
from shapely.geometry import LineString, MultiLineString
from shapely.ops import linemerge

from roadyear.utils.logging import get_logger

logger = get_logger(__name__)

LENGTH_FIELD = "length"


class RoadParser:
    """Parse vector files containing road LineStrings.

    Args:
        target_crs: Metric CRS lengths and buffers are expressed in
            (default: EPSG:3979, Canada Atlas Lambert)
        id_field: Attribute holding the unique road identifier
        layer: Optional layer name for multi-layer sources

    Example:
        >>> parser = RoadParser()
        >>> roads = parser.parse("unpaved_roads.gpkg")
        >>> print(f"Loaded {len(roads)} roads")
    """

    def __init__(
        self,
        target_crs: str = "EPSG:3979",
        id_field: str = "id",
        layer: Optional[str] = None,
    ):
        self.target_crs = target_crs
        self.id_field = id_field
        self.layer = layer

    def parse(
        self,
        path: Union[str, Path],
        limit: Optional[int] = None,
    ) -> gpd.GeoDataFrame:
        """Read roads from disk.

        Args:
            path: Path to the vector file
            limit: Keep only the first ``limit`` roads (useful for test runs)

        Returns:
            GeoDataFrame with columns ``id_field``, ``length`` and geometry

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the id field is missing, ids are duplicated or
                no valid road remains
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Road file not found: {path}")

        logger.info(f"Parsing roads: {path}")
        if self.layer is not None:
            gdf = gpd.read_file(path, layer=self.layer)
        else:
            gdf = gpd.read_file(path)

        return self.prepare(gdf, limit=limit)

    def prepare(
        self,
        gdf: gpd.GeoDataFrame,
        limit: Optional[int] = None,
    ) -> gpd.GeoDataFrame:
        """Validate an in-memory road frame and add the ``length`` column.

        Same checks as :meth:`parse`, for roads that did not come from a file.
        """
        if self.id_field not in gdf.columns:
            raise ValueError(
                f"Id field '{self.id_field}' not found. "
                f"Available columns: {list(gdf.columns)}"
            )

        if gdf.crs is None:
            logger.warning(f"Roads have no CRS, assuming {self.target_crs}")
            gdf = gdf.set_crs(self.target_crs)
        elif gdf.crs != self.target_crs:
            logger.info(f"Reprojecting from {gdf.crs} to {self.target_crs}")
            gdf = gdf.to_crs(self.target_crs)

        # Positions, not labels: the index of concatenated layers may repeat
        keep = []
        geometries = []
        for pos, (road_id, geom) in enumerate(zip(gdf[self.id_field], gdf.geometry)):
            if geom is None or geom.is_empty:
                logger.warning(f"Skipping road {road_id}: empty geometry")
                continue

            if isinstance(geom, MultiLineString):
                merged = linemerge(geom)
                if isinstance(merged, LineString):
                    geom = merged
            elif not isinstance(geom, LineString):
                logger.warning(f"Skipping road {road_id}: not a line ({geom.geom_type})")
                continue

            keep.append(pos)
            geometries.append(geom)

        roads = gdf.iloc[keep].copy()
        roads[roads.geometry.name] = gpd.GeoSeries(geometries, index=roads.index, crs=gdf.crs)

        if len(roads) == 0:
            raise ValueError("No valid road lines found")

        duplicated = roads[self.id_field].duplicated(keep=False)
        if duplicated.any():
            dupes = sorted(roads.loc[duplicated, self.id_field].astype(str).unique())
            raise ValueError(
                f"Road ids must be unique, found {len(dupes)} duplicated: {dupes[:10]}"
            )

        if limit is not None:
            roads = roads.iloc[:limit].copy()
            logger.info(f"Limiting to first {len(roads)} roads")

        roads[LENGTH_FIELD] = roads.geometry.length

        n_skipped = len(gdf) - len(keep)
        if n_skipped:
            logger.warning(f"Skipped {n_skipped} of {len(gdf)} features")
        logger.info(f"Loaded {len(roads)} roads")
        logger.info(
            f"  Length range: [{roads[LENGTH_FIELD].min():.1f}, "
            f"{roads[LENGTH_FIELD].max():.1f}]m"
        )

        return roads
