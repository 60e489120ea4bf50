"""Road geometry normalization.

Long roads are shortened from both ends before sampling, which reduces the
chance of picking up the disturbance of a perpendicular road at either end.
Short roads are sampled as they are.

Example:
    >>> from roadyear.data.geometry import RoadNormalizer
    >>> normalizer = RoadNormalizer(length_threshold=180, shorten_margin=90)
    >>> normalized = normalizer.normalize(roads)
"""

from typing import Tuple

import geopandas as gpd
import numpy as np
from shapely.geometry import LineString
from shapely.geometry.base import BaseGeometry
from shapely.ops import substring

from roadyear.data.parsers.road_parser import LENGTH_FIELD
from roadyear.utils.logging import get_logger

logger = get_logger(__name__)

SHORTENED_FIELD = "shortened"
DEGENERATE_FIELD = "degenerate"

DEGENERATE_POLICIES = ("clamp", "keep", "error")


class GeometryNormalizationError(Exception):
    """Raised when a road cannot be shortened and the policy is 'error'."""
    pass


def shorten_line(line: LineString, margin: float) -> LineString:
    """Remove ``margin`` units of arc length from both ends of a line.

    Intermediate vertices are preserved.

    Args:
        line: Line to shorten
        margin: Arc length removed at each end

    Returns:
        New line running from ``margin`` to ``line.length - margin``

    Raises:
        GeometryNormalizationError: If nothing would remain of the line
    """
    length = line.length
    if length - 2 * margin <= 0:
        raise GeometryNormalizationError(
            f"Cannot shorten a {length:.2f} long line by {margin:.2f} at both ends"
        )
    return substring(line, margin, length - margin)


def residual_segment(line: LineString, residual: float) -> LineString:
    """Minimal segment of length ``residual`` centred on the line midpoint."""
    length = line.length
    half = min(residual, length) / 2.0
    middle = length / 2.0
    return substring(line, middle - half, middle + half)


class RoadNormalizer:
    """Partition roads by length and shorten the long ones.

    Args:
        length_threshold: Roads with ``length <= length_threshold`` are left
            untouched (default: 180)
        shorten_margin: Arc length removed from each end of long roads
            (default: 90)
        degenerate_policy: What to do when a long road is not longer than
            ``2 * shorten_margin``: 'clamp' keeps a ``min_residual`` segment
            around the midpoint, 'keep' leaves the road unchanged, 'error'
            raises :class:`GeometryNormalizationError`
        min_residual: Length of the clamped segment (default: 1.0)
    """

    def __init__(
        self,
        length_threshold: float = 180.0,
        shorten_margin: float = 90.0,
        degenerate_policy: str = "clamp",
        min_residual: float = 1.0,
    ):
        if degenerate_policy not in DEGENERATE_POLICIES:
            raise ValueError(
                f"degenerate_policy must be one of {DEGENERATE_POLICIES}, "
                f"got '{degenerate_policy}'"
            )
        if length_threshold < 2 * shorten_margin:
            logger.warning(
                f"Length threshold {length_threshold} is below twice the margin "
                f"({2 * shorten_margin}); some roads will hit the "
                f"'{degenerate_policy}' policy"
            )

        self.length_threshold = length_threshold
        self.shorten_margin = shorten_margin
        self.degenerate_policy = degenerate_policy
        self.min_residual = min_residual

    def partition(
        self, roads: gpd.GeoDataFrame
    ) -> Tuple[gpd.GeoDataFrame, gpd.GeoDataFrame]:
        """Split roads into (short, long) by the load-time length."""
        is_short = roads[LENGTH_FIELD] <= self.length_threshold
        return roads[is_short], roads[~is_short]

    def _shorten(self, geom: BaseGeometry) -> Tuple[BaseGeometry, bool]:
        # Returns (new geometry, degenerate flag)
        if not isinstance(geom, LineString):
            return geom, False

        try:
            return shorten_line(geom, self.shorten_margin), False
        except GeometryNormalizationError:
            if self.degenerate_policy == "error":
                raise
            if self.degenerate_policy == "keep":
                return geom, True
            return residual_segment(geom, self.min_residual), True

    def normalize(self, roads: gpd.GeoDataFrame) -> gpd.GeoDataFrame:
        """Return a new frame with long roads shortened at both ends.

        The input frame is not modified. The result has the same rows, in
        the same order, with two extra boolean columns: ``shortened`` and
        ``degenerate``.

        Args:
            roads: Roads with a ``length`` column (see RoadParser)

        Returns:
            Normalized GeoDataFrame

        Raises:
            GeometryNormalizationError: For degenerate roads under the
                'error' policy
        """
        is_long = (roads[LENGTH_FIELD] > self.length_threshold).to_numpy()
        n_long = int(is_long.sum())
        logger.info(
            f"Normalizing {len(roads)} roads: {len(roads) - n_long} <= "
            f"{self.length_threshold}m kept, {n_long} shortened by "
            f"{self.shorten_margin}m at both ends"
        )

        # Rows are addressed by position; the index may hold duplicates
        geometries = list(roads.geometry)
        shortened = [False] * len(roads)
        degenerate = [False] * len(roads)
        for pos in np.flatnonzero(is_long):
            geom = geometries[pos]
            if not isinstance(geom, LineString):
                logger.warning(f"Not shortening {geom.geom_type} geometry")
            new_geom, is_degenerate = self._shorten(geom)
            geometries[pos] = new_geom
            shortened[pos] = new_geom is not geom
            degenerate[pos] = is_degenerate

        result = roads.copy()
        result[result.geometry.name] = gpd.GeoSeries(
            geometries, index=result.index, crs=roads.crs
        )
        result[SHORTENED_FIELD] = shortened
        result[DEGENERATE_FIELD] = degenerate

        n_degenerate = sum(degenerate)
        if n_degenerate:
            logger.warning(
                f"{n_degenerate} roads are not longer than {2 * self.shorten_margin}m "
                f"('{self.degenerate_policy}' policy applied)"
            )

        return result
