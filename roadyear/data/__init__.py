"""Road loading, normalization, raster sampling and export."""

from roadyear.data.exporter import attach_statistics, export_table, select_columns
from roadyear.data.geometry import GeometryNormalizationError, RoadNormalizer, shorten_line
from roadyear.data.raster_catalog import DisturbanceLayer, RasterCatalog
from roadyear.data.raster_source import RasterioRasterSource, RasterSource, RasterSourceError
from roadyear.data.synthetic import SyntheticDataGenerator
from roadyear.data.zonal_stats import Percentile, ZonalStatisticsExtractor, zonal_statistic
from roadyear.data import parsers

__all__ = [
    "RoadNormalizer",
    "GeometryNormalizationError",
    "shorten_line",
    "DisturbanceLayer",
    "RasterCatalog",
    "RasterSource",
    "RasterioRasterSource",
    "RasterSourceError",
    "Percentile",
    "ZonalStatisticsExtractor",
    "zonal_statistic",
    "attach_statistics",
    "select_columns",
    "export_table",
    "SyntheticDataGenerator",
    "parsers",
]
