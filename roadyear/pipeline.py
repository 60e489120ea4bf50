"""End-to-end construction year extraction.

    load roads -> normalize -> zonal statistics -> attach -> select -> export

Each stage is a plain function of in-memory frames. The raster query
capability is passed in (or built from the config) and is opened for the
duration of the extraction only.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import geopandas as gpd
import pandas as pd
from omegaconf import DictConfig

from roadyear.data.exporter import attach_statistics, export_table, select_columns
from roadyear.data.geometry import RoadNormalizer
from roadyear.data.parsers.road_parser import RoadParser
from roadyear.data.raster_catalog import RasterCatalog
from roadyear.data.raster_source import RasterioRasterSource, RasterSource
from roadyear.data.zonal_stats import Percentile, ZonalStatisticsExtractor
from roadyear.utils.config import save_config
from roadyear.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class PipelineResult:
    """Outputs of a pipeline run.

    Attributes:
        roads: Normalized roads with the statistic columns attached
        table: Exported table (selected columns, one row per road)
        output_path: Written file, None when export was skipped
    """

    roads: gpd.GeoDataFrame
    table: pd.DataFrame
    output_path: Optional[Path] = None


def load_roads(cfg: DictConfig) -> gpd.GeoDataFrame:
    """Read the roads described by the ``roads`` config section."""
    parser = RoadParser(
        target_crs=cfg.roads.target_crs,
        id_field=cfg.roads.id_field,
        layer=cfg.roads.get("layer", None),
    )
    return parser.parse(cfg.roads.path, limit=cfg.roads.get("limit", None))


def build_normalizer(cfg: DictConfig) -> RoadNormalizer:
    return RoadNormalizer(
        length_threshold=cfg.normalization.length_threshold,
        shorten_margin=cfg.normalization.shorten_margin,
        degenerate_policy=cfg.normalization.degenerate_policy,
        min_residual=cfg.normalization.min_residual,
    )


def extract_statistics(
    roads: gpd.GeoDataFrame,
    source: RasterSource,
    catalog: RasterCatalog,
    cfg: DictConfig,
    show_progress: bool = False,
) -> pd.DataFrame:
    """Zonal statistics of every catalog layer for ``roads`` (source must be open)."""
    extractor = ZonalStatisticsExtractor(
        source,
        catalog,
        buffer_radius=cfg.sampling.buffer_radius,
        resolution=cfg.sampling.resolution,
        aggregator=Percentile(cfg.sampling.percentile),
        n_workers=cfg.sampling.n_workers,
        show_progress=show_progress,
    )
    return extractor.extract(roads)


def run_pipeline(
    cfg: DictConfig,
    roads: Optional[gpd.GeoDataFrame] = None,
    source: Optional[RasterSource] = None,
    export: bool = True,
    show_progress: bool = False,
) -> PipelineResult:
    """Run the full extraction.

    Args:
        cfg: Validated configuration (see configs/default.yaml)
        roads: Already loaded roads; read from ``cfg.roads.path`` when None.
            They go through RoadParser.prepare (reprojection, id checks, length)
        source: Raster query capability; a RasterioRasterSource over the
            catalog files when None. It is opened and closed here.
        export: Write the table to ``cfg.export``
        show_progress: Show a progress bar while sampling

    Returns:
        PipelineResult

    Raises:
        Any error from the road reader, the raster source or the export.
        Nothing is written when sampling fails.
    """
    catalog = RasterCatalog.from_config(cfg.rasters)
    catalog.validate(check_files=source is None)

    if roads is None:
        roads = load_roads(cfg)
    else:
        # Reprojected, checked and measured like roads read from disk
        roads = RoadParser(cfg.roads.target_crs, cfg.roads.id_field).prepare(
            roads, limit=cfg.roads.get("limit", None)
        )

    normalized = build_normalizer(cfg).normalize(roads)

    if source is None:
        source = RasterioRasterSource(catalog, region_crs=cfg.roads.target_crs)

    with source:
        stats = extract_statistics(normalized, source, catalog, cfg, show_progress)

    roads_with_stats = attach_statistics(normalized, stats)
    table = select_columns(roads_with_stats, list(cfg.export.selectors))
    logger.info(f"Construction years estimated for {len(table)} roads")

    output_path = None
    if export:
        output_path = export_table(
            table,
            cfg.export.output_dir,
            cfg.export.file_prefix,
            cfg.export.format,
        )
        save_config(cfg, Path(cfg.export.output_dir) / f"{cfg.export.file_prefix}_config.yaml")

    return PipelineResult(roads=roads_with_stats, table=table, output_path=output_path)
