"""CanLaD disturbance-year raster catalog.

Two pre-existing single-band products are used, covering non-overlapping
time ranges:

    canlad_65: harvest year 1965-1984  -> property yod_canlad_65
    canlad_85: harvest year 1985-2020  -> property yod_canlad_85
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from omegaconf import DictConfig

from roadyear.utils.config import ConfigValidationError
from roadyear.utils.logging import get_logger

logger = get_logger(__name__)

LAYER_KEYS = ["canlad_65", "canlad_85"]


@dataclass(frozen=True)
class DisturbanceLayer:
    """A single-band disturbance-year raster.

    Attributes:
        name: Catalog key (e.g., 'canlad_65')
        path: Raster file (GeoTIFF or anything GDAL reads)
        property_name: Output property the statistic is stored under
        start_year: First disturbance year in the product
        end_year: Last disturbance year in the product
        band: 1-based band index
        nodata: Overrides the raster's nodata value when set
        dtype: Optional numpy dtype pixels are cast to before aggregation
    """

    name: str
    path: Path
    property_name: str
    start_year: int
    end_year: int
    band: int = 1
    nodata: Optional[float] = None
    dtype: Optional[str] = None

    def contains_year(self, value: float) -> bool:
        """True if ``value`` falls within this product's time range."""
        return self.start_year <= value <= self.end_year

    @property
    def year_range(self) -> str:
        return f"{self.start_year}-{self.end_year}"


class RasterCatalog:
    """Ordered collection of disturbance layers.

    Args:
        layers: Layers in output column order

    Example:
        >>> catalog = RasterCatalog.from_config(cfg.rasters)
        >>> catalog.validate()
        >>> [layer.property_name for layer in catalog]
        ['yod_canlad_65', 'yod_canlad_85']
    """

    def __init__(self, layers: List[DisturbanceLayer]):
        self.layers = list(layers)

    def __iter__(self) -> Iterator[DisturbanceLayer]:
        return iter(self.layers)

    def __len__(self) -> int:
        return len(self.layers)

    def __getitem__(self, name: str) -> DisturbanceLayer:
        for layer in self.layers:
            if layer.name == name:
                return layer
        raise KeyError(f"Unknown raster layer: {name}")

    @property
    def property_names(self) -> List[str]:
        return [layer.property_name for layer in self.layers]

    @classmethod
    def from_config(cls, rasters_cfg: DictConfig) -> "RasterCatalog":
        """Build the catalog from the ``rasters`` config section."""
        layers = []
        for key in LAYER_KEYS:
            layer_cfg = rasters_cfg[key]
            layers.append(
                DisturbanceLayer(
                    name=key,
                    path=Path(layer_cfg.path),
                    property_name=layer_cfg.property,
                    start_year=int(layer_cfg.start_year),
                    end_year=int(layer_cfg.end_year),
                    band=int(layer_cfg.get("band", 1)),
                    nodata=layer_cfg.get("nodata", None),
                    dtype=layer_cfg.get("dtype", None),
                )
            )
        return cls(layers)

    def validate(self, check_files: bool = True) -> None:
        """Check year ranges (and optionally that the files exist).

        Raises:
            ConfigValidationError: On inverted or overlapping year ranges,
                duplicated property names, or missing raster files
        """
        problems = []

        for layer in self.layers:
            if layer.start_year > layer.end_year:
                problems.append(f"{layer.name}: start_year after end_year")
            if check_files and not layer.path.exists():
                problems.append(f"{layer.name}: raster not found at {layer.path}")

        ordered = sorted(self.layers, key=lambda layer: layer.start_year)
        for earlier, later in zip(ordered, ordered[1:]):
            if later.start_year <= earlier.end_year:
                problems.append(
                    f"{earlier.name} ({earlier.year_range}) overlaps "
                    f"{later.name} ({later.year_range})"
                )

        names = self.property_names
        if len(set(names)) != len(names):
            problems.append(f"duplicated output properties: {names}")

        if problems:
            raise ConfigValidationError("Invalid raster catalog: " + "; ".join(problems))

        for layer in self.layers:
            logger.info(f"CanLaD {layer.year_range}: {layer.path} -> {layer.property_name}")
