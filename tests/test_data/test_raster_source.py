"""Tests for reading disturbance pixels from local rasters."""

import numpy as np
import pytest
from shapely.geometry import LineString, box

from roadyear.data.raster_catalog import DisturbanceLayer
from roadyear.data.raster_source import RasterioRasterSource, RasterSourceError
from roadyear.data.synthetic import write_disturbance_raster

CRS = "EPSG:3979"
ORIGIN = (0.0, 600.0)  # 20 x 20 pixels of 30 m


@pytest.fixture
def years():
    grid = np.zeros((20, 20), dtype=np.uint16)
    grid[7:10, 0:3] = [
        [1970, 1971, 1972],
        [1973, 0, 1975],
        [1976, 1977, 1978],
    ]
    return grid


@pytest.fixture
def layer(tmp_path, years):
    path = write_disturbance_raster(tmp_path / "c65.tif", years, origin=ORIGIN, crs=CRS)
    return DisturbanceLayer("canlad_65", path, "yod_canlad_65", 1965, 1984)


# Pixel centres x = 15, 45, 75 and y = 375, 345, 315 (rows 7-9, cols 0-2)
REGION = box(1, 301, 89, 389)


class TestRasterioRasterSource:

    def test_sample_excludes_nodata(self, layer):
        with RasterioRasterSource([layer], region_crs=CRS) as source:
            values = source.sample(layer, REGION, 30)

        assert sorted(values.tolist()) == [1970, 1971, 1972, 1973, 1975, 1976, 1977, 1978]

    def test_sample_disjoint_region(self, layer):
        with RasterioRasterSource([layer]) as source:
            values = source.sample(layer, box(5000, 5000, 5100, 5100), 30)

        assert values.size == 0

    def test_sample_all_nodata(self, layer):
        with RasterioRasterSource([layer]) as source:
            values = source.sample(layer, box(301, 1, 389, 89), 30)

        assert values.size == 0

    def test_sample_buffered_line(self, layer):
        with RasterioRasterSource([layer]) as source:
            region = source.buffer_region(LineString([(15, 345), (75, 345)]), 20)
            values = source.sample(layer, region, 30)

        # Centres of rows 8 +/- 1 are 30 m away, outside the 20 m buffer
        assert sorted(values.tolist()) == [1973, 1975]

    def test_coarser_resolution(self, layer):
        with RasterioRasterSource([layer]) as source:
            values = source.sample(layer, REGION, 60)

        # The 3 x 3 window is resampled to 2 x 2
        assert 0 < values.size <= 4
        assert set(values.tolist()) <= {1970, 1971, 1972, 1973, 1975, 1976, 1977, 1978}

    def test_nodata_override(self, layer):
        override = DisturbanceLayer(
            layer.name, layer.path, layer.property_name, 1965, 1984, nodata=1970
        )
        with RasterioRasterSource([override]) as source:
            values = source.sample(override, REGION, 30)

        # The file's own nodata (0) is replaced by the override
        assert 1970 not in values.tolist()
        assert 0 in values.tolist()

    def test_dtype_cast(self, tmp_path, years):
        path = write_disturbance_raster(
            tmp_path / "float.tif", years.astype("float32"), origin=ORIGIN, dtype="float32"
        )
        layer = DisturbanceLayer("canlad_65", path, "yod_canlad_65", 1965, 1984, dtype="uint16")
        with RasterioRasterSource([layer]) as source:
            values = source.sample(layer, REGION, 30)

        assert values.dtype == np.uint16
        assert len(values) == 8

    def test_dtype_cast_drops_unrepresentable(self, tmp_path, years):
        grid = years.astype("float32")
        grid[7, 0] = -5
        grid[9, 2] = 70000
        path = write_disturbance_raster(
            tmp_path / "float.tif", grid, origin=ORIGIN, dtype="float32"
        )
        layer = DisturbanceLayer("canlad_65", path, "yod_canlad_65", 1965, 1984, dtype="uint16")
        with RasterioRasterSource([layer]) as source:
            values = source.sample(layer, REGION, 30)

        # No wrap-around (e.g., -5 becoming 65531)
        assert values.dtype == np.uint16
        assert sorted(values.tolist()) == [1971, 1972, 1973, 1975, 1976, 1977]

    def test_float_nan_excluded(self, tmp_path, years):
        grid = years.astype("float32")
        grid[grid == 0] = np.nan
        path = write_disturbance_raster(
            tmp_path / "nan.tif", grid, origin=ORIGIN, nodata=None, dtype="float32"
        )
        layer = DisturbanceLayer("canlad_85", path, "yod_canlad_85", 1965, 1984)
        with RasterioRasterSource([layer]) as source:
            values = source.sample(layer, REGION, 30)

        assert len(values) == 8
        assert np.isfinite(values).all()

    def test_context_closes_datasets(self, layer):
        source = RasterioRasterSource([layer])
        with source:
            assert source.is_open
        assert not source.is_open

    def test_closed_on_error(self, layer):
        source = RasterioRasterSource([layer])
        with pytest.raises(RuntimeError):
            with source:
                raise RuntimeError("boom")
        assert not source.is_open

    def test_sample_requires_open(self, layer):
        with pytest.raises(RasterSourceError, match="not open"):
            RasterioRasterSource([layer]).sample(layer, REGION, 30)

    def test_unknown_layer(self, layer):
        other = DisturbanceLayer("canlad_85", layer.path, "yod_canlad_85", 1985, 2020)
        with RasterioRasterSource([layer]) as source:
            with pytest.raises(RasterSourceError, match="canlad_85"):
                source.sample(other, REGION, 30)

    def test_missing_raster(self, tmp_path):
        layer = DisturbanceLayer("canlad_65", tmp_path / "nope.tif", "yod_canlad_65", 1965, 1984)
        with pytest.raises(RasterSourceError, match="Cannot open"):
            RasterioRasterSource([layer]).open()

    def test_band_out_of_range(self, layer):
        two = DisturbanceLayer(layer.name, layer.path, layer.property_name, 1965, 1984, band=2)
        source = RasterioRasterSource([two])
        with pytest.raises(RasterSourceError, match="band 2"):
            source.open()
        assert not source.is_open
