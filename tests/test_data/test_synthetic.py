"""
Tests for synthetic data generator.

Tests cover:
- Road lengths, ids and construction years
- Corridors written into the matching CanLaD product
- Reproducibility with seeds
- Save functionality
"""

import numpy as np
import pytest
import rasterio

from roadyear.data.synthetic import CANLAD_NODATA, SyntheticDataGenerator, write_disturbance_raster


class TestGenerateRoads:
    """Test road generation."""

    @pytest.fixture
    def generator(self):
        return SyntheticDataGenerator(n_roads=15, seed=7)

    def test_default_initialization(self):
        gen = SyntheticDataGenerator()

        assert gen.n_roads == 20
        assert gen.pixel_size == 30
        assert gen.shape == (200, 200)

    def test_roads(self, generator):
        roads = generator.generate_roads()

        assert len(roads) == 15
        assert roads["id"].is_unique
        assert roads.crs == "EPSG:3979"
        assert (roads.geometry.length >= 60 - 1e-6).all()
        assert (roads.geometry.length <= 900 + 1e-6).all()

    def test_years_in_canlad_range(self, generator):
        years = generator.generate_roads()["construction_year"]
        assert years.min() >= 1965
        assert years.max() <= 2020

    def test_reproducible(self):
        a = SyntheticDataGenerator(n_roads=5, seed=1).generate_roads()
        b = SyntheticDataGenerator(n_roads=5, seed=1).generate_roads()

        assert a.geometry.equals(b.geometry)
        assert a["construction_year"].tolist() == b["construction_year"].tolist()


class TestGenerateRasters:
    """Test disturbance raster generation."""

    @pytest.fixture
    def generator(self):
        return SyntheticDataGenerator(n_roads=10, seed=3)

    def test_products(self, generator):
        products = generator.generate_rasters(generator.generate_roads())

        assert set(products) == {"canlad_65", "canlad_85"}
        for years in products.values():
            assert years.shape == generator.shape
            assert years.dtype == np.uint16

    def test_year_ranges(self, generator):
        products = generator.generate_rasters(generator.generate_roads())

        c65 = products["canlad_65"][products["canlad_65"] != CANLAD_NODATA]
        c85 = products["canlad_85"][products["canlad_85"] != CANLAD_NODATA]
        assert ((c65 >= 1965) & (c65 <= 1984)).all()
        assert ((c85 >= 1985) & (c85 <= 2020)).all()

    def test_only_road_years_without_patches(self, generator):
        roads = generator.generate_roads()
        products = generator.generate_rasters(roads, n_later_patches=0)
        road_years = set(roads["construction_year"].tolist())

        for key, years in products.items():
            written = set(np.unique(years).tolist()) - {CANLAD_NODATA}
            assert written <= road_years

        assert any((years != CANLAD_NODATA).any() for years in products.values())


class TestSave:
    """Test writing roads and rasters."""

    def test_save(self, tmp_path):
        paths = SyntheticDataGenerator(n_roads=5).save(tmp_path)

        assert set(paths) == {"roads", "canlad_65", "canlad_85"}
        assert all(p.exists() for p in paths.values())

        with rasterio.open(paths["canlad_85"]) as ds:
            assert ds.crs.to_epsg() == 3979
            assert ds.res == (30.0, 30.0)
            assert ds.nodata == CANLAD_NODATA

    def test_write_disturbance_raster(self, tmp_path):
        years = np.full((4, 5), 1990, dtype=np.uint16)
        path = write_disturbance_raster(tmp_path / "sub" / "r.tif", years, origin=(100, 200))

        with rasterio.open(path) as ds:
            assert ds.shape == (4, 5)
            assert ds.bounds.left == 100
            assert ds.bounds.top == 200
            assert (ds.read(1) == 1990).all()
