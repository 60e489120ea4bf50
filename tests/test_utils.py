"""Tests for utility functions."""

import logging

import pytest
import yaml
from omegaconf import OmegaConf
from pathlib import Path

from roadyear.utils.config import (
    ConfigValidationError,
    load_config,
    load_yaml,
    merge_configs,
    save_config,
    validate_config,
)
from roadyear.utils.logging import add_file_handler, get_logger, set_package_level, setup_logger

DEFAULT_CONFIG = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"


def test_load_default_config():
    """Test loading default configuration."""
    cfg = load_config(DEFAULT_CONFIG)

    assert cfg.normalization.length_threshold == 180
    assert cfg.normalization.shorten_margin == 90
    assert cfg.normalization.degenerate_policy == "clamp"

    assert cfg.sampling.buffer_radius == 30
    assert cfg.sampling.resolution == 30
    assert cfg.sampling.percentile == 5

    assert cfg.rasters.canlad_65.property == "yod_canlad_65"
    assert cfg.rasters.canlad_65.start_year == 1965
    assert cfg.rasters.canlad_85.end_year == 2020

    assert list(cfg.export.selectors) == ["id", "yod_canlad_65", "yod_canlad_85"]


def test_config_validation():
    """Test configuration validation."""
    cfg = load_config(DEFAULT_CONFIG, validate=True)
    validate_config(cfg)  # Should not raise

    invalid_cfg = OmegaConf.create({"roads": {"path": "roads.gpkg"}})
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_config(invalid_cfg)

    message = str(exc_info.value)
    assert "roads.id_field" in message
    assert "sampling" in message


def test_validation_missing_layer_field():
    """Raster layers need a path, property and year range."""
    cfg = load_config(DEFAULT_CONFIG)
    del cfg.rasters.canlad_85["property"]

    with pytest.raises(ConfigValidationError, match="rasters.canlad_85.property"):
        validate_config(cfg)


@pytest.mark.parametrize(
    "key,value",
    [
        ("normalization.degenerate_policy", "exclude"),
        ("normalization.length_threshold", 0),
        ("sampling.percentile", 150),
        ("sampling.resolution", 0),
        ("sampling.n_workers", 0),
        ("export.format", "xlsx"),
    ],
)
def test_validation_rejects_bad_values(key, value):
    """Out-of-range or unknown values fail validation."""
    with pytest.raises(ConfigValidationError):
        load_config(DEFAULT_CONFIG, overrides={key: value})


def test_config_overrides():
    """Dotted overrides only replace the targeted values."""
    overrides = {"sampling.buffer_radius": 60, "rasters.canlad_65.path": "other.tif"}
    cfg = load_config(DEFAULT_CONFIG, overrides=overrides)

    assert cfg.sampling.buffer_radius == 60
    assert cfg.rasters.canlad_65.path == "other.tif"
    # Other values should remain unchanged
    assert cfg.sampling.percentile == 5
    assert cfg.rasters.canlad_65.property == "yod_canlad_65"


def test_save_and_load_config(tmp_path):
    """Test saving and loading configuration."""
    cfg = load_config(DEFAULT_CONFIG)

    save_path = tmp_path / "nested" / "config.yaml"
    save_config(cfg, save_path)

    assert save_path.exists()

    loaded_cfg = load_config(save_path)
    assert loaded_cfg.sampling.percentile == cfg.sampling.percentile
    assert loaded_cfg.roads.target_crs == cfg.roads.target_crs


def test_merge_configs(tmp_path):
    """Test merging a study-area config over the default one."""
    override_path = tmp_path / "quebec.yaml"
    override_path.write_text(
        yaml.safe_dump({"roads": {"path": "data/raw/quebec_roads.gpkg"}})
    )

    cfg = merge_configs(DEFAULT_CONFIG, override_path)

    assert cfg.roads.path == "data/raw/quebec_roads.gpkg"
    assert cfg.roads.id_field == "id"
    assert cfg.normalization.length_threshold == 180


def test_merge_configs_with_overrides(tmp_path):
    """Dotted overrides win over both files, and the result is validated."""
    override_path = tmp_path / "quebec.yaml"
    override_path.write_text(
        yaml.safe_dump({"roads": {"path": "quebec.gpkg"}, "sampling": {"buffer_radius": 45}})
    )

    cfg = merge_configs(DEFAULT_CONFIG, override_path, overrides={"roads.path": "other.gpkg"})

    assert cfg.roads.path == "other.gpkg"
    assert cfg.sampling.buffer_radius == 45

    override_path.write_text(yaml.safe_dump({"sampling": {"percentile": 150}}))
    with pytest.raises(ConfigValidationError):
        merge_configs(DEFAULT_CONFIG, override_path)


def test_missing_config_file():
    """Test loading non-existent config file."""
    with pytest.raises(FileNotFoundError):
        load_config("configs/nonexistent.yaml")


def test_malformed_yaml(tmp_path):
    """Malformed YAML surfaces as a YAMLError."""
    path = tmp_path / "broken.yaml"
    path.write_text("roads: [unclosed\n")

    with pytest.raises(yaml.YAMLError):
        load_yaml(path)


def test_empty_yaml(tmp_path):
    """An empty file loads as an empty dict."""
    path = tmp_path / "empty.yaml"
    path.write_text("")

    assert load_yaml(path) == {}


class TestLogging:
    """Tests for logger setup."""

    def test_setup_logger_single_handler(self):
        """Repeated setup does not stack handlers."""
        logger = setup_logger("roadyear.tests.single")
        n_handlers = len(logger.handlers)
        setup_logger("roadyear.tests.single")

        assert len(logger.handlers) == n_handlers == 1

    def test_get_logger_configures_new_logger(self):
        logger = get_logger("roadyear.tests.fresh")
        assert logger.handlers
        assert logger.level == logging.INFO

    def test_file_handler_writes(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        logger = setup_logger("roadyear.tests.file", log_file=log_file)
        logger.info("sampling roads")

        for handler in logger.handlers:
            handler.flush()

        assert "sampling roads" in log_file.read_text()

    def test_add_file_handler_creates_parent(self, tmp_path):
        logger = logging.getLogger("roadyear.tests.extra")
        log_file = tmp_path / "a" / "b" / "extra.log"
        add_file_handler(logger, log_file)

        assert log_file.parent.exists()

    def test_set_package_level(self):
        logger = get_logger("roadyear.tests.level")
        set_package_level("DEBUG")
        try:
            assert logger.level == logging.DEBUG
            assert all(h.level == logging.DEBUG for h in logger.handlers)
        finally:
            set_package_level("INFO")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
