"""
Unit tests for print_estimate.project_config module.

Tests:
- Configuration dataclasses and defaults
- JSON serialization/deserialization
- Config file discovery and loading
- Config merging and the sample file
"""

import json
import math
import tempfile
from pathlib import Path

import pytest

from print_estimate import config as cfg
from print_estimate.project_config import (
    CONFIG_FILENAME,
    ETAConfig,
    OutputConfig,
    PricingConfig,
    PrintConfig,
    ProjectConfig,
    QuoteConfig,
    create_sample_config,
    find_config_file,
    load_config,
    merge_configs,
)


@pytest.fixture
def isolated_dirs(tmp_path, monkeypatch):
    """Empty working and home directories so no real config is picked up."""
    work = tmp_path / "work"
    home = tmp_path / "home"
    work.mkdir()
    home.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setenv("HOME", str(home))
    return work, home


class TestSections:
    """Tests for the section dataclasses."""

    def test_quote_defaults(self):
        config = QuoteConfig()
        assert config.material == "PLA"
        assert config.is_batch is False
        assert config.infill_percentage == 20

    def test_pricing_defaults(self):
        config = PricingConfig()
        assert config.minimum_cost == 30
        assert config.support_surcharge_rate == 0.15
        assert config.densities == cfg.MATERIAL_DENSITIES
        assert config.densities is not cfg.MATERIAL_DENSITIES

    def test_tier_bands(self):
        bands = PricingConfig().tier_bands()
        assert bands[0] == (1.0, 10.0, 15.0)
        assert math.isinf(bands[-1][0])
        assert bands[-1][1:] == (100.0, 150.0)

    def test_filament_cross_section(self):
        assert PrintConfig().filament_cross_section == pytest.approx(math.pi * 0.875 ** 2)
        assert PrintConfig(filament_diameter=2.85).filament_cross_section > 6.0

    def test_eta_defaults(self):
        config = ETAConfig()
        assert config.origin_latitude == pytest.approx(-27.4698)
        assert config.shipping_speed_km_per_day == 50
        assert config.geolocation_timeout_s == 10

    def test_output_defaults(self):
        config = OutputConfig()
        assert config.write_reports is False
        assert config.suffix == ".quote"


class TestProjectConfig:
    """Tests for ProjectConfig dataclass."""

    def test_to_dict(self):
        d = ProjectConfig().to_dict()
        assert set(d) == {"quote", "pricing", "print", "eta", "output"}
        assert d["pricing"]["tiers"][-1][0] is None

    def test_to_json(self):
        data = json.loads(ProjectConfig().to_json())
        assert data["quote"]["material"] == "PLA"

    def test_from_dict(self):
        config = ProjectConfig.from_dict({
            "quote": {"material": "PETG", "has_support": True},
            "print": {"print_speed": 80.0},
        })
        assert config.quote.material == "PETG"
        assert config.quote.has_support is True
        assert config.print.print_speed == 80.0
        assert config.pricing.minimum_cost == 30

    def test_unknown_keys_ignored(self):
        config = ProjectConfig.from_dict({
            "_comment": "top level",
            "drawing": {"format": "A3"},
            "pricing": {"_comment": "x", "bogus": 1, "minimum_cost": 40},
        })
        assert config.pricing.minimum_cost == 40
        assert not hasattr(config.pricing, "bogus")

    def test_from_json(self):
        config = ProjectConfig.from_json('{"eta": {"prep_days": 2.5}}')
        assert config.eta.prep_days == 2.5

    def test_save_and_load(self, tmp_path):
        config = ProjectConfig()
        config.quote.material = "ABS"
        config.pricing.materials = [{"name": "ABS", "price_per_kg": 33.0, "is_exotic": False}]
        path = tmp_path / "quote.json"

        config.save(path)
        loaded = ProjectConfig.load(path)

        assert loaded.quote.material == "ABS"
        assert loaded.pricing.materials[0]["price_per_kg"] == 33.0
        assert loaded.pricing.tier_bands() == config.pricing.tier_bands()


class TestFindConfigFile:
    """Tests for find_config_file function."""

    def test_explicit_config_found(self):
        with tempfile.NamedTemporaryFile(suffix='.json', delete=False) as f:
            temp_path = f.name
            f.write(b'{}')

        try:
            assert find_config_file(explicit_config=temp_path) == Path(temp_path)
        finally:
            Path(temp_path).unlink(missing_ok=True)

    def test_model_directory_first(self, isolated_dirs, tmp_path):
        work, _ = isolated_dirs
        model_dir = tmp_path / "models"
        model_dir.mkdir()
        (model_dir / CONFIG_FILENAME).write_text("{}")
        (work / CONFIG_FILENAME).write_text("{}")

        found = find_config_file(model_path=model_dir / "part.stl")
        assert found == model_dir / CONFIG_FILENAME

    def test_cwd_then_home(self, isolated_dirs):
        work, home = isolated_dirs
        (home / CONFIG_FILENAME).write_text("{}")
        assert find_config_file() == home / CONFIG_FILENAME

        (work / CONFIG_FILENAME).write_text("{}")
        assert find_config_file() == work / CONFIG_FILENAME

    def test_missing_explicit_falls_back(self, isolated_dirs):
        assert find_config_file(explicit_config="/nonexistent/path.json") is None


class TestLoadConfig:
    """Tests for load_config function."""

    def test_defaults_when_no_file(self, isolated_dirs):
        config = load_config()
        assert config.quote.material == "PLA"

    def test_explicit_file(self, tmp_path):
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"pricing": {"minimum_cost": 45.0}}))
        assert load_config(explicit_config=path).pricing.minimum_cost == 45.0

    def test_invalid_json_returns_defaults(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("not valid json {{{")
        config = load_config(explicit_config=path)
        assert config.pricing.minimum_cost == 30


class TestMergeConfigs:
    """Tests for merge_configs function."""

    def test_override_non_default_values(self):
        override = ProjectConfig()
        override.quote.material = "TPU"
        merged = merge_configs(ProjectConfig(), override)
        assert merged.quote.material == "TPU"

    def test_default_values_not_overridden(self):
        base = ProjectConfig()
        base.eta.prep_days = 3.0
        merged = merge_configs(base, ProjectConfig())
        assert merged.eta.prep_days == 3.0

    def test_inputs_unchanged(self):
        base = ProjectConfig()
        override = ProjectConfig()
        override.pricing.minimum_cost = 10.0
        merge_configs(base, override)
        assert base.pricing.minimum_cost == 30


class TestCreateSampleConfig:
    """Tests for create_sample_config function."""

    def test_creates_loadable_json(self, tmp_path):
        path = tmp_path / CONFIG_FILENAME
        create_sample_config(path)

        data = json.loads(path.read_text())
        assert {"quote", "pricing", "print", "eta", "output"} <= set(data)
        assert "_comment" in data
        assert "_comment" in data["pricing"]

        loaded = ProjectConfig.load(path)
        assert loaded.to_dict() == ProjectConfig().to_dict()
