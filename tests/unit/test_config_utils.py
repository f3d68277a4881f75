"""
Tests of shared_utils configuration helpers
"""

import pytest
import yaml

from shared_utils import get_config_value, load_config, set_config_value, validate_config
from shared_utils.config_utils import CONFIG_ENV_VAR


def test_load_explicit_config(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text(yaml.safe_dump({"period": {"start_year": 2021}}))

    config = load_config(path)

    assert config["period"]["start_year"] == 2021
    assert config["_meta"]["config_file"] == str(path.absolute())


def test_load_component_default_config():
    config = load_config(component_name="npp_biomass")
    assert get_config_value(config, "processing.biomass_coefficient") == 2.5
    assert get_config_value(config, "aoi.value") == 30


def test_load_from_environment(tmp_path, monkeypatch):
    path = tmp_path / "env.yaml"
    path.write_text(yaml.safe_dump({"logging": {"level": "DEBUG"}}))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(path))

    assert load_config(default_config_name="absent.yaml")["logging"]["level"] == "DEBUG"


def test_missing_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_non_mapping_config(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        load_config(path)


def test_dotted_access():
    config = {"a": {"b": 1}}
    assert get_config_value(config, "a.b") == 1
    assert get_config_value(config, "a.c", "default") == "default"

    set_config_value(config, "x.y.z", 3)
    assert config["x"]["y"]["z"] == 3
    assert validate_config(config, ["a", "x"])
    with pytest.raises(ValueError):
        validate_config(config, ["missing"])
