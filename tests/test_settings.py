import json

import pytest

from gymsession import settings


@pytest.fixture(autouse=True)
def clear_cache():
    settings.reset_cache()
    yield
    settings.reset_cache()


def test_defaults_written_on_first_load(tmp_path):
    path = tmp_path / "settings.json"
    loaded = settings.load_settings(path)
    assert path.exists()
    assert {item["key"]: item["value"] for item in loaded}["default_rest_time"] == 120
    assert json.loads(path.read_text(encoding="utf-8")) == loaded


def test_set_value_persists(tmp_path):
    path = tmp_path / "settings.json"
    settings.set_value("superset_rest_time", 75, path)
    assert settings.get_value("superset_rest_time", path) == 75

    settings.reset_cache()
    assert settings.get_value("superset_rest_time", path) == 75
    assert settings.get_value("unknown", path) is None

    settings.set_value("theme", "dark", path)
    settings.reset_cache()
    stored = settings.load_settings(path)
    assert {"key": "theme", "value": "dark", "type": "str"} in stored


def test_missing_keys_filled_from_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps([{"key": "log_level", "value": "DEBUG", "type": "str"}]))
    values = {item["key"]: item["value"] for item in settings.load_settings(path)}
    assert values["log_level"] == "DEBUG"
    assert values["circuit_rest_time"] == 180


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    assert settings.get_value("default_sets_per_exercise", path) == 3
