from __future__ import annotations

import json
import pathlib

import jsonschema
import pytest
import yaml
from jsonschema.exceptions import ValidationError

"""Config schema contract test."""

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[2]
SCHEMA_PATH = PROJECT_ROOT / "acquisition_dashboard" / "config" / "config_schema.json"
EXAMPLE_PATH = PROJECT_ROOT / "config" / "dashboard.example.yml"


@pytest.fixture(scope="module")
def schema():
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_example_config_is_valid(schema):
    config = yaml.safe_load(EXAMPLE_PATH.read_text(encoding="utf-8"))
    jsonschema.validate(config, schema)


def test_minimal_config_is_valid(schema):
    jsonschema.validate({"gateway": {"base_url": "http://localhost:3000"}}, schema)


@pytest.mark.parametrize(
    "config",
    [
        {},
        {"gateway": {}},
        {"gateway": {"base_url": ""}},
        {"gateway": {"base_url": "http://h", "retries": 3}},
        {"gateway": {"base_url": "http://h"}, "source_directory": "./data"},
        {"gateway": {"base_url": "http://h", "timeout_seconds": 0}},
        {"gateway": {"base_url": "http://h"}, "intervals": {"download_poll": 0}},
        {"gateway": {"base_url": "http://h"}, "intervals": {"heartbeat": 5}},
        {"gateway": {"base_url": "http://h"}, "max_build_attempts": 0},
        {"gateway": {"base_url": "http://h"}, "max_build_attempts": 1.5},
    ],
)
def test_invalid_configs_are_rejected(schema, config):
    with pytest.raises(ValidationError):
        jsonschema.validate(config, schema)
