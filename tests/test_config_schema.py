"""
Brief: Tests for JSON Schema-based configuration validation.

Inputs:
  - None directly; uses example YAML files from example_configs/.

Outputs:
  - None; assertions ensure valid configs pass and invalid configs fail.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml

from iterdns.config.config_schema import get_default_schema_path, validate_config

EXAMPLE_DIR = Path(__file__).resolve().parent.parent / "example_configs"


def _example_yaml_paths() -> list[Path]:
    """Brief: Return example YAML files suitable for schema validation.

    Inputs:
      - None.

    Outputs:
      - list[Path]: YAML paths under example_configs/ excluding editor temp/backup files.
    """

    paths: list[Path] = []
    for p in sorted(EXAMPLE_DIR.glob("*.yaml")):
        name = p.name
        if name.startswith(".") or name.startswith("#") or name.endswith("~"):
            continue
        paths.append(p)
    return paths


@pytest.mark.parametrize("yaml_path", _example_yaml_paths())
def test_example_configs_are_schema_valid(yaml_path: Path) -> None:
    """Brief: All example_configs/*.yaml files must satisfy the JSON Schema.

    Inputs:
      - yaml_path: Path to an example YAML file under example_configs/.

    Outputs:
      - None; raises AssertionError via pytest if validation fails.
    """

    cfg = yaml.safe_load(yaml_path.read_text(encoding="utf-8")) or {}
    validate_config(cfg, config_path=str(yaml_path), unknown_keys="error")


def test_default_schema_path_exists() -> None:
    path = get_default_schema_path()
    assert path.name == "config-schema.json"
    assert path.is_file()


@pytest.mark.parametrize(
    "cfg",
    [
        {"resolver": {"timeout_ms": 0}},
        {"resolver": {"edns_udp_payload": 100}},
        {"resolver": {"dnssec": "yes"}},
        {"cache": {"capacity": -1}},
        {"logging": {"level": "loud"}},
        {"root_hints": []},
        {"root_hints": [{"name": "a.root-servers.net."}]},
    ],
)
def test_invalid_values_raise(cfg) -> None:
    with pytest.raises(ValueError, match="Invalid configuration"):
        validate_config(cfg)


def test_edns_payload_zero_disables_edns() -> None:
    validate_config({"resolver": {"edns_udp_payload": 0}}, unknown_keys="error")


def test_unknown_keys_policies(caplog) -> None:
    """Brief: Unknown keys warn by default, raise on 'error' and pass on 'ignore'.

    Inputs:
      - caplog: pytest log capture.

    Outputs:
      - None; asserts each policy's behaviour.
    """

    cfg = {"resolver": {"max_steps": 10, "retries": 3}}
    with caplog.at_level(logging.WARNING, logger="iterdns.config.config_schema"):
        validate_config(cfg)
    assert "retries" in caplog.text

    with pytest.raises(ValueError, match="retries"):
        validate_config(cfg, unknown_keys="error")

    validate_config(cfg, unknown_keys="ignore")

    with pytest.raises(ValueError):
        validate_config(cfg, unknown_keys="sometimes")


def test_unknown_key_alongside_real_error_raises() -> None:
    with pytest.raises(ValueError, match="max_steps"):
        validate_config({"resolver": {"max_steps": 0, "retries": 3}})


def test_unreadable_schema_raises(tmp_path) -> None:
    missing = tmp_path / "nope.json"
    with pytest.raises(ValueError, match="Failed to load configuration schema"):
        validate_config({}, schema_path=missing)

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="Failed to load configuration schema"):
        validate_config({}, schema_path=broken)
