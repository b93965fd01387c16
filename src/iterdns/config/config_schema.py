"""Validation of the iterdns YAML configuration against its JSON Schema.

The schema ships inside the package as ``iterdns/assets/config-schema.json``
and describes four top-level sections: ``logging``, ``resolver``, ``cache``
and ``root_hints``. Keys the schema does not know about are handled by a
policy (``ignore``, ``warn`` or ``error``) so that configs written for newer
releases keep loading; any other violation is fatal.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from jsonschema import Draft202012Validator, ValidationError
from jsonschema.exceptions import SchemaError

logger = logging.getLogger(__name__)

UNKNOWN_KEY_POLICIES = ("ignore", "warn", "error")
_EXTRA_KEY_VALIDATORS = frozenset({"additionalProperties", "unevaluatedProperties"})


def get_default_schema_path() -> Path:
    """Brief: Locate the packaged configuration schema.

    Inputs:
      - None.

    Outputs:
      - Path to ``iterdns/assets/config-schema.json``.
    """

    return Path(__file__).resolve().parents[1] / "assets" / "config-schema.json"


def _build_validator(schema_path: Path) -> Draft202012Validator:
    try:
        with schema_path.open("r", encoding="utf-8") as f:
            schema = json.load(f)
        Draft202012Validator.check_schema(schema)
    except (OSError, json.JSONDecodeError, SchemaError) as exc:
        raise ValueError(f"Failed to load configuration schema at {schema_path}: {exc}") from exc
    return Draft202012Validator(schema)


def _location(err: ValidationError) -> str:
    return ".".join(str(p) for p in err.absolute_path) or "<root>"


def _describe(errors: Iterable[ValidationError], source: str) -> str:
    lines = [f"Invalid configuration in {source}:"]
    lines.extend(f"- {_location(err)}: {err.message}" for err in errors)
    return "\n".join(lines)


def _partition(
    errors: Iterable[ValidationError],
) -> Tuple[List[ValidationError], List[ValidationError]]:
    """Split errors into (unknown-key errors, real violations)."""

    unknown: List[ValidationError] = []
    fatal: List[ValidationError] = []
    for err in errors:
        (unknown if err.validator in _EXTRA_KEY_VALIDATORS else fatal).append(err)
    return unknown, fatal


def validate_config(
    cfg: Dict[str, Any],
    *,
    schema_path: Optional[Path] = None,
    config_path: Optional[str] = None,
    unknown_keys: str = "warn",
) -> None:
    """Brief: Check a parsed configuration mapping against the schema.

    Inputs:
      - cfg: Top-level mapping loaded from YAML.
      - schema_path: Alternative schema file; defaults to the packaged one.
      - config_path: Source file name, used only in messages.
      - unknown_keys: What to do about keys the schema does not describe:
        "ignore", "warn" (log and continue) or "error".

    Outputs:
      - None when the configuration is acceptable.

    Raises:
      - ValueError: on any schema violation other than unknown keys, on
        unknown keys under the "error" policy, on an unknown policy name, or
        when the schema cannot be read.

    Example:
      >>> validate_config({"cache": {"capacity": 128}}, unknown_keys="error")
    """

    if unknown_keys not in UNKNOWN_KEY_POLICIES:
        raise ValueError(
            f"unknown_keys must be one of {', '.join(UNKNOWN_KEY_POLICIES)}; got {unknown_keys!r}"
        )

    validator = _build_validator(schema_path or get_default_schema_path())
    errors = sorted(validator.iter_errors(cfg), key=lambda e: list(map(str, e.absolute_path)))
    unknown, fatal = _partition(errors)
    source = config_path or "<config dict>"

    if fatal:
        raise ValueError(_describe(fatal + unknown, source))
    if not unknown or unknown_keys == "ignore":
        return
    message = _describe(unknown, source)
    if unknown_keys == "error":
        raise ValueError(message)
    logger.warning(message)
