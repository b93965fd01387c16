"""Configuration parsing helpers for iterdns.

Brief:
  Reads the YAML config file, validates it against the JSON Schema and turns
  the resulting mapping into a Settings bundle the CLI (or an embedding
  application) uses to build a ZoneCache and an IterativeResolver.

Inputs:
  - YAML config paths or already-parsed mappings

Outputs:
  - Settings instances
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import yaml

from ..resolver import ROOT_HINTS, ResolverConfig
from ..transport import AuthorityEndpoint
from .config_schema import validate_config

DEFAULT_CACHE_CAPACITY = 4096


@dataclass(frozen=True)
class Settings:
    """Validated runtime settings.

    Inputs:
      - logging: Mapping handed to init_logging().
      - resolver: ResolverConfig for IterativeResolver.
      - cache_capacity: ZoneCache capacity (0 disables caching).
      - root_hints: Root authority endpoints.
    """

    logging: Dict[str, Any] = field(default_factory=dict)
    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    cache_capacity: int = DEFAULT_CACHE_CAPACITY
    root_hints: Tuple[AuthorityEndpoint, ...] = ROOT_HINTS


def parse_config_file(config_path: str) -> Dict[str, Any]:
    """Brief: Read and schema-validate a YAML config file.

    Inputs:
      - config_path: Path to the YAML configuration file.

    Outputs:
      - dict: Parsed configuration mapping.

    Raises:
      - OSError: When the file cannot be read.
      - ValueError: When the YAML is malformed, the root is not a mapping, or
        schema validation fails.
    """

    with open(config_path, "r", encoding="utf-8") as f:
        try:
            cfg = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(cfg, dict):
        raise ValueError("Configuration root must be a mapping")

    validate_config(cfg, config_path=config_path)
    return cfg


def build_settings(cfg: Dict[str, Any]) -> Settings:
    """Brief: Convert a validated configuration mapping into Settings.

    Inputs:
      - cfg: Mapping shaped like assets/config-schema.json; missing sections
        and keys take their defaults.

    Outputs:
      - Settings
    """

    logging_cfg = dict(cfg.get("logging") or {})

    resolver_cfg = cfg.get("resolver") or {}
    defaults = ResolverConfig()
    resolver = ResolverConfig(
        timeout_ms=int(resolver_cfg.get("timeout_ms", defaults.timeout_ms)),
        per_try_timeout_ms=int(
            resolver_cfg.get("per_try_timeout_ms", defaults.per_try_timeout_ms)
        ),
        max_steps=int(resolver_cfg.get("max_steps", defaults.max_steps)),
        max_cname_chain=int(resolver_cfg.get("max_cname_chain", defaults.max_cname_chain)),
        edns_udp_payload=int(
            resolver_cfg.get("edns_udp_payload", defaults.edns_udp_payload)
        ),
        dnssec=bool(resolver_cfg.get("dnssec", defaults.dnssec)),
    )

    cache_cfg = cfg.get("cache") or {}
    capacity = int(cache_cfg.get("capacity", DEFAULT_CACHE_CAPACITY))

    hints_cfg = cfg.get("root_hints")
    if hints_cfg:
        root_hints = tuple(
            AuthorityEndpoint(
                name=str(entry["name"]),
                host=str(entry["address"]),
                port=int(entry.get("port", 53)),
            )
            for entry in hints_cfg
        )
    else:
        root_hints = ROOT_HINTS

    return Settings(
        logging=logging_cfg,
        resolver=resolver,
        cache_capacity=capacity,
        root_hints=root_hints,
    )


def load_config(config_path: Optional[str] = None) -> Settings:
    """Brief: Load Settings from a YAML file, or the defaults when no path is given.

    Inputs:
      - config_path: Optional path to a YAML configuration file.

    Outputs:
      - Settings

    Example:
      >>> load_config().resolver.max_steps
      128
    """

    if config_path is None:
        return Settings()
    return build_settings(parse_config_file(config_path))
