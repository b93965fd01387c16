from .config_parser import Settings, build_settings, load_config, parse_config_file
from .config_schema import get_default_schema_path, validate_config
from .logging_config import BracketLevelFormatter, init_logging

__all__ = [
    "BracketLevelFormatter",
    "Settings",
    "build_settings",
    "get_default_schema_path",
    "init_logging",
    "load_config",
    "parse_config_file",
    "validate_config",
]
