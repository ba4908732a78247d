"""Project configuration (YAML files in this directory)."""

from .config_manager import ConfigurationManager, ConfigurationError, get_config

__all__ = ["ConfigurationManager", "ConfigurationError", "get_config"]
