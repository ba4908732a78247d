"""YAML-backed configuration manager for the export forecaster.

The manager loads every ``*.yaml`` file in the config directory and exposes
dot-notation access (``get("models.CA.order")``) together with a light
validation pass over the keys the pipeline relies on.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).resolve().parent


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or parsed."""


class ConfigurationManager:
    """Loads and serves project configuration from YAML files."""

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir is not None else CONFIG_DIR
        self.configs: Dict[str, Dict[str, Any]] = {}
        self._merged: Dict[str, Any] = {}
        self._load_all()

    def _load_all(self) -> None:
        if not self.config_dir.is_dir():
            raise ConfigurationError(f"Configuration directory not found: {self.config_dir}")

        for path in sorted(self.config_dir.glob("*.yaml")):
            try:
                with path.open("r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load {path.name}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigurationError(f"{path.name} must contain a mapping at top level")
            self.configs[path.stem] = data
            _deep_merge(self._merged, data)
            logger.debug("Loaded configuration file %s", path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Return the value at a dot-separated key path, or `default` if absent."""
        node: Any = self._merged
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def validate_configuration(self) -> Dict[str, List[str]]:
        """Check the sections the pipeline reads. Returns {section: [problems]}."""
        errors: Dict[str, List[str]] = {}

        for series in ("CA", "NY"):
            for key in ("order", "seasonal_order"):
                value = self.get(f"models.{series}.{key}")
                if value is None:
                    continue
                if not (isinstance(value, (list, tuple)) and len(value) == 3
                        and all(isinstance(v, int) and v >= 0 for v in value)):
                    errors.setdefault("models", []).append(
                        f"models.{series}.{key} must be three non-negative integers, got {value!r}"
                    )

        horizon = self.get("forecast.horizon")
        if horizon is not None and (not isinstance(horizon, int) or horizon < 1):
            errors.setdefault("forecast", []).append("forecast.horizon must be a positive integer")

        alpha = self.get("forecast.alpha")
        if alpha is not None and not (0.0 < float(alpha) < 1.0):
            errors.setdefault("forecast", []).append("forecast.alpha must lie in (0, 1)")

        criterion = self.get("var.criterion")
        if criterion is not None and str(criterion).lower() not in {"aic", "bic", "hqic", "fpe"}:
            errors.setdefault("var", []).append(f"Unknown var.criterion: {criterion}")

        return errors

    def get_configuration_summary(self) -> Dict[str, Any]:
        return {
            "config_dir": str(self.config_dir),
            "loaded_configs": sorted(self.configs),
            "sections": sorted(self._merged),
        }


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = value


_manager: Optional[ConfigurationManager] = None


def get_config(config_dir: Optional[Path] = None) -> ConfigurationManager:
    """Return the shared ConfigurationManager, creating it on first use."""
    global _manager
    if config_dir is not None:
        return ConfigurationManager(config_dir)
    if _manager is None:
        _manager = ConfigurationManager()
    return _manager
