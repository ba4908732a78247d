# export_forecaster_src/config_utils.py

import logging

logger = logging.getLogger(__name__)

# Global configuration manager, populated by initialize_config()
config_manager = None
CONFIG_AVAILABLE = False
try:
    from config import get_config, ConfigurationError  # project YAML configuration
    CONFIG_AVAILABLE = True
    logger.debug("Configuration system detected: get_config")
except ImportError as e:
    CONFIG_AVAILABLE = False
    logger.warning("Configuration system NOT detected: %s - using defaults", e)


def initialize_config():
    """
    Initializes the global configuration manager.

    The YAML files in config/ are loaded and validated once. If they cannot be
    read, the error is logged and the pipeline proceeds with code defaults.
    """
    global config_manager
    if CONFIG_AVAILABLE and config_manager is None:
        try:
            config_manager = get_config()
            validation_errors = config_manager.validate_configuration()
            if validation_errors:
                logger.warning("Configuration validation warnings: %s", validation_errors)
        except ConfigurationError as e:
            logger.error("Failed to initialize configuration: %s. Using defaults.", e)
            config_manager = None


def reset_config():
    """Drop the loaded configuration so the next lookup uses defaults only."""
    global config_manager
    config_manager = None


def get_config_value(key_path: str, default=None, args=None, cli_param=None):
    """
    Retrieves a configuration value, providing support for command-line overrides.
    The function prioritizes values in the following order:
    1. CLI argument (if provided)
    2. Configuration file
    3. Default value
    """
    # First priority: CLI argument
    if args is not None and cli_param and hasattr(args, cli_param):
        cli_value = getattr(args, cli_param)
        if cli_value is not None:
            return cli_value

    # Second priority: Configuration file
    if config_manager is not None:
        config_value = config_manager.get(key_path, None)
        if config_value is not None:
            return config_value

    # Third priority: Default value
    return default
