from .loader import DEFAULT_CONFIG_PATH, ConfigError, config_from_dict, load_config

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "config_from_dict",
    "load_config",
]
