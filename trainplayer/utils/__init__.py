"""TrainPlayer utilities."""

from .config import PlayerSettings, load_settings, read_config_file, env_overrides, DEFAULT_CONFIG_PATH
from .log import setup_logging, LOG_FORMAT

__all__ = [
    "PlayerSettings",
    "load_settings",
    "read_config_file",
    "env_overrides",
    "DEFAULT_CONFIG_PATH",
    "setup_logging",
    "LOG_FORMAT",
]
