"""
Settings loader for TrainPlayer.

Loads engine tunables from config/player.yaml, then applies
TRAINPLAYER_<FIELD> environment overrides (a .env file is honoured).
"""

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


# Default config file (relative to project root)
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent.parent / "config" / "player.yaml"
ENV_PREFIX = "TRAINPLAYER_"


class PlayerSettings(BaseModel):
    weak_topic_threshold: float = Field(default=0.7, ge=0, le=1)
    short_answer_min_length: int = Field(default=10, ge=0)
    progress_write_interval_seconds: float = Field(default=5.0, ge=0)
    content_db_path: Path = Path("data/programs.db")
    progress_db_path: Path = Path("data/progress.db")
    log_level: str = "INFO"


def read_config_file(path: Path) -> dict[str, Any]:
    """
    Parse a YAML settings file.

    Returns an empty dict if the file doesn't exist.

    Raises:
        yaml.YAMLError: If YAML parsing fails
        ValueError: If the document is not a mapping
    """
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file must contain a mapping: {path}")
    return data


def env_overrides(environ: Optional[dict[str, str]] = None) -> dict[str, str]:
    """Collect TRAINPLAYER_* variables for known settings fields."""
    source = os.environ if environ is None else environ
    overrides = {}
    for field_name in PlayerSettings.model_fields:
        value = source.get(ENV_PREFIX + field_name.upper())
        if value is not None:
            overrides[field_name] = value
    return overrides


def load_settings(
    path: Path | None = None,
    environ: Optional[dict[str, str]] = None,
) -> PlayerSettings:
    """
    Load player settings.

    Args:
        path: Optional settings file (default: config/player.yaml)
        environ: Optional environment mapping (default: os.environ after load_dotenv)

    Returns:
        Validated PlayerSettings
    """
    if environ is None:
        load_dotenv()
    values = read_config_file(path or DEFAULT_CONFIG_PATH)
    values.update(env_overrides(environ))
    return PlayerSettings(**values)
