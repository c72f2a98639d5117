"""Global configuration storage for canopy.

Stores engine settings in ~/.canopy/config.json. Set ``CANOPY_HOME`` to
use another directory.
"""

import json
import os
from pathlib import Path

from pydantic import BaseModel, Field

from canopy.domain.task import POSITION_STEP
from canopy.infrastructure.http import DEFAULT_API_URL


class EngineConfig(BaseModel):
    """User-tunable engine settings."""

    position_step: float = Field(default=POSITION_STEP, gt=0)
    data_file: str | None = None  # defaults to <config dir>/tasks.json
    api_url: str = DEFAULT_API_URL
    page_size: int = Field(default=25, gt=0)
    fetch_retries: int = Field(default=0, ge=0)


def get_config_dir() -> Path:
    """Get the canopy config directory."""
    override = os.environ.get("CANOPY_HOME")
    config_dir = Path(override) if override else Path.home() / ".canopy"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_config() -> EngineConfig:
    """Load the engine configuration."""
    config_file = get_config_dir() / "config.json"
    if config_file.exists():
        try:
            data = json.loads(config_file.read_text(encoding="utf-8"))
            return EngineConfig(**data)
        except (json.JSONDecodeError, ValueError, TypeError):
            pass
    return EngineConfig()  # defaults


def save_config(config: EngineConfig) -> None:
    """Save the engine configuration."""
    config_file = get_config_dir() / "config.json"
    config_file.write_text(
        json.dumps(config.model_dump(), indent=2),
        encoding="utf-8",
    )


def get_data_file(config: EngineConfig | None = None) -> Path:
    """Resolve the task document the CLI works on."""
    config = config or get_config()
    if config.data_file:
        return Path(config.data_file).expanduser()
    return get_config_dir() / "tasks.json"
