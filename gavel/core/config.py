"""
Configuration parameters for Gavel.

Defines auction defaults, storage locations and logging options.
Values can be overridden through GAVEL_* environment variables or a .env file.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, field_validator

ENV_PREFIX = "GAVEL_"


@dataclass
class GavelConfig:
    """Process-wide configuration parameters"""

    # Auction parameters
    default_bidding_duration: int = 3600  # Seconds between creation and deadline
    max_prize_length: int = 1024  # Maximum prize descriptor length

    # Storage parameters
    data_dir: Path = Path("~/.gavel")
    db_name: str = "gavel.db"

    # Logging
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    log_to_file: bool = False

    @property
    def db_path(self) -> Path:
        return self.data_dir.expanduser() / self.db_name

    def ensure_directories(self):
        """Create necessary directories"""
        self.data_dir.expanduser().mkdir(exist_ok=True, parents=True)
        if self.log_to_file:
            self.log_dir.expanduser().mkdir(exist_ok=True, parents=True)


class _ConfigSchema(BaseModel):
    """Validation schema for raw string settings."""

    default_bidding_duration: int = Field(default=3600, ge=0)
    max_prize_length: int = Field(default=1024, gt=0)
    data_dir: Path = Path("~/.gavel")
    db_name: str = Field(default="gavel.db", min_length=1)
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    log_to_file: bool = False

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level {value}")
        return value


def _collect(env_file: Optional[str]) -> Dict[str, str]:
    """Merge .env values with the process environment (environment wins)."""
    raw: Dict[str, str] = {}
    if env_file:
        for key, value in dotenv_values(env_file).items():
            if value is not None:
                raw[key] = value
    raw.update(os.environ)

    settings = {}
    for key, value in raw.items():
        if key.startswith(ENV_PREFIX):
            settings[key[len(ENV_PREFIX):].lower()] = value
    return settings


def load_config(env_file: Optional[str] = None) -> GavelConfig:
    """
    Load configuration from environment and an optional .env file.

    Args:
        env_file: Optional path to a .env file with GAVEL_* entries

    Returns:
        GavelConfig instance

    Raises:
        ValueError: If a setting fails validation
    """
    settings = _collect(env_file)
    known = {k: v for k, v in settings.items() if k in _ConfigSchema.model_fields}

    try:
        schema = _ConfigSchema(**known)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    return GavelConfig(**schema.model_dump())


# Global config instance (can be overridden)
config = GavelConfig()
