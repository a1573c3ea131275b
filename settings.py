"""Receiver configuration, read from QRTX_* environment variables."""
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field, field_validator

from rng import DEFAULT_GENERATOR, GENERATORS

ENV_PREFIX = "QRTX_"

# environment variable suffix -> Settings field
_ENV_FIELDS = {
    "GENERATOR": "generator",
    "MAX_IDLE_PASSES": "max_idle_passes",
    "STALL_FACTOR": "stall_factor",
    "BLOCK_SIZE": "default_block_size",
    "HOST": "host",
    "PORT": "port",
}


class Settings(BaseModel):
    generator: str = DEFAULT_GENERATOR
    max_idle_passes: int = Field(default=10, ge=1)
    # Droplets per block received without completing before a session counts as stalled
    stall_factor: int = Field(default=3, ge=1)
    default_block_size: int = Field(default=256, gt=0)
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)

    @field_validator("generator")
    @classmethod
    def _known_generator(cls, value: str) -> str:
        if value not in GENERATORS:
            raise ValueError(f"unknown generator {value!r}; expected one of {sorted(GENERATORS)}")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from the environment, falling back to defaults for unset variables."""
        if environ is None:
            environ = os.environ
        values = {
            field: environ[ENV_PREFIX + suffix]
            for suffix, field in _ENV_FIELDS.items()
            if ENV_PREFIX + suffix in environ
        }
        return cls(**values)
